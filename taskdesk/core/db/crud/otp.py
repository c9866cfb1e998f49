"""
CRUD operations for the OTPRecord model.

The latest record for a (user, purpose) pair is authoritative: queries order
by ``created_at`` descending with ``id`` as a deterministic tiebreaker.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from taskdesk.core.db.crud.base import BaseDB
from taskdesk.core.db.models import OTPRecord
from taskdesk.core.enums import OTPPurpose
from taskdesk.core.utils import utc_now


class OTPRecordDB(BaseDB[OTPRecord]):
    """
    CRUD operations for OTPRecord.

    Provides lookups for the latest record, in-place overwrite for resends,
    and a conditional consume that only one concurrent caller can win.
    """

    def __init__(self):
        super().__init__(model=OTPRecord)

    def _latest_order(self) -> list:
        return [self.model.created_at.desc(), self.model.id.desc()]

    async def get_latest(
        self,
        session: AsyncSession,
        user_id: UUID,
        purpose: OTPPurpose,
    ) -> OTPRecord | None:
        """
        Retrieve the most recently created record regardless of its state.

        Args:
            session: The async database session.
            user_id: Owner of the record.
            purpose: The purpose of the OTP.

        Returns:
            The newest OTPRecord, or None if the user has none.
        """
        result = await self.get_all(
            session=session,
            filters=[
                self.model.user_id == user_id,
                self.model.purpose == purpose,
            ],
            order_by=self._latest_order(),
            limit=1,
        )
        return result[0] if result else None

    async def get_latest_unconsumed(
        self,
        session: AsyncSession,
        user_id: UUID,
        purpose: OTPPurpose,
    ) -> OTPRecord | None:
        """
        Retrieve the most recent record that has not been consumed.

        Expired records are returned too; the caller decides on expiry.

        Args:
            session: The async database session.
            user_id: Owner of the record.
            purpose: The purpose of the OTP.

        Returns:
            The newest unconsumed OTPRecord, or None.
        """
        result = await self.get_all(
            session=session,
            filters=[
                self.model.user_id == user_id,
                self.model.purpose == purpose,
                self.model.consumed.is_(False),
            ],
            order_by=self._latest_order(),
            limit=1,
        )
        return result[0] if result else None

    async def overwrite(
        self,
        session: AsyncSession,
        record: OTPRecord,
        code_hash: str,
        expires_at: datetime,
        commit_self: bool = True,
    ) -> OTPRecord:
        """
        Replace the code and expiry of an unconsumed record in place.

        Args:
            session: The async database session.
            record: The record to rewrite.
            code_hash: HMAC hash of the new code.
            expires_at: New expiry.
            commit_self: Whether to commit the session after updating.

        Returns:
            The updated OTPRecord.
        """
        updated = await self.update(
            session,
            record.id,
            {"code_hash": code_hash, "expires_at": expires_at},
            commit_self=commit_self,
        )
        return updated or record

    async def consume(
        self,
        session: AsyncSession,
        record_id: UUID,
        commit_self: bool = True,
    ) -> bool:
        """
        Mark a record consumed if, and only if, it is still unconsumed.

        Args:
            session: The async database session.
            record_id: The record to consume.
            commit_self: Whether to commit the session after updating.

        Returns:
            True if this call consumed the record, False if it was already consumed.
        """
        rowcount = await self.update_by_conditions(
            session,
            conditions=[
                self.model.id == record_id,
                self.model.consumed.is_(False),
            ],
            updates={"consumed": True, "consumed_at": utc_now()},
            commit_self=commit_self,
        )
        return rowcount == 1
