from typing import (
    Any,
    TypeVar,
    Generic,
    Type,
    Sequence,
    Callable,
)
from uuid import UUID

from sqlalchemy import SQLColumnExpression, and_, update as sa_update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy.sql import Select, Update

from taskdesk.core.exceptions.types import DatabaseException

T = TypeVar("T")


class BaseDB(Generic[T]):
    def __init__(self, model: Type[T]):
        self.model = model

    async def get_by_id(
        self, session: AsyncSession, id: UUID, options: list[Any] | None = None
    ) -> T | None:
        """
        Asynchronously retrieves an instance of the model by its primary key.

        Args:
            session (AsyncSession): The asynchronous database session to use for the query.
            id (UUID): The primary key value of the model instance to retrieve.
            options (list[Any], optional): SQLAlchemy loader options (e.g., selectinload).

        Returns:
            T | None: The model instance if found, otherwise None.

        Raises:
            DatabaseException: If an error occurs while querying the database.
        """
        try:
            stmt: Select = (
                select(self.model)
                .options(*(options or []))
                .where(getattr(self.model, "id") == id)
            )
            result = await session.execute(stmt)
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise DatabaseException(
                f"Error retrieving {self.model.__name__} with ID {id}: {str(e)}"
            ) from e

    async def get_all(
        self,
        session: AsyncSession,
        filters: list[Any] | None = None,
        order_by: list[Any] | None = None,
        limit: int | None = None,
        options: list[Any] | None = None,
    ) -> Sequence[T]:
        """
        Retrieve filtered, ordered results from the DB.

        Args:
            session: Async SQLAlchemy session.
            filters: list of SQLAlchemy filter expressions.
            order_by: list of columns/expressions to order by.
            limit: Max number of records to return.
            options: list of SQLAlchemy loader options (e.g., selectinload).

        Returns:
            A sequence of model instances.
        """
        try:
            stmt = select(self.model).options(*(options or []))

            if filters:
                stmt = stmt.filter(*filters)
            if order_by:
                stmt = stmt.order_by(*order_by)
            if limit:
                stmt = stmt.limit(limit)

            result = await session.execute(stmt)
            return result.scalars().all()
        except SQLAlchemyError as e:
            raise DatabaseException(
                f"Error retrieving all {self.model.__name__} records: {str(e)}"
            ) from e

    async def get_one_by_conditions(
        self,
        session: AsyncSession,
        conditions: Sequence[SQLColumnExpression],
        options: list[Any] | None = None,
    ) -> T | None:
        """
        Asynchronously retrieves a single record of the model that matches the given conditions.

        Args:
            session (AsyncSession): The asynchronous database session to use for the query.
            conditions (list[SQLColumnExpression]): SQLAlchemy expressions to filter the query.
            options (list[Any], optional): SQLAlchemy loader options (e.g., selectinload).

        Returns:
            T | None: An instance of the model if found, otherwise None.

        Raises:
            DatabaseException: If an error occurs while querying the database.
        """
        try:
            stmt = (
                select(self.model)
                .options(*(options or []))
                .where(and_(*conditions))
            )
            result = await session.execute(stmt)
            return result.scalars().first()
        except (SQLAlchemyError, ValueError) as e:
            raise DatabaseException(
                f"Error retrieving one {self.model.__name__} with conditions {conditions}: {str(e)}"
            ) from e

    async def create(
        self,
        session: AsyncSession,
        data: dict,
        validate: Callable[[dict], dict] | None = None,
        commit_self: bool = True,
    ) -> T:
        """
        Asynchronously creates and persists a new instance of the model using the provided data.

        Args:
            session (AsyncSession): The SQLAlchemy asynchronous session to use for database operations.
            data (dict): Fields and values to initialize the model instance.
            validate (Callable[[dict], dict] | None, optional): Optional callable to validate or
                transform the input data before model instantiation.
            commit_self (bool, optional): If True, commits the transaction. If False, only
                flushes the session. Defaults to True.

        Returns:
            T: The newly created and persisted model instance.

        Raises:
            DatabaseException: If an error occurs while creating the model instance.
        """
        try:
            if validate:
                data = validate(data)

            obj = self.model(**data)
            session.add(obj)

            if commit_self:
                await session.commit()
            else:
                await session.flush()

            await session.refresh(obj)
            return obj
        except (SQLAlchemyError, ValueError) as e:
            raise DatabaseException(
                f"Error creating {self.model.__name__}: {str(e)}"
            ) from e

    async def update(
        self, session: AsyncSession, id: UUID, updates: dict, commit_self: bool = True
    ) -> T | None:
        """
        Asynchronously updates the record with the given ID.

        Args:
            session (AsyncSession): The SQLAlchemy asynchronous session to use for the update.
            id (UUID): The unique identifier of the record to update.
            updates (dict): Fields and their new values.
            commit_self (bool, optional): If True, commits the transaction after the update;
                otherwise, flushes the session. Defaults to True.

        Returns:
            T | None: The updated record, or None if no record was found with the given ID.

        Raises:
            DatabaseException: If an error occurs while updating the record.
        """
        try:
            stmt: Update = (
                sa_update(self.model)
                .where(self.model.id == id)  # type: ignore[attr-defined]
                .values(**updates)
                .returning(self.model)
            )
            result = await session.execute(stmt)
            updated = result.scalar_one_or_none()

            if commit_self:
                await session.commit()
            else:
                await session.flush()

            return updated
        except SQLAlchemyError as e:
            raise DatabaseException(
                f"Error updating {self.model.__name__} with ID {id}: {str(e)}"
            ) from e

    async def update_by_conditions(
        self,
        session: AsyncSession,
        conditions: list[SQLColumnExpression],
        updates: dict,
        commit_self: bool = True,
    ) -> int:
        """
        Asynchronously updates every record matching ``conditions``.

        Args:
            session (AsyncSession): The SQLAlchemy asynchronous session to use for the update.
            conditions (list[SQLColumnExpression]): SQLAlchemy expressions selecting the records.
            updates (dict): Fields and their new values.
            commit_self (bool, optional): If True, commits the transaction after the update;
                otherwise, flushes the session. Defaults to True.

        Returns:
            int: The number of records updated.

        Raises:
            DatabaseException: If an error occurs while updating the records.
        """
        try:
            stmt: Update = (
                sa_update(self.model)
                .where(and_(*conditions))
                .values(**updates)
                .execution_options(synchronize_session="fetch")
            )
            result = await session.execute(stmt)

            if commit_self:
                await session.commit()
            else:
                await session.flush()

            return result.rowcount  # type: ignore[attr-defined]
        except SQLAlchemyError as e:
            raise DatabaseException(
                f"Error updating {self.model.__name__} with conditions {conditions}: {str(e)}"
            ) from e
