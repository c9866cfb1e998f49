from taskdesk.core.db.crud.base import BaseDB
from taskdesk.core.db.crud.otp import OTPRecordDB
from taskdesk.core.db.crud.user import UserDB

# Global CRUD instances - use these instead of creating new instances
user_db = UserDB()
otp_record_db = OTPRecordDB()

__all__ = [
    # Classes (for type hints and subclassing)
    "BaseDB",
    "OTPRecordDB",
    "UserDB",
    # Global instances (for actual usage)
    "otp_record_db",
    "user_db",
]
