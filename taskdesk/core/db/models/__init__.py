from taskdesk.core.db.models.user import User
from taskdesk.core.db.models.otp import OTPRecord

__all__ = [
    "OTPRecord",
    "User",
]
