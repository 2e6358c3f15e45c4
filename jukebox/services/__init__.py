"""Service layer exports."""

from .auth_records import AuthInvalidError, AuthRecordService
from .reauth_scheduler import ReauthScheduler, ReauthSummary
from .token_cipher import TokenCipherService
from .users import UserService

__all__ = [
    "AuthInvalidError",
    "AuthRecordService",
    "ReauthScheduler",
    "ReauthSummary",
    "TokenCipherService",
    "UserService",
]
