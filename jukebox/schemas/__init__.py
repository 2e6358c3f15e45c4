"""Public schema exports."""

from .auth import AuthRecordSummary, LoginLink, RenewResponse, SessionResponse

__all__ = [
    "AuthRecordSummary",
    "LoginLink",
    "RenewResponse",
    "SessionResponse",
]
