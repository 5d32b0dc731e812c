"""Authentication module."""

from src.auth.dependencies import get_current_user, get_optional_user, get_session_user_id

__all__ = [
    "get_current_user",
    "get_optional_user",
    "get_session_user_id",
]
