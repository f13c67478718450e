from dataclasses import dataclass
from typing import Optional

from backend.models import AdminState, AuthUser


@dataclass(frozen=True)
class AuthEvent:
    """
    Base of everything the auth provider broadcasts to its subscribers.
    """


@dataclass(frozen=True)
class SignedInEvent(AuthEvent):
    """
    Fired once a sign-in has completed.

    admin_state is filled in only when the sign-in went through the admin
    path; it has already been resolved by the time subscribers see the event.
    """

    user: AuthUser
    admin_state: Optional[AdminState] = None


@dataclass(frozen=True)
class SignedOutEvent(AuthEvent):
    """
    Fired after the session is cleared.
    """

    user_id: Optional[str] = None
    reason: str = "user"
