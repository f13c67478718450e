# auth provider: accounts, the current session and sign-in/out notifications
from __future__ import annotations

import hashlib
import hmac
import inspect
import secrets
from typing import Awaitable, Callable, List, Optional, Union

import backend.crud as crud
from backend.models import AdminState, AuthSession, AuthUser
from utils.errors import AuthorizationError, ValidationError
from utils.events import AuthEvent, SignedInEvent, SignedOutEvent
from utils.logger import get_logger
from utils.pure import looks_like_email, utc_now

_logger = get_logger(__name__)

_HASH_ITERATIONS = 120_000
MIN_PASSWORD_LENGTH = 6

Listener = Callable[[AuthEvent], Union[None, Awaitable[None]]]
# awaited after credentials check out and before the session is exposed
SignInGate = Callable[[AuthUser], Awaitable[Optional[AdminState]]]


def hash_password(password: str, salt: Optional[str] = None) -> str:
    salt = salt or secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac(
        "sha256", password.encode(), salt.encode(), _HASH_ITERATIONS
    ).hex()
    return f"{salt}${digest}"


def verify_password(password: str, password_hash: str) -> bool:
    salt, _, _digest = password_hash.partition("$")
    return hmac.compare_digest(hash_password(password, salt), password_hash)


class AuthProvider:
    """
    Client-side handle on the auth service.

    One instance per application; it is passed explicitly to whatever needs
    it and holds the only copy of the current session.
    """

    def __init__(self) -> None:
        self._session: Optional[AuthSession] = None
        self._listeners: List[Listener] = []

    def get_session(self) -> Optional[AuthSession]:
        return self._session

    def on_auth_state_change(self, listener: Listener) -> Callable[[], None]:
        """Register listener; returns a function that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def _emit(self, event: AuthEvent) -> None:
        for listener in list(self._listeners):
            try:
                result = listener(event)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                _logger.exception(f"auth listener failed on {type(event).__name__}")

    async def sign_up(self, email: str, password: str, name: Optional[str] = None) -> AuthUser:
        email = (email or "").strip().lower()
        if not looks_like_email(email):
            raise ValidationError(f"invalid email address: {email!r}")
        if len(password or "") < MIN_PASSWORD_LENGTH:
            raise ValidationError(
                f"password must be at least {MIN_PASSWORD_LENGTH} characters"
            )
        user = await crud.insert_auth_user(email, hash_password(password), name)
        _logger.info(f"Signed up {email}")
        return user

    async def sign_in(
        self, email: str, password: str, gate: Optional[SignInGate] = None
    ) -> AuthSession:
        """
        Check credentials and establish a session.

        If gate is given it is awaited before anything is published; when it
        raises, any existing session is torn down and the error propagates.
        """
        email = (email or "").strip().lower()
        user, stored_hash = await crud.get_auth_user_with_hash(email)
        if user is None or not verify_password(password or "", stored_hash):
            raise AuthorizationError("invalid email or password")

        admin_state = None
        if gate is not None:
            try:
                admin_state = await gate(user)
            except Exception:
                await self.sign_out(reason="declined")
                raise

        self._session = AuthSession(
            user=user, access_token=secrets.token_urlsafe(32), issued_at=utc_now()
        )
        _logger.info(f"Signed in {email}")
        await self._emit(SignedInEvent(user=user, admin_state=admin_state))
        return self._session

    async def sign_out(self, reason: str = "user") -> None:
        session, self._session = self._session, None
        user_id = session.user.id if session else None
        if session:
            _logger.info(f"Signed out {session.user.email} ({reason})")
        await self._emit(SignedOutEvent(user_id=user_id, reason=reason))
