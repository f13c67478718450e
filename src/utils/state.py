from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, Optional

from backend.auth import AuthProvider
from backend.models import AdminState, AuthUser
from services import admin_auth
from utils.config import get_settings
from utils.events import AuthEvent, SignedInEvent, SignedOutEvent
from utils.pure import utc_now


@dataclass
class SessionContext:
    """
    Who is using the application right now, passed explicitly to every
    operation that needs to know.

    Fields:
      - auth: the auth provider this context follows
      - user: the signed-in end user, None when anonymous
      - admin: resolved admin standing of that user (status "none" if not an admin)
      - admin_since: when the admin standing was established; admin rights lapse
        after settings.admin_session_hours

    Lifecycle: start() once on application start, end() on sign-out.
    """

    auth: AuthProvider
    user: Optional[AuthUser] = None
    admin: AdminState = field(default_factory=AdminState)
    admin_since: Optional[datetime] = None
    _unsubscribe: Optional[Callable[[], None]] = field(default=None, repr=False)

    @property
    def user_id(self) -> Optional[str]:
        return self.user.id if self.user else None

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None

    async def start(self) -> Optional[AuthUser]:
        """
        Resolve whatever session the provider already holds and start
        following its sign-in/out events. Returns the current user, if any.
        """
        if self._unsubscribe is None:
            self._unsubscribe = self.auth.on_auth_state_change(self._on_auth_event)
        session = self.auth.get_session()
        if session is None:
            self._clear()
            return None
        self.user = session.user
        await self.refresh_admin()
        return self.user

    async def refresh_admin(self) -> AdminState:
        """Re-read the admin standing of the current user from the store."""
        if self.user is None:
            self.admin, self.admin_since = AdminState(), None
        else:
            self.admin = await admin_auth.resolve_admin_state(self.user.id)
            self.admin_since = utc_now() if self.admin.is_approved else None
        return self.admin

    def admin_session_expired(self, now: Optional[datetime] = None) -> bool:
        if self.admin_since is None:
            return True
        lifetime = timedelta(hours=get_settings().admin_session_hours)
        return (now or utc_now()) - self.admin_since >= lifetime

    def effective_admin(self, now: Optional[datetime] = None) -> AdminState:
        """The admin state, or a blank one once the admin session has lapsed."""
        if self.admin_session_expired(now):
            return AdminState(user_id=self.user_id)
        return self.admin

    def check_privilege(self, name: str) -> bool:
        return admin_auth.check_privilege(self.effective_admin(), name)

    async def end(self) -> None:
        """Sign out and stop following the provider."""
        if self.auth.get_session() is not None:
            await self.auth.sign_out()
        self._clear()
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def _clear(self) -> None:
        self.user = None
        self.admin = AdminState()
        self.admin_since = None

    def _on_auth_event(self, event: AuthEvent) -> None:
        if isinstance(event, SignedOutEvent):
            self._clear()
        elif isinstance(event, SignedInEvent):
            self.user = event.user
            if event.admin_state is not None:
                self.admin = event.admin_state
                self.admin_since = utc_now() if event.admin_state.is_approved else None
            else:
                self.admin, self.admin_since = AdminState(user_id=event.user.id), None
