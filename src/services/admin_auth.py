"""
Admin authorization model.

Client-side mirror of the store's row rules, used to gate back-office sections
and operations. It fails closed: anything that cannot be positively resolved
to an approved admin is treated as "not an admin".
"""
from __future__ import annotations

from typing import TYPE_CHECKING, List, Optional

import backend.crud as crud
import backend.rpc as rpc
from backend.auth import AuthProvider
from backend.models import AdminAccount, AdminState, AuthUser, Privileges
from utils.errors import (
    AuthorizationError,
    BackendError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from utils.logger import get_logger
from utils.pure import utc_now

if TYPE_CHECKING:
    from utils.state import SessionContext

_logger = get_logger(__name__)

MIN_NAME_LENGTH = 2

# back-office sections and the privilege each one needs; None means any approved admin
SECTIONS = (
    ("statistics", "view_statistics"),
    ("products", "manage_products"),
    ("orders", "process_orders"),
    ("customers", "access_clients"),
    ("gallery", None),
)


def state_from_account(account: Optional[AdminAccount]) -> AdminState:
    """Mask stored flags unless the account is approved."""
    if account is None:
        return AdminState()
    if account.status != "approved":
        return AdminState(
            status=account.status, admin_id=account.id, user_id=account.user_id
        )
    return AdminState(
        status="approved",
        is_super_admin=account.is_super_admin,
        privileges=account.privileges,
        admin_id=account.id,
        user_id=account.user_id,
    )


async def resolve_admin_state(user_id: Optional[str]) -> AdminState:
    if not user_id:
        return AdminState()
    try:
        account = await crud.get_admin_by_user_id(user_id)
    except BackendError as exc:
        _logger.error(f"Could not resolve admin state for {user_id}: {exc}")
        return AdminState(user_id=user_id)
    if account is None:
        return AdminState(user_id=user_id)
    return state_from_account(account)


def check_privilege(state: Optional[AdminState], name: str) -> bool:
    """True if approved and (super-admin or the named flag is set)."""
    if state is None:
        return False
    return state.has_privilege(name)


def require_privilege(state: Optional[AdminState], name: str) -> None:
    if not check_privilege(state, name):
        raise AuthorizationError(f"the '{name}' privilege is required")


def require_approved(state: Optional[AdminState]) -> None:
    if state is None or not state.is_approved:
        raise AuthorizationError("an approved admin account is required")


def require_super_admin(state: Optional[AdminState]) -> None:
    if state is None or not state.is_approved or not state.is_super_admin:
        raise AuthorizationError("only a super admin can do this")


def _require(
    state: Optional[AdminState], privilege: Optional[str], super_admin: bool
) -> None:
    if super_admin:
        require_super_admin(state)
    elif privilege is not None:
        require_privilege(state, privilege)
    else:
        require_approved(state)


async def authorize(
    ctx: "SessionContext",
    privilege: Optional[str] = None,
    super_admin: bool = False,
) -> AdminState:
    """
    Check that the admin behind ctx may act, and return their standing as
    stored right now.

    The session has to allow it (an expired admin session does not) and so
    does the account re-read from the store; the flags the caller holds are
    never trusted on their own. With neither privilege nor super_admin, any
    approved admin passes.
    """
    from utils.state import SessionContext

    if not isinstance(ctx, SessionContext):
        raise AuthorizationError("an admin session is required")
    _require(ctx.effective_admin(), privilege, super_admin)
    stored = await resolve_admin_state(ctx.user_id)
    _require(stored, privilege, super_admin)
    return stored


def available_sections(state: Optional[AdminState]) -> List[str]:
    """Back-office sections the state may open, in sidebar order."""
    if state is None or not state.is_approved:
        return []
    sections = [
        section
        for section, privilege in SECTIONS
        if privilege is None or state.has_privilege(privilege)
    ]
    if state.is_super_admin:
        sections.append("management")
    return sections


# ---------------------------
# Registration & approval
# ---------------------------


async def register_admin(name: str, user_id: str) -> str:
    """Create a pending admin account bound to user_id; returns its id."""
    name = (name or "").strip()
    if len(name) < MIN_NAME_LENGTH:
        raise ValidationError(f"name must be at least {MIN_NAME_LENGTH} characters")
    if not user_id:
        raise ValidationError("an identity is required")
    return await rpc.register_admin_user(user_id, name)


async def register_admin_account(
    auth: AuthProvider, name: str, email: str, password: str
) -> str:
    """Self-service flow: create the login, then the pending admin account."""
    user = await auth.sign_up(email, password, name=name)
    return await register_admin(name, user.id)


async def approve_admin(
    target_id: str, approver_user_id: str, granted: Privileges
) -> bool:
    """
    Approve a pending account with exactly the granted privileges.

    Raises AuthorizationError unless approver_user_id is an approved super
    admin; the target is left as it was on any failure.
    """
    return await rpc.approve_admin_user(
        target_id,
        approver_user_id,
        grant_manage_products=granted.manage_products,
        grant_process_orders=granted.process_orders,
        grant_access_clients=granted.access_clients,
        grant_view_statistics=granted.view_statistics,
    )


async def reject_admin(target_id: str, actor_user_id: str) -> bool:
    actor = await resolve_admin_state(actor_user_id)
    require_super_admin(actor)
    target = await crud.get_admin(target_id)
    if target is None:
        raise NotFoundError(f"admin account {target_id} not found")
    if target.status != "pending":
        raise InvalidTransitionError(target.status, "rejected")
    rejected = await crud.reject_admin_user(target_id)
    if rejected:
        _logger.info(f"Admin {target_id} rejected by {actor.admin_id}")
    return rejected


async def list_admin_users(actor: "SessionContext") -> List[AdminAccount]:
    await authorize(actor, super_admin=True)
    return await crud.list_admin_users()


# ---------------------------
# Admin sessions
# ---------------------------


async def _admin_gate(user: AuthUser) -> AdminState:
    state = await resolve_admin_state(user.id)
    if state.status == "none":
        raise AuthorizationError("this account is not an admin account")
    if state.status == "pending":
        raise AuthorizationError("this admin account is still pending approval")
    if state.status == "rejected":
        raise AuthorizationError("this admin account has been rejected")
    return state


async def admin_sign_in(ctx: "SessionContext", email: str, password: str) -> AdminState:
    """
    Sign in through the admin entrance.

    The admin standing is resolved before the sign-in is announced; anything
    but an approved account is signed straight back out.
    """
    resolved: List[AdminState] = []

    async def gate(user: AuthUser) -> AdminState:
        state = await _admin_gate(user)
        resolved.append(state)
        return state

    session = await ctx.auth.sign_in(email, password, gate=gate)
    state = resolved[-1]
    ctx.user = session.user
    ctx.admin = state
    ctx.admin_since = utc_now()
    return state


async def admin_sign_out(ctx: "SessionContext") -> None:
    await ctx.end()

