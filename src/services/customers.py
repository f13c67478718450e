from __future__ import annotations

from typing import TYPE_CHECKING, List, Mapping, Optional, Union

import backend.crud as crud
from backend.models import BillingAddress, Customer, Order, Profile
from services.admin_auth import authorize
from services.results import ReadResult, read_or_empty
from utils.errors import AuthorizationError, NotFoundError, ValidationError
from utils.logger import get_logger

if TYPE_CHECKING:
    from utils.state import SessionContext

_logger = get_logger(__name__)


async def list_customers(actor: "SessionContext") -> ReadResult[List[Customer]]:
    """Client directory with order count and total spent per customer."""
    await authorize(actor, "access_clients")
    return await read_or_empty("customers", crud.list_customers, [])


async def customer_orders(actor: "SessionContext", user_id: str) -> ReadResult[List[Order]]:
    await authorize(actor, "access_clients")
    return await read_or_empty(
        f"orders of {user_id}", lambda: crud.list_orders(user_id), []
    )


async def get_profile(ctx: "SessionContext") -> Profile:
    if not ctx.is_authenticated:
        raise AuthorizationError("sign in to see your profile")
    profile = await crud.get_profile(ctx.user_id)
    if profile is None:
        raise NotFoundError(f"no profile for {ctx.user_id}")
    return profile


async def update_profile(
    ctx: "SessionContext",
    name: Optional[str] = None,
    phone: Optional[str] = None,
    company: Optional[str] = None,
    billing_address: Optional[Union[BillingAddress, Mapping[str, str]]] = None,
) -> Profile:
    """
    Edit the signed-in user's own profile. Contact details already copied
    onto quotes and orders are not touched.
    """
    if not ctx.is_authenticated:
        raise AuthorizationError("sign in to edit your profile")
    if name is not None and not name.strip():
        raise ValidationError("name cannot be blank")
    if billing_address is not None and not isinstance(billing_address, BillingAddress):
        billing_address = BillingAddress.parse(dict(billing_address))
    await crud.update_profile(
        ctx.user_id,
        name=name.strip() if name is not None else None,
        phone=phone,
        company=company,
        billing_address=billing_address,
    )
    _logger.debug(f"Profile {ctx.user_id} updated")
    return await get_profile(ctx)
