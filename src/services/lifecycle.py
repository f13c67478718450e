"""
Quote/order lifecycle.

A customer request lives on one status field from first contact to the end:

    quote_requested -> quote_sent -> approved -> processing -> shipped -> delivered -> completed
                                  -> rejected
    quote_requested -> rejected
    pending -> processing  (direct orders, no quoting)
    any non-terminal -> cancelled

quote_requested, quote_sent, approved and rejected are the negotiation phase;
pending, processing, shipped and delivered the fulfillment phase. completed,
cancelled and rejected are terminal.

The negotiation phase is stored on the quote record, fulfillment on an order
record. Moving an approved quote to processing converts it: the order is
created in processing and the quote keeps "approved" with the new order id.
From then on the quote is frozen and every status change goes to the order.
A quote never holds a fulfillment status and an order never holds a
negotiation one.

Whether the graph is enforced depends on settings.status_policy: "strict"
rejects edges that are not in it, "permissive" lets an admin set any known
status from any other, within those record rules.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import (
    TYPE_CHECKING,
    Dict,
    FrozenSet,
    Iterable,
    List,
    Mapping,
    Optional,
    Sequence,
    Tuple,
    Union,
)

import backend.crud as crud
import backend.rpc as rpc
from backend.models import (
    ContactSnapshot,
    LineItem,
    Order,
    OrderItem,
    Quote,
    ShippingAddress,
)
from services.admin_auth import authorize
from services.results import ReadResult, read_or_empty
from utils.config import StatusPolicy, get_settings
from utils.errors import (
    AuthorizationError,
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from utils.logger import get_logger
from utils.pure import line_total, sum_money, to_decimal, to_money

if TYPE_CHECKING:
    from utils.state import SessionContext

_logger = get_logger(__name__)


class OrderStatus(str, Enum):
    QUOTE_REQUESTED = "quote_requested"
    QUOTE_SENT = "quote_sent"
    APPROVED = "approved"
    REJECTED = "rejected"
    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


S = OrderStatus

TERMINAL: FrozenSet[OrderStatus] = frozenset({S.COMPLETED, S.CANCELLED, S.REJECTED})

TRANSITIONS: Dict[OrderStatus, FrozenSet[OrderStatus]] = {
    S.QUOTE_REQUESTED: frozenset({S.QUOTE_SENT, S.REJECTED, S.CANCELLED}),
    S.QUOTE_SENT: frozenset({S.APPROVED, S.REJECTED, S.CANCELLED}),
    S.APPROVED: frozenset({S.PROCESSING, S.CANCELLED}),
    S.PENDING: frozenset({S.PROCESSING, S.CANCELLED}),
    S.PROCESSING: frozenset({S.SHIPPED, S.CANCELLED}),
    S.SHIPPED: frozenset({S.DELIVERED, S.CANCELLED}),
    S.DELIVERED: frozenset({S.COMPLETED, S.CANCELLED}),
    S.COMPLETED: frozenset(),
    S.CANCELLED: frozenset(),
    S.REJECTED: frozenset(),
}

NEGOTIATION = frozenset({S.QUOTE_REQUESTED, S.QUOTE_SENT, S.APPROVED, S.REJECTED})
FULFILLMENT = frozenset({S.PENDING, S.PROCESSING, S.SHIPPED, S.DELIVERED})


def parse_status(value: Union[str, OrderStatus]) -> OrderStatus:
    try:
        return OrderStatus(value)
    except ValueError:
        raise ValidationError(f"unknown status: {value!r}") from None


def allowed_transitions(
    current: Union[str, OrderStatus], policy: Optional[StatusPolicy] = None
) -> FrozenSet[OrderStatus]:
    current = parse_status(current)
    policy = policy or get_settings().status_policy
    if policy == "permissive":
        return frozenset(s for s in OrderStatus if s is not current)
    return TRANSITIONS[current]


def can_transition(
    current: Union[str, OrderStatus],
    new: Union[str, OrderStatus],
    policy: Optional[StatusPolicy] = None,
) -> bool:
    return parse_status(new) in allowed_transitions(current, policy)


def validate_transition(
    current: Union[str, OrderStatus],
    new: Union[str, OrderStatus],
    policy: Optional[StatusPolicy] = None,
) -> OrderStatus:
    """Return the parsed target status or raise InvalidTransitionError."""
    target = parse_status(new)
    if not can_transition(current, target, policy):
        raise InvalidTransitionError(parse_status(current).value, target.value)
    return target


def is_terminal(status: Union[str, OrderStatus]) -> bool:
    return parse_status(status) in TERMINAL


def phase_of(status: Union[str, OrderStatus]) -> str:
    """Which phase a status belongs to: negotiation, fulfillment or closed."""
    status = parse_status(status)
    if status in TERMINAL:
        return "closed"
    return "negotiation" if status in NEGOTIATION else "fulfillment"


# ---------------------------
# Totals
# ---------------------------

LineLike = Union[LineItem, OrderItem, Mapping[str, object]]


def _line_parts(item: LineLike) -> Tuple[Decimal, int]:
    if isinstance(item, Mapping):
        price, quantity = item.get("price_at_purchase"), item.get("quantity")
    else:
        price, quantity = item.price_at_purchase, item.quantity
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
        raise ValidationError(f"line quantity must be a positive integer, got {quantity!r}")
    try:
        price = to_decimal(price)
    except ValueError as exc:
        raise ValidationError(str(exc)) from None
    if price < 0:
        raise ValidationError("line price must be >= 0")
    return price, quantity


def compute_order_total(items: Iterable[LineLike]) -> Decimal:
    """
    Sum of price_at_purchase * quantity over the lines. Each line is
    multiplied exactly and rounded to cents once; the result is in cents.
    """
    try:
        return sum_money(line_total(*_line_parts(item)) for item in items)
    except ValueError as exc:
        raise ValidationError(str(exc)) from None


# ---------------------------
# Submission
# ---------------------------


def _as_contact(contact: Union[ContactSnapshot, Mapping[str, Optional[str]]]) -> ContactSnapshot:
    if isinstance(contact, ContactSnapshot):
        return ContactSnapshot.parse(**contact.to_dict())
    if isinstance(contact, Mapping):
        unknown = set(contact) - {"name", "email", "phone", "company", "message"}
        if unknown:
            raise ValidationError(f"unknown contact fields: {sorted(unknown)}")
        return ContactSnapshot.parse(**contact)
    raise ValidationError("contact details are required")


async def submit_quote_request(
    product_id: str,
    quantity: int,
    contact: Union[ContactSnapshot, Mapping[str, Optional[str]]],
    user_id: Optional[str] = None,
) -> str:
    """
    Legacy entry point, open to anonymous visitors. The contact snapshot is
    supplied in full; a phone number is optional here.
    """
    snapshot = _as_contact(contact)
    quote_id = await rpc.submit_quote_request(
        product_id,
        quantity,
        snapshot.name,
        snapshot.email,
        phone=snapshot.phone,
        company=snapshot.company,
        message=snapshot.message,
        user_id=user_id,
    )
    _logger.info(f"Quote {quote_id} requested for product {product_id} x{quantity}")
    return quote_id


async def submit_quote_request_for(
    ctx: "SessionContext",
    product_id: str,
    quantity: int,
    message: Optional[str] = None,
    phone: Optional[str] = None,
    company: Optional[str] = None,
) -> str:
    """
    Authenticated entry point: name and email come from the signed-in
    user's profile and a phone number is mandatory.
    """
    if not ctx.is_authenticated:
        raise AuthorizationError("sign in to request a quote")
    quote_id = await rpc.submit_quote_request_with_contact(
        ctx.user_id, product_id, quantity, message=message, phone=phone, company=company
    )
    _logger.info(f"Quote {quote_id} requested by {ctx.user_id}")
    return quote_id


ItemLike = Union[Tuple[str, int], Mapping[str, object]]


def _as_item(item: ItemLike) -> Tuple[str, int]:
    if isinstance(item, Mapping):
        return str(item.get("product_id")), item.get("quantity")  # type: ignore[return-value]
    product_id, quantity = item
    return product_id, quantity


async def place_order(
    items: Sequence[ItemLike],
    contact: Optional[Union[ContactSnapshot, Mapping[str, Optional[str]]]] = None,
    shipping_address: Optional[Union[ShippingAddress, Mapping[str, str]]] = None,
    ctx: Optional["SessionContext"] = None,
) -> str:
    """
    Direct order entry that skips quoting: the order starts 'pending' and its
    total is computed from current catalog prices.
    """
    snapshot = _as_contact(contact) if contact is not None else None
    if shipping_address is not None and not isinstance(shipping_address, ShippingAddress):
        shipping_address = ShippingAddress.parse(dict(shipping_address))
    user_id = ctx.user_id if ctx is not None else None
    return await rpc.create_order(
        user_id,
        [_as_item(item) for item in items],
        snapshot,
        shipping_address,
        status=S.PENDING.value,
    )


# ---------------------------
# Admin actions
# ---------------------------


async def _locate(record_id: str) -> Tuple[str, Union[Quote, Order]]:
    """Return ("quote" | "order", record) for a record id."""
    quote = await crud.get_quote(record_id)
    if quote is not None:
        return "quote", quote
    order = await crud.get_order(record_id)
    if order is not None:
        return "order", order
    raise NotFoundError(f"no quote or order with id {record_id}")


def _check_record_phase(kind: str, current: str, target: OrderStatus) -> None:
    if kind == "quote" and target in FULFILLMENT:
        raise InvalidTransitionError(current, target.value)
    if kind == "order" and target in NEGOTIATION:
        raise InvalidTransitionError(current, target.value)


async def transition_status(
    record_id: str,
    new_status: Union[str, OrderStatus],
    actor: "SessionContext",
    when: Optional[datetime] = None,
) -> bool:
    """
    Move a quote or order to new_status.

    Needs process_orders (or super-admin). The write only lands if the
    record still has the status it was validated against. An approved quote
    moved to processing is converted into an order; a converted quote is
    frozen and raises ConflictError.
    """
    state = await authorize(actor, "process_orders")
    target = parse_status(new_status)
    kind, record = await _locate(record_id)
    current = record.status
    if kind == "quote" and record.order_id:
        raise ConflictError(
            f"quote {record_id} was converted to order {record.order_id}; update the order"
        )
    validate_transition(current, target)
    if kind == "quote" and target is S.PROCESSING and current == S.APPROVED.value:
        order_id = await rpc.convert_quote_to_order(record_id)
        _logger.info(f"Quote {record_id} moved to processing as order {order_id} by {state.admin_id}")
        return True
    _check_record_phase(kind, current, target)
    if kind == "quote":
        updated = await rpc.update_quote_status(record_id, target.value, current, when)
    else:
        updated = await rpc.update_order_status(record_id, target.value, current, when)
    if not updated:
        raise ConflictError(f"{kind} {record_id} changed while it was being updated")
    _logger.info(f"{kind.capitalize()} {record_id}: {current} -> {target.value} by {state.admin_id}")
    return True


async def attach_quote(
    record_id: str,
    price,
    notes: Optional[str],
    expires_at: Optional[datetime],
    actor: "SessionContext",
) -> Quote:
    """
    Record the admin's price, notes and expiry on a quote. Status is left
    alone; sending the quote is a separate transition to quote_sent.
    """
    await authorize(actor, "process_orders")
    try:
        quoted_price = to_money(price)
    except ValueError as exc:
        raise ValidationError(str(exc)) from None
    if quoted_price < 0:
        raise ValidationError("quoted price must be >= 0")
    quote = await crud.get_quote(record_id)
    if quote is None:
        raise NotFoundError(f"quote {record_id} not found")
    if quote.order_id:
        raise ConflictError(f"quote {record_id} was already converted to an order")
    if is_terminal(quote.status):
        raise ValidationError(f"quote {record_id} is {quote.status}; it cannot be quoted")
    await crud.set_quote_terms(record_id, quoted_price, notes, expires_at)
    return await crud.get_quote(record_id)


async def convert_quote_to_order(quote_id: str, actor: "SessionContext") -> str:
    """Turn an approved quote into an order that starts in 'processing'."""
    await authorize(actor, "process_orders")
    return await rpc.convert_quote_to_order(quote_id)


# ---------------------------
# Reads
# ---------------------------


@dataclass(frozen=True)
class CustomerHistory:
    quotes: Tuple[Quote, ...] = ()
    orders: Tuple[Order, ...] = ()


async def list_quotes(actor: "SessionContext") -> ReadResult[List[Quote]]:
    await authorize(actor, "process_orders")
    return await read_or_empty("quotes", crud.list_quotes, [])


async def list_orders(actor: "SessionContext") -> ReadResult[List[Order]]:
    await authorize(actor, "process_orders")
    return await read_or_empty("orders", crud.list_orders, [])


async def get_order_detail(
    order_id: str, ctx: "SessionContext"
) -> Tuple[Order, List[OrderItem]]:
    """The order and its lines, for its owner or an order-processing admin."""
    order = await crud.get_order(order_id)
    if order is None:
        raise NotFoundError(f"order {order_id} not found")
    is_owner = ctx.user_id is not None and order.user_id == ctx.user_id
    if not is_owner:
        try:
            await authorize(ctx, "process_orders")
        except AuthorizationError:
            raise AuthorizationError("not allowed to view this order") from None
    return order, await crud.list_order_items(order_id)


async def customer_history(ctx: "SessionContext") -> ReadResult[CustomerHistory]:
    """The signed-in customer's own quotes and orders, newest first."""
    if not ctx.is_authenticated:
        raise AuthorizationError("sign in to see your quotes and orders")

    async def fetch() -> CustomerHistory:
        quotes = await crud.list_quotes(ctx.user_id)
        orders = await crud.list_orders(ctx.user_id)
        return CustomerHistory(tuple(quotes), tuple(orders))

    return await read_or_empty("customer history", fetch, CustomerHistory())
