# src/backend/rpc.py
# Named remote procedures. Each one runs as a single transaction on the
# store side, so callers never observe a half-applied change.
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional, Sequence, Tuple

import backend.crud as crud
from backend import models
from backend.database import ConstraintViolation, transaction
from utils.errors import (
    AuthorizationError,
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from utils.logger import get_logger
from utils.pure import line_total, money_str, new_id, sum_money, to_iso, to_money, utc_now

_logger = get_logger(__name__)


def _check_quantity(quantity) -> int:
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise ValidationError("quantity must be a whole number")
    if quantity < 1:
        raise ValidationError("quantity must be at least 1")
    return quantity


def _line_total(price, quantity: int) -> Decimal:
    try:
        return line_total(price, quantity)
    except ValueError as exc:
        raise ValidationError(str(exc)) from None


async def _product_price(conn, product_id: str) -> Decimal:
    row = await crud._fetch_one(
        conn, "SELECT price FROM products WHERE id = ?;", (product_id,)
    )
    if not row:
        raise NotFoundError(f"product {product_id} not found")
    return Decimal(row["price"])


# ---------------------------
# Admin accounts
# ---------------------------


async def register_admin_user(user_id: str, admin_name: str) -> str:
    """
    Bind a new pending admin account to user_id and return its id.

    The account starts with every privilege off and is never a super-admin.
    """
    admin_id = new_id()
    try:
        async with transaction() as conn:
            row = await crud._fetch_one(
                conn, "SELECT 1 FROM auth_users WHERE id = ?;", (user_id,)
            )
            if not row:
                raise NotFoundError(f"user {user_id} not found")
            row = await crud._fetch_one(
                conn, "SELECT id FROM admin_users WHERE user_id = ?;", (user_id,)
            )
            if row:
                raise ConflictError(f"user {user_id} already has an admin account")
            await conn.execute(
                """
                INSERT INTO admin_users(id, user_id, name, status, is_super_admin,
                    can_manage_products, can_process_orders,
                    can_access_clients, can_view_statistics, created_at)
                VALUES (?, ?, ?, 'pending', 0, 0, 0, 0, 0, ?);
                """,
                (admin_id, user_id, admin_name, to_iso(utc_now())),
            )
    except ConstraintViolation as exc:
        # lost a race with a concurrent registration for the same user
        raise ConflictError(f"user {user_id} already has an admin account") from exc
    _logger.info(f"Registered pending admin {admin_id} for user {user_id}")
    return admin_id


async def approve_admin_user(
    admin_id_to_approve: str,
    approver_user_id: str,
    grant_manage_products: bool = False,
    grant_process_orders: bool = False,
    grant_access_clients: bool = False,
    grant_view_statistics: bool = False,
) -> bool:
    """
    Approve a pending account and set its four privilege flags exactly as given.

    The approver must be an approved super-admin. Status, timestamps, approver
    and flags are written by one statement; on any failure nothing changes.
    """
    async with transaction() as conn:
        approver = await crud._fetch_one(
            conn,
            "SELECT id, status, is_super_admin FROM admin_users WHERE user_id = ?;",
            (approver_user_id,),
        )
        if (
            not approver
            or approver["status"] != "approved"
            or not approver["is_super_admin"]
        ):
            raise AuthorizationError("only an approved super admin can approve admins")

        target = await crud._fetch_one(
            conn, "SELECT status FROM admin_users WHERE id = ?;", (admin_id_to_approve,)
        )
        if not target:
            raise NotFoundError(f"admin account {admin_id_to_approve} not found")
        if target["status"] != "pending":
            raise InvalidTransitionError(target["status"], "approved")

        res = await conn.execute(
            """
            UPDATE admin_users
            SET status = 'approved',
                approved_at = ?,
                approved_by = ?,
                can_manage_products = ?,
                can_process_orders = ?,
                can_access_clients = ?,
                can_view_statistics = ?
            WHERE id = ? AND status = 'pending';
            """,
            (
                to_iso(utc_now()),
                approver["id"],
                int(bool(grant_manage_products)),
                int(bool(grant_process_orders)),
                int(bool(grant_access_clients)),
                int(bool(grant_view_statistics)),
                admin_id_to_approve,
            ),
        )
        approved = res.rowcount == 1
    if approved:
        _logger.info(f"Admin {admin_id_to_approve} approved by {approver['id']}")
    return approved


# ---------------------------
# Quotes
# ---------------------------


async def submit_quote_request(
    product_id: str,
    quantity: int,
    name: str,
    email: str,
    phone: Optional[str] = None,
    company: Optional[str] = None,
    message: Optional[str] = None,
    user_id: Optional[str] = None,
) -> str:
    """Legacy entry point: the caller supplies the whole contact snapshot."""
    quantity = _check_quantity(quantity)
    contact = models.ContactSnapshot.parse(name, email, phone, company, message)
    async with transaction() as conn:
        price = await _product_price(conn, product_id)
        return await crud.insert_quote(
            conn, product_id, quantity, contact, _line_total(price, quantity), user_id
        )


async def submit_quote_request_with_contact(
    user_id: str,
    product_id: str,
    quantity: int,
    message: Optional[str] = None,
    phone: Optional[str] = None,
    company: Optional[str] = None,
) -> str:
    """
    Authenticated entry point: name and email come from the caller's profile,
    phone and company from the arguments or, failing that, the profile.
    A phone number is mandatory here.
    """
    if not user_id:
        raise AuthorizationError("sign in to request a quote")
    quantity = _check_quantity(quantity)
    async with transaction() as conn:
        profile = await crud._fetch_one(
            conn,
            "SELECT name, email, phone, company FROM profiles WHERE id = ?;",
            (user_id,),
        )
        if not profile:
            raise NotFoundError(f"profile for user {user_id} not found")
        contact = models.ContactSnapshot.parse(
            profile["name"] or profile["email"],
            profile["email"],
            phone if phone and phone.strip() else profile["phone"],
            company if company and company.strip() else profile["company"],
            message,
            require_phone=True,
        )
        price = await _product_price(conn, product_id)
        return await crud.insert_quote(
            conn, product_id, quantity, contact, _line_total(price, quantity), user_id
        )


async def update_quote_status(
    quote_id: str,
    new_status: str,
    expected_status: Optional[str] = None,
    when: Optional[datetime] = None,
) -> bool:
    return await _update_status("quotes", quote_id, new_status, expected_status, when)


# ---------------------------
# Orders
# ---------------------------


async def update_order_status(
    order_id_param: str,
    new_status: str,
    expected_status: Optional[str] = None,
    when: Optional[datetime] = None,
) -> bool:
    return await _update_status("orders", order_id_param, new_status, expected_status, when)


async def _update_status(
    table: str,
    record_id: str,
    new_status: str,
    expected_status: Optional[str],
    when: Optional[datetime],
) -> bool:
    """
    Write a status (guarded by expected_status when given). Entering
    quote_sent on a quote also stamps quoted_at, and a converted quote is
    never written. Returns False when the row is missing or its status
    changed underneath.
    """
    now = to_iso(when or utc_now())
    assignments = "status = ?, updated_at = ?"
    params = [new_status, now]
    if table == "quotes" and new_status == "quote_sent":
        assignments += ", quoted_at = ?"
        params.append(now)
    sql = f"UPDATE {table} SET {assignments} WHERE id = ?"
    params.append(record_id)
    if table == "quotes":
        sql += " AND order_id IS NULL"
    if expected_status is not None:
        sql += " AND status = ?"
        params.append(expected_status)
    async with transaction() as conn:
        res = await conn.execute(sql + ";", params)
        return res.rowcount > 0


async def create_order(
    user_id: Optional[str],
    items: Sequence[Tuple[str, int]],
    contact: Optional[models.ContactSnapshot],
    shipping_address: Optional[models.ShippingAddress],
    status: str = "pending",
) -> str:
    """
    Create an order from (product_id, quantity) pairs at current catalog
    prices. The order row and all its lines are written together.
    """
    if not items:
        raise ValidationError("an order needs at least one item")
    async with transaction() as conn:
        lines = []
        for product_id, quantity in items:
            quantity = _check_quantity(quantity)
            lines.append((product_id, quantity, await _product_price(conn, product_id)))
        try:
            total = sum_money(_line_total(price, qty) for _, qty, price in lines)
        except ValueError as exc:
            raise ValidationError(str(exc)) from None
        order_id = await crud.insert_order(
            conn, user_id, status, total, contact, shipping_address, lines
        )
    _logger.info(f"Order {order_id} created ({len(lines)} lines, total {money_str(total)})")
    return order_id


async def convert_quote_to_order(quote_id: str) -> str:
    """
    Turn an approved quote into an order in 'processing'.

    quoted_price is the price for the whole quantity, so the line is priced
    at quoted_price / quantity, which must come out in whole cents; without
    a quoted price the current catalog price is used. The quote keeps its
    status and gains the order id.
    """
    async with transaction() as conn:
        row = await crud._fetch_one(conn, "SELECT * FROM quotes WHERE id = ?;", (quote_id,))
        if not row:
            raise NotFoundError(f"quote {quote_id} not found")
        quote = crud._quote_from_row(row)
        if quote.order_id:
            raise ConflictError(f"quote {quote_id} was already converted")
        if quote.status != "approved":
            raise InvalidTransitionError(quote.status, "processing")
        if quote.quoted_price is not None:
            unit_price = to_money(quote.quoted_price / quote.quantity)
            if line_total(unit_price, quote.quantity) != quote.quoted_price:
                raise ValidationError(
                    f"quoted price {quote.quoted_price} does not split into whole "
                    f"cents across {quote.quantity} units"
                )
        else:
            unit_price = await _product_price(conn, quote.product_id)
        total = _line_total(unit_price, quote.quantity)
        order_id = await crud.insert_order(
            conn,
            quote.user_id,
            "processing",
            total,
            quote.contact,
            None,
            [(quote.product_id, quote.quantity, unit_price)],
        )
        res = await conn.execute(
            "UPDATE quotes SET order_id = ?, updated_at = ? WHERE id = ? AND order_id IS NULL;",
            (order_id, to_iso(utc_now()), quote_id),
        )
        if res.rowcount != 1:
            raise ConflictError(f"quote {quote_id} was already converted")
    _logger.info(f"Quote {quote_id} converted to order {order_id}")
    return order_id
