# src/backend/crud.py
from __future__ import annotations

import json
from datetime import datetime
from decimal import Decimal
from sqlite3 import Row
from typing import Dict, List, Optional, Sequence, Tuple

import aiosqlite

from backend import models
from backend.database import ConstraintViolation, connect, transaction
from utils.errors import ConflictError, NotFoundError, ValidationError
from utils.pure import from_iso, money_str, new_id, to_iso, to_money, utc_now


def _to_bool(val) -> bool:
    return bool(val) if val is not None else False


def _json_or_none(value) -> Optional[str]:
    return json.dumps(value) if value is not None else None


# ---------------------------
# Row mapping
# ---------------------------


def _privileges_from_row(row: Row) -> models.Privileges:
    return models.Privileges(
        manage_products=_to_bool(row["can_manage_products"]),
        process_orders=_to_bool(row["can_process_orders"]),
        access_clients=_to_bool(row["can_access_clients"]),
        view_statistics=_to_bool(row["can_view_statistics"]),
    )


def _admin_from_row(row: Row) -> models.AdminAccount:
    return models.AdminAccount(
        id=row["id"],
        user_id=row["user_id"],
        name=row["name"],
        status=row["status"],
        is_super_admin=_to_bool(row["is_super_admin"]),
        privileges=_privileges_from_row(row),
        created_at=from_iso(row["created_at"]),
        approved_at=from_iso(row["approved_at"]),
        approved_by=row["approved_by"],
    )


def _product_from_row(row: Row) -> models.Product:
    return models.Product(
        id=row["id"],
        name=row["name"],
        description=row["description"],
        full_description=row["full_description"],
        price=Decimal(row["price"]),
        category=row["category"],
        image_url=row["image_url"],
        additional_images=tuple(json.loads(row["additional_images"] or "[]")),
        in_stock=_to_bool(row["in_stock"]),
        is_featured=_to_bool(row["is_featured"]),
        created_at=from_iso(row["created_at"]),
        updated_at=from_iso(row["updated_at"]),
    )


def _project_from_row(row: Row) -> models.Project:
    return models.Project(
        id=row["id"],
        name=row["name"],
        description=row["description"],
        created_at=from_iso(row["created_at"]),
        updated_at=from_iso(row["updated_at"]),
    )


def _gallery_from_row(row: Row) -> models.GalleryItem:
    return models.GalleryItem(
        id=row["id"],
        title=row["title"],
        description=row["description"],
        image_url=row["image_url"],
        project_id=row["project_id"],
        created_at=from_iso(row["created_at"]),
        updated_at=from_iso(row["updated_at"]),
    )


def _profile_from_row(row: Row) -> models.Profile:
    billing = row["billing_address"]
    return models.Profile(
        id=row["id"],
        name=row["name"],
        email=row["email"],
        phone=row["phone"],
        company=row["company"],
        billing_address=models.BillingAddress.parse(json.loads(billing))
        if billing
        else None,
        created_at=from_iso(row["created_at"]),
        updated_at=from_iso(row["updated_at"]),
    )


def _quote_from_row(row: Row) -> models.Quote:
    quoted = row["quoted_price"]
    return models.Quote(
        id=row["id"],
        product_id=row["product_id"],
        quantity=int(row["quantity"]),
        contact=models.ContactSnapshot(
            name=row["name"],
            email=row["email"],
            phone=row["phone"],
            company=row["company"],
            message=row["message"],
        ),
        status=row["status"],
        estimated_total=Decimal(row["estimated_total"]),
        quoted_price=Decimal(quoted) if quoted is not None else None,
        quoted_at=from_iso(row["quoted_at"]),
        expires_at=from_iso(row["expires_at"]),
        admin_notes=row["admin_notes"],
        user_id=row["user_id"],
        order_id=row["order_id"],
        created_at=from_iso(row["created_at"]),
        updated_at=from_iso(row["updated_at"]),
    )


def _order_from_row(row: Row) -> models.Order:
    contact = row["contact_details"]
    shipping = row["shipping_address"]
    return models.Order(
        id=row["id"],
        user_id=row["user_id"],
        status=row["status"],
        total_amount=Decimal(row["total_amount"]),
        contact=models.ContactSnapshot(**json.loads(contact)) if contact else None,
        shipping_address=models.ShippingAddress.parse(json.loads(shipping))
        if shipping
        else None,
        created_at=from_iso(row["created_at"]),
        updated_at=from_iso(row["updated_at"]),
    )


def _order_item_from_row(row: Row) -> models.OrderItem:
    return models.OrderItem(
        id=row["id"],
        order_id=row["order_id"],
        product_id=row["product_id"],
        quantity=int(row["quantity"]),
        price_at_purchase=Decimal(row["price_at_purchase"]),
        created_at=from_iso(row["created_at"]),
    )


def _visit_from_row(row: Row) -> models.VisitEvent:
    return models.VisitEvent(
        id=row["id"],
        visitor_id=row["visitor_id"],
        page=row["page"],
        user_agent=row["user_agent"],
        created_at=from_iso(row["created_at"]),
    )


async def _fetch_one(conn: aiosqlite.Connection, sql: str, params: Sequence = ()):
    cur = await conn.execute(sql, params)
    row = await cur.fetchone()
    await cur.close()
    return row


# ---------------------------
# Auth users & profiles
# ---------------------------


async def email_available(email: str) -> bool:
    """True if no auth user already registered with the given email."""
    async with connect() as conn:
        row = await _fetch_one(
            conn, "SELECT 1 FROM auth_users WHERE email = ? LIMIT 1;", (email,)
        )
        return row is None


async def insert_auth_user(
    email: str, password_hash: str, name: Optional[str]
) -> models.AuthUser:
    """Create an auth user and its profile row in one transaction."""
    uid = new_id()
    now = to_iso(utc_now())
    try:
        async with transaction() as conn:
            await conn.execute(
                "INSERT INTO auth_users(id, email, password_hash, name, created_at) VALUES (?, ?, ?, ?, ?);",
                (uid, email, password_hash, name, now),
            )
            await conn.execute(
                "INSERT INTO profiles(id, name, email, created_at, updated_at) VALUES (?, ?, ?, ?, ?);",
                (uid, name, email, now, now),
            )
    except ConstraintViolation as exc:
        raise ConflictError(f"email already registered: {email}") from exc
    return models.AuthUser(id=uid, email=email, name=name, created_at=from_iso(now))


async def get_auth_user_with_hash(
    email: str,
) -> Tuple[Optional[models.AuthUser], Optional[str]]:
    """Return (user, password_hash) for the email, or (None, None)."""
    async with connect() as conn:
        row = await _fetch_one(
            conn,
            "SELECT id, email, password_hash, name, created_at FROM auth_users WHERE email = ?;",
            (email,),
        )
    if not row:
        return None, None
    user = models.AuthUser(
        id=row["id"],
        email=row["email"],
        name=row["name"],
        created_at=from_iso(row["created_at"]),
    )
    return user, row["password_hash"]


async def get_profile(user_id: str) -> Optional[models.Profile]:
    async with connect() as conn:
        row = await _fetch_one(conn, "SELECT * FROM profiles WHERE id = ?;", (user_id,))
    return _profile_from_row(row) if row else None


async def update_profile(
    user_id: str,
    name: Optional[str] = None,
    phone: Optional[str] = None,
    company: Optional[str] = None,
    billing_address: Optional[models.BillingAddress] = None,
) -> bool:
    """
    Update only the provided profile fields. Return True if a row was updated.
    """
    updates: Dict[str, object] = {}
    if name is not None:
        updates["name"] = name
    if phone is not None:
        updates["phone"] = phone
    if company is not None:
        updates["company"] = company
    if billing_address is not None:
        updates["billing_address"] = json.dumps(billing_address.to_dict())
    if not updates:
        return False
    updates["updated_at"] = to_iso(utc_now())
    assignments = ", ".join(f"{col} = ?" for col in updates)
    async with transaction() as conn:
        res = await conn.execute(
            f"UPDATE profiles SET {assignments} WHERE id = ?;",
            (*updates.values(), user_id),
        )
        return res.rowcount > 0


# ---------------------------
# Admin accounts
# ---------------------------


async def get_admin_by_user_id(user_id: str) -> Optional[models.AdminAccount]:
    async with connect() as conn:
        row = await _fetch_one(
            conn, "SELECT * FROM admin_users WHERE user_id = ?;", (user_id,)
        )
    return _admin_from_row(row) if row else None


async def get_admin(admin_id: str) -> Optional[models.AdminAccount]:
    async with connect() as conn:
        row = await _fetch_one(conn, "SELECT * FROM admin_users WHERE id = ?;", (admin_id,))
    return _admin_from_row(row) if row else None


async def list_admin_users() -> List[models.AdminAccount]:
    """All admin accounts, newest registration first."""
    async with connect() as conn:
        rows = await conn.execute_fetchall(
            "SELECT * FROM admin_users ORDER BY created_at DESC, id;"
        )
    return [_admin_from_row(row) for row in rows]


async def reject_admin_user(admin_id: str) -> bool:
    """
    Move a pending account to rejected and clear its privilege flags.
    Returns False when no pending account with that id exists.
    """
    async with transaction() as conn:
        res = await conn.execute(
            """
            UPDATE admin_users
            SET status = 'rejected',
                can_manage_products = 0,
                can_process_orders = 0,
                can_access_clients = 0,
                can_view_statistics = 0
            WHERE id = ? AND status = 'pending';
            """,
            (admin_id,),
        )
        return res.rowcount > 0


async def bootstrap_super_admin(user_id: str, name: str) -> str:
    """
    Operator-only maintenance: make user_id an approved super-admin.

    This is how the very first super-admin comes to exist; no public flow can
    set is_super_admin.
    """
    now = to_iso(utc_now())
    async with transaction() as conn:
        row = await _fetch_one(
            conn, "SELECT id FROM admin_users WHERE user_id = ?;", (user_id,)
        )
        if row:
            admin_id = row["id"]
            await conn.execute(
                """
                UPDATE admin_users
                SET status = 'approved', is_super_admin = 1,
                    can_manage_products = 1, can_process_orders = 1,
                    can_access_clients = 1, can_view_statistics = 1,
                    approved_at = ?
                WHERE id = ?;
                """,
                (now, admin_id),
            )
        else:
            admin_id = new_id()
            await conn.execute(
                """
                INSERT INTO admin_users(
                    id, user_id, name, status, is_super_admin,
                    can_manage_products, can_process_orders,
                    can_access_clients, can_view_statistics,
                    created_at, approved_at)
                VALUES (?, ?, ?, 'approved', 1, 1, 1, 1, 1, ?, ?);
                """,
                (admin_id, user_id, name, now, now),
            )
    return admin_id


# ---------------------------
# Products
# ---------------------------

_PRODUCT_COLUMNS = (
    "name",
    "description",
    "full_description",
    "price",
    "category",
    "image_url",
    "additional_images",
    "in_stock",
    "is_featured",
)


def _product_values(fields: Dict[str, object]) -> Dict[str, object]:
    """Validate and convert product fields into column values."""
    unknown = set(fields) - set(_PRODUCT_COLUMNS)
    if unknown:
        raise ValidationError(f"unknown product fields: {sorted(unknown)}")
    values: Dict[str, object] = {}
    for key, value in fields.items():
        if key == "name":
            if not value or not str(value).strip():
                raise ValidationError("product name is required")
            values[key] = str(value).strip()
        elif key == "price":
            try:
                price = to_money(value)
            except ValueError as exc:
                raise ValidationError(str(exc)) from None
            if price < 0:
                raise ValidationError("price must be >= 0")
            values[key] = money_str(price)
        elif key == "additional_images":
            values[key] = json.dumps(list(value or []))
        elif key in ("in_stock", "is_featured"):
            values[key] = 1 if value else 0
        else:
            values[key] = value
    return values


async def create_product(
    name: str,
    price,
    description: Optional[str] = None,
    full_description: Optional[str] = None,
    category: Optional[str] = None,
    image_url: Optional[str] = None,
    additional_images: Sequence[str] = (),
    in_stock: bool = True,
    is_featured: bool = False,
) -> models.Product:
    values = _product_values(
        {
            "name": name,
            "price": price,
            "description": description,
            "full_description": full_description,
            "category": category,
            "image_url": image_url,
            "additional_images": additional_images,
            "in_stock": in_stock,
            "is_featured": is_featured,
        }
    )
    pid = new_id()
    now = to_iso(utc_now())
    columns = ", ".join(("id", *values, "created_at", "updated_at"))
    marks = ", ".join("?" * (len(values) + 3))
    async with transaction() as conn:
        await conn.execute(
            f"INSERT INTO products({columns}) VALUES ({marks});",
            (pid, *values.values(), now, now),
        )
    return await get_product(pid)


async def get_product(pid: str) -> Optional[models.Product]:
    """Return the product, or None if not found."""
    async with connect() as conn:
        row = await _fetch_one(conn, "SELECT * FROM products WHERE id = ?;", (pid,))
    return _product_from_row(row) if row else None


async def product_exists(pid: str) -> bool:
    async with connect() as conn:
        row = await _fetch_one(conn, "SELECT 1 FROM products WHERE id = ?;", (pid,))
        return row is not None


async def list_products(featured_only: bool = False) -> List[models.Product]:
    """All products ordered by category then name."""
    sql = "SELECT * FROM products"
    if featured_only:
        sql += " WHERE is_featured = 1"
    sql += " ORDER BY category, name;"
    async with connect() as conn:
        rows = await conn.execute_fetchall(sql)
    return [_product_from_row(row) for row in rows]


async def update_product(pid: str, **fields) -> bool:
    """
    Update only the provided fields. Return True if a row was updated.
    """
    if not fields:
        return False
    values = _product_values(fields)
    values["updated_at"] = to_iso(utc_now())
    assignments = ", ".join(f"{col} = ?" for col in values)
    async with transaction() as conn:
        res = await conn.execute(
            f"UPDATE products SET {assignments} WHERE id = ?;",
            (*values.values(), pid),
        )
        return res.rowcount > 0


async def delete_product(pid: str) -> bool:
    try:
        async with transaction() as conn:
            res = await conn.execute("DELETE FROM products WHERE id = ?;", (pid,))
            return res.rowcount > 0
    except ConstraintViolation as exc:
        raise ConflictError(f"product {pid} is referenced by quotes or orders") from exc


# ---------------------------
# Projects & gallery
# ---------------------------


async def create_project(name: str, description: Optional[str] = None) -> models.Project:
    if not name or not name.strip():
        raise ValidationError("project name is required")
    pid = new_id()
    now = to_iso(utc_now())
    async with transaction() as conn:
        await conn.execute(
            "INSERT INTO projects(id, name, description, created_at, updated_at) VALUES (?, ?, ?, ?, ?);",
            (pid, name.strip(), description, now, now),
        )
    return models.Project(pid, name.strip(), description, from_iso(now), from_iso(now))


async def list_projects() -> List[models.Project]:
    async with connect() as conn:
        rows = await conn.execute_fetchall("SELECT * FROM projects ORDER BY name;")
    return [_project_from_row(row) for row in rows]


async def update_project(pid: str, name: str, description: Optional[str]) -> bool:
    if not name or not name.strip():
        raise ValidationError("project name is required")
    async with transaction() as conn:
        res = await conn.execute(
            "UPDATE projects SET name = ?, description = ?, updated_at = ? WHERE id = ?;",
            (name.strip(), description, to_iso(utc_now()), pid),
        )
        return res.rowcount > 0


async def delete_project(pid: str) -> bool:
    async with transaction() as conn:
        res = await conn.execute("DELETE FROM projects WHERE id = ?;", (pid,))
        return res.rowcount > 0


async def create_gallery_item(
    title: str,
    image_url: str,
    description: Optional[str] = None,
    project_id: Optional[str] = None,
) -> models.GalleryItem:
    if not title or not title.strip():
        raise ValidationError("gallery title is required")
    if not image_url:
        raise ValidationError("gallery image is required")
    gid = new_id()
    now = to_iso(utc_now())
    try:
        async with transaction() as conn:
            await conn.execute(
                """
                INSERT INTO gallery(id, title, description, image_url, project_id, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?);
                """,
                (gid, title.strip(), description, image_url, project_id, now, now),
            )
    except ConstraintViolation as exc:
        raise NotFoundError(f"project {project_id} not found") from exc
    return models.GalleryItem(
        gid, title.strip(), description, image_url, project_id, from_iso(now), from_iso(now)
    )


async def list_gallery(project_id: Optional[str] = None) -> List[models.GalleryItem]:
    """Gallery items newest first, optionally only those of one project."""
    async with connect() as conn:
        if project_id is None:
            rows = await conn.execute_fetchall(
                "SELECT * FROM gallery ORDER BY created_at DESC;"
            )
        else:
            rows = await conn.execute_fetchall(
                "SELECT * FROM gallery WHERE project_id = ? ORDER BY created_at DESC;",
                (project_id,),
            )
    return [_gallery_from_row(row) for row in rows]


async def update_gallery_item(
    gid: str,
    title: str,
    description: Optional[str],
    image_url: str,
    project_id: Optional[str],
) -> bool:
    if not title or not title.strip():
        raise ValidationError("gallery title is required")
    try:
        async with transaction() as conn:
            res = await conn.execute(
                """
                UPDATE gallery
                SET title = ?, description = ?, image_url = ?, project_id = ?, updated_at = ?
                WHERE id = ?;
                """,
                (title.strip(), description, image_url, project_id, to_iso(utc_now()), gid),
            )
            return res.rowcount > 0
    except ConstraintViolation as exc:
        raise NotFoundError(f"project {project_id} not found") from exc


async def delete_gallery_items(ids: Sequence[str]) -> int:
    """Delete the listed gallery items in one statement; returns rows removed."""
    unique = list(dict.fromkeys(ids))
    if not unique:
        return 0
    marks = ", ".join("?" for _ in unique)
    async with transaction() as conn:
        res = await conn.execute(f"DELETE FROM gallery WHERE id IN ({marks});", unique)
        return res.rowcount


# ---------------------------
# Quotes
# ---------------------------


async def insert_quote(
    conn: aiosqlite.Connection,
    product_id: str,
    quantity: int,
    contact: models.ContactSnapshot,
    estimated_total: Decimal,
    user_id: Optional[str],
) -> str:
    """Insert a quote_requested row on an open transaction and return its id."""
    qid = new_id()
    now = to_iso(utc_now())
    await conn.execute(
        """
        INSERT INTO quotes(
            id, product_id, quantity, name, email, phone, company, message,
            status, estimated_total, user_id, created_at, updated_at)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, 'quote_requested', ?, ?, ?, ?);
        """,
        (
            qid,
            product_id,
            quantity,
            contact.name,
            contact.email,
            contact.phone,
            contact.company,
            contact.message,
            money_str(estimated_total),
            user_id,
            now,
            now,
        ),
    )
    return qid


async def get_quote(qid: str) -> Optional[models.Quote]:
    async with connect() as conn:
        row = await _fetch_one(conn, "SELECT * FROM quotes WHERE id = ?;", (qid,))
    return _quote_from_row(row) if row else None


async def list_quotes(user_id: Optional[str] = None) -> List[models.Quote]:
    """Quotes newest first; all of them, or only those owned by user_id."""
    async with connect() as conn:
        if user_id is None:
            rows = await conn.execute_fetchall(
                "SELECT * FROM quotes ORDER BY created_at DESC;"
            )
        else:
            rows = await conn.execute_fetchall(
                "SELECT * FROM quotes WHERE user_id = ? ORDER BY created_at DESC;",
                (user_id,),
            )
    return [_quote_from_row(row) for row in rows]


async def set_quote_terms(
    qid: str,
    quoted_price: Decimal,
    admin_notes: Optional[str],
    expires_at: Optional[datetime],
) -> bool:
    async with transaction() as conn:
        res = await conn.execute(
            """
            UPDATE quotes
            SET quoted_price = ?, admin_notes = ?, expires_at = ?, updated_at = ?
            WHERE id = ?;
            """,
            (money_str(quoted_price), admin_notes, to_iso(expires_at), to_iso(utc_now()), qid),
        )
        return res.rowcount > 0


# ---------------------------
# Orders
# ---------------------------


async def insert_order(
    conn: aiosqlite.Connection,
    user_id: Optional[str],
    status: str,
    total_amount: Decimal,
    contact: Optional[models.ContactSnapshot],
    shipping_address: Optional[models.ShippingAddress],
    lines: Sequence[Tuple[str, int, Decimal]],
) -> str:
    """
    Insert an order and its (product_id, qty, unit price) lines on an open
    transaction. Returns the new order id.
    """
    oid = new_id()
    now = to_iso(utc_now())
    await conn.execute(
        """
        INSERT INTO orders(id, user_id, status, total_amount, contact_details, shipping_address, created_at, updated_at)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?);
        """,
        (
            oid,
            user_id,
            status,
            money_str(total_amount),
            _json_or_none(contact.to_dict() if contact else None),
            _json_or_none(shipping_address.to_dict() if shipping_address else None),
            now,
            now,
        ),
    )
    for pid, qty, price in lines:
        await conn.execute(
            "INSERT INTO order_items(id, order_id, product_id, quantity, price_at_purchase, created_at) VALUES (?, ?, ?, ?, ?, ?);",
            (new_id(), oid, pid, qty, money_str(price), now),
        )
    return oid


async def get_order(oid: str) -> Optional[models.Order]:
    async with connect() as conn:
        row = await _fetch_one(conn, "SELECT * FROM orders WHERE id = ?;", (oid,))
    return _order_from_row(row) if row else None


async def list_orders(user_id: Optional[str] = None) -> List[models.Order]:
    """Orders newest first; all of them, or only those owned by user_id."""
    async with connect() as conn:
        if user_id is None:
            rows = await conn.execute_fetchall(
                "SELECT * FROM orders ORDER BY created_at DESC;"
            )
        else:
            rows = await conn.execute_fetchall(
                "SELECT * FROM orders WHERE user_id = ? ORDER BY created_at DESC;",
                (user_id,),
            )
    return [_order_from_row(row) for row in rows]


async def list_order_items(oid: str) -> List[models.OrderItem]:
    async with connect() as conn:
        rows = await conn.execute_fetchall(
            "SELECT * FROM order_items WHERE order_id = ? ORDER BY created_at, id;",
            (oid,),
        )
    return [_order_item_from_row(row) for row in rows]


# ---------------------------
# Visits
# ---------------------------


async def insert_visit(
    visitor_id: str, page: str, user_agent: Optional[str], when: Optional[datetime] = None
) -> str:
    vid = new_id()
    async with transaction() as conn:
        await conn.execute(
            "INSERT INTO visits(id, visitor_id, page, user_agent, created_at) VALUES (?, ?, ?, ?, ?);",
            (vid, visitor_id, page, user_agent, to_iso(when or utc_now())),
        )
    return vid


async def visitor_ids() -> List[str]:
    """visitor_id of every event, duplicates included."""
    async with connect() as conn:
        rows = await conn.execute_fetchall("SELECT visitor_id FROM visits;")
    return [row[0] for row in rows]


async def count_visits() -> int:
    async with connect() as conn:
        row = await _fetch_one(conn, "SELECT COUNT(*) FROM visits;")
    return int(row[0])


async def page_view_counts() -> Dict[str, int]:
    async with connect() as conn:
        rows = await conn.execute_fetchall(
            "SELECT page, COUNT(*) AS views FROM visits GROUP BY page;"
        )
    return {row["page"]: int(row["views"]) for row in rows}


async def recent_visits(limit: int = 10) -> List[models.VisitEvent]:
    async with connect() as conn:
        rows = await conn.execute_fetchall(
            "SELECT * FROM visits ORDER BY created_at DESC, rowid DESC LIMIT ?;",
            (limit,),
        )
    return [_visit_from_row(row) for row in rows]


async def visit_times_since(since: datetime) -> List[datetime]:
    async with connect() as conn:
        rows = await conn.execute_fetchall(
            "SELECT created_at FROM visits WHERE created_at >= ?;",
            (to_iso(since),),
        )
    return [from_iso(row[0]) for row in rows]


# ---------------------------
# Customers
# ---------------------------


async def list_customers() -> List[models.Customer]:
    """
    Every profile with its order count and total spent, newest customer first.
    """
    async with connect() as conn:
        profiles = await conn.execute_fetchall(
            "SELECT id, name, email, created_at FROM profiles ORDER BY created_at DESC;"
        )
        orders = await conn.execute_fetchall(
            "SELECT user_id, total_amount FROM orders WHERE user_id IS NOT NULL;"
        )
    spent: Dict[str, List[Decimal]] = {}
    for row in orders:
        spent.setdefault(row["user_id"], []).append(Decimal(row["total_amount"]))
    customers = []
    for row in profiles:
        totals = spent.get(row["id"], [])
        customers.append(
            models.Customer(
                id=row["id"],
                name=row["name"],
                email=row["email"],
                created_at=from_iso(row["created_at"]),
                order_count=len(totals),
                total_spent=to_money(sum(totals, Decimal("0"))),
            )
        )
    return customers
