# provide dataclass models

from __future__ import annotations

from dataclasses import dataclass, field, fields
from datetime import datetime
from decimal import Decimal
from typing import Dict, Optional, Tuple

from utils.errors import ValidationError
from utils.pure import looks_like_email

ADMIN_STATUSES = ("pending", "approved", "rejected")
PRIVILEGE_NAMES = (
    "manage_products",
    "process_orders",
    "access_clients",
    "view_statistics",
)


# ---------------------------
# Identity
# ---------------------------


@dataclass(frozen=True)
class AuthUser:
    id: str
    email: str
    name: Optional[str]
    created_at: datetime


@dataclass(frozen=True)
class AuthSession:
    user: AuthUser
    access_token: str
    issued_at: datetime


@dataclass(frozen=True)
class BillingAddress:
    street: str = ""
    city: str = ""
    state: str = ""
    zip_code: str = ""
    country: str = "United States"

    @classmethod
    def parse(cls, raw: Optional[dict]) -> Optional["BillingAddress"]:
        """Accept a mapping with exactly the known keys; anything else is rejected."""
        if raw is None:
            return None
        if not isinstance(raw, dict):
            raise ValidationError("address must be a mapping")
        known = {f.name for f in fields(cls)}
        unknown = set(raw) - known
        if unknown:
            raise ValidationError(f"unknown address fields: {sorted(unknown)}")
        values = {}
        for key, value in raw.items():
            if value is not None and not isinstance(value, str):
                raise ValidationError(f"address field '{key}' must be text")
            values[key] = (value or "").strip()
        return cls(**values)

    def to_dict(self) -> Dict[str, str]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


# shipping and billing addresses share one shape
ShippingAddress = BillingAddress


@dataclass(frozen=True)
class Profile:
    id: str
    name: Optional[str]
    email: Optional[str]
    phone: Optional[str]
    company: Optional[str]
    billing_address: Optional[BillingAddress]
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True)
class ContactSnapshot:
    """
    Requester details copied onto a quote or order when it is submitted.

    This is a copy, not a reference to the profile: later profile edits never
    change what a historical quote shows.
    """

    name: str
    email: str
    phone: Optional[str] = None
    company: Optional[str] = None
    message: Optional[str] = None

    @classmethod
    def parse(
        cls,
        name: Optional[str],
        email: Optional[str],
        phone: Optional[str] = None,
        company: Optional[str] = None,
        message: Optional[str] = None,
        require_phone: bool = False,
    ) -> "ContactSnapshot":
        def clean(value: Optional[str]) -> Optional[str]:
            if value is None:
                return None
            if not isinstance(value, str):
                raise ValidationError("contact fields must be text")
            value = value.strip()
            return value or None

        name, email = clean(name), clean(email)
        phone, company, message = clean(phone), clean(company), clean(message)
        if not name:
            raise ValidationError("contact name is required")
        if not email:
            raise ValidationError("contact email is required")
        if not looks_like_email(email):
            raise ValidationError(f"invalid contact email: {email!r}")
        if require_phone and not phone:
            raise ValidationError("a phone number is required")
        return cls(name=name, email=email, phone=phone, company=company, message=message)

    def to_dict(self) -> Dict[str, Optional[str]]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


# ---------------------------
# Admin accounts
# ---------------------------


@dataclass(frozen=True)
class Privileges:
    manage_products: bool = False
    process_orders: bool = False
    access_clients: bool = False
    view_statistics: bool = False

    @classmethod
    def none(cls) -> "Privileges":
        return cls()

    @classmethod
    def all(cls) -> "Privileges":
        return cls(True, True, True, True)

    def names(self) -> Tuple[str, ...]:
        return tuple(name for name in PRIVILEGE_NAMES if getattr(self, name))


@dataclass(frozen=True)
class AdminAccount:
    id: str
    user_id: str
    name: Optional[str]
    status: str  # "pending" | "approved" | "rejected"
    is_super_admin: bool
    privileges: Privileges
    created_at: datetime
    approved_at: Optional[datetime]
    approved_by: Optional[str]


@dataclass(frozen=True)
class AdminState:
    """
    What the client may assume about an identity's admin standing.

    status is "none" when the identity has no admin account. Privileges and
    the super-admin flag are already masked unless status == "approved".
    """

    status: str = "none"
    is_super_admin: bool = False
    privileges: Privileges = field(default_factory=Privileges.none)
    admin_id: Optional[str] = None
    user_id: Optional[str] = None

    @property
    def is_approved(self) -> bool:
        return self.status == "approved"

    def has_privilege(self, name: str) -> bool:
        if not self.is_approved or name not in PRIVILEGE_NAMES:
            return False
        return self.is_super_admin or bool(getattr(self.privileges, name))


# ---------------------------
# Catalog
# ---------------------------


@dataclass(frozen=True)
class Product:
    id: str
    name: str
    description: Optional[str]
    full_description: Optional[str]
    price: Decimal
    category: Optional[str]
    image_url: Optional[str]
    additional_images: Tuple[str, ...]
    in_stock: bool
    is_featured: bool
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True)
class Category:
    id: str
    name: str
    description: str
    products: Tuple[Product, ...]


@dataclass(frozen=True)
class Project:
    id: str
    name: str
    description: Optional[str]
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True)
class GalleryItem:
    id: str
    title: str
    description: Optional[str]
    image_url: str
    project_id: Optional[str]
    created_at: datetime
    updated_at: datetime


# ---------------------------
# Quotes & orders
# ---------------------------


@dataclass(frozen=True)
class Quote:
    id: str
    product_id: str
    quantity: int
    contact: ContactSnapshot
    status: str
    estimated_total: Decimal
    quoted_price: Optional[Decimal]
    quoted_at: Optional[datetime]
    expires_at: Optional[datetime]
    admin_notes: Optional[str]
    user_id: Optional[str]
    order_id: Optional[str]
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True)
class Order:
    id: str
    user_id: Optional[str]
    status: str
    total_amount: Decimal
    contact: Optional[ContactSnapshot]
    shipping_address: Optional[ShippingAddress]
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True)
class OrderItem:
    id: str
    order_id: str
    product_id: str
    quantity: int
    price_at_purchase: Decimal  # unit price at time of order
    created_at: datetime


@dataclass(frozen=True)
class LineItem:
    """A (unit price, quantity) pair fed into order total computation."""

    price_at_purchase: Decimal
    quantity: int


# ---------------------------
# Analytics
# ---------------------------


@dataclass(frozen=True)
class VisitEvent:
    id: str
    visitor_id: str
    page: str
    user_agent: Optional[str]
    created_at: datetime


@dataclass(frozen=True)
class Customer:
    id: str
    name: Optional[str]
    email: Optional[str]
    created_at: datetime
    order_count: int
    total_spent: Decimal
