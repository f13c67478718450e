import re
import uuid
from datetime import date, datetime, timedelta, timezone
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Iterable, List, Optional, Tuple, Union

CENT = Decimal("0.01")

Money = Union[Decimal, int, float, str]


def to_decimal(value: Money) -> Decimal:
    """
    Convert a price-like value to an exact, unrounded Decimal.

    Floats go through str() so 19.99 stays 19.99 instead of its binary
    approximation. Raises ValueError for anything that is not a finite number.
    """
    if isinstance(value, Decimal):
        amount = value
    else:
        try:
            amount = Decimal(str(value).strip())
        except InvalidOperation:
            raise ValueError(f"not a monetary amount: {value!r}") from None
    if not amount.is_finite():
        raise ValueError(f"not a monetary amount: {value!r}")
    return amount


def to_money(value: Money) -> Decimal:
    """Convert a price-like value to a Decimal quantized to cents."""
    amount = to_decimal(value)
    try:
        return amount.quantize(CENT, rounding=ROUND_HALF_UP)
    except ArithmeticError:
        raise ValueError(f"monetary amount out of range: {value!r}") from None


def money_str(value: Money) -> str:
    """Canonical text form used when persisting money ('19.99')."""
    return str(to_money(value))


def line_total(price: Money, quantity: int) -> Decimal:
    """price * quantity, multiplied exactly and rounded to cents once."""
    try:
        product = to_decimal(price) * quantity
    except ArithmeticError:
        raise ValueError(f"line total out of range: {price!r} x {quantity}") from None
    return to_money(product)


def sum_money(amounts: Iterable[Money]) -> Decimal:
    total = Decimal("0")
    try:
        for amount in amounts:
            total += to_money(amount)
    except ArithmeticError:
        raise ValueError("sum of amounts out of range") from None
    return to_money(total)


def new_id() -> str:
    """Random globally-unique identifier, used for every record key."""
    return str(uuid.uuid4())


def utc_now() -> datetime:
    """Return a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def to_iso(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    # fixed width, always UTC, so stored strings sort chronologically
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def from_iso(value: Optional[str]) -> Optional[datetime]:
    if value is None or value == "":
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def last_n_days(today: date, n: int = 7) -> List[date]:
    """Calendar days from today-(n-1) through today, oldest first."""
    return [today - timedelta(days=offset) for offset in range(n - 1, -1, -1)]


def month_key(moment: datetime) -> Tuple[int, int]:
    return moment.year, moment.month


def month_label(year: int, month: int) -> str:
    """'Oct 2026' style label."""
    return f"{date(year, month, 1):%b} {year}"


def slugify(text: str) -> str:
    """'Diagnostic Equipment' -> 'diagnostic-equipment'."""
    return re.sub(r"\s+", "-", text.strip().lower())


_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def looks_like_email(value: str) -> bool:
    return bool(_EMAIL_RE.match(value or ""))
