"""
Read-side analytics.

Visitor numbers are always recomputed from the raw visits log; there is no
counters table to keep in sync.
"""
from __future__ import annotations

import os
from collections import Counter
from dataclasses import dataclass, field
from datetime import date, datetime, time, timezone
from decimal import Decimal
from typing import TYPE_CHECKING, Dict, List, Optional, Tuple

import backend.crud as crud
from backend.models import VisitEvent
from services.admin_auth import authorize
from utils.config import get_settings
from utils.errors import BackendError
from utils.logger import get_logger
from utils.pure import last_n_days, month_key, month_label, new_id, sum_money, to_money, utc_now

if TYPE_CHECKING:
    from utils.state import SessionContext

_logger = get_logger(__name__)

DAYS_IN_SERIES = 7


# ---------------------------
# Visitor identity
# ---------------------------


class VisitorIdStore:
    """
    The visitor identifier a client keeps between sessions.

    Generated once (random UUID), written to a file and reused from then on.
    """

    def __init__(self, path: Optional[str] = None) -> None:
        self.path = path or get_settings().visitor_id_file
        self._cached: Optional[str] = None

    def get_or_create(self) -> str:
        if self._cached:
            return self._cached
        visitor_id = self._read()
        if not visitor_id:
            visitor_id = new_id()
            self._write(visitor_id)
        self._cached = visitor_id
        return visitor_id

    def _read(self) -> Optional[str]:
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                return f.read().strip() or None
        except FileNotFoundError:
            return None
        except ValueError as exc:
            # unreadable contents get replaced by a fresh id
            _logger.warning(f"Ignoring unreadable visitor id in {self.path}: {exc}")
            return None

    def _write(self, visitor_id: str) -> None:
        directory = os.path.dirname(self.path)
        try:
            if directory:
                os.makedirs(directory, exist_ok=True)
            with open(self.path, "w", encoding="utf-8") as f:
                f.write(visitor_id)
        except OSError as exc:
            # still usable for this process, just not remembered next time
            _logger.warning(f"Could not persist visitor id to {self.path}: {exc}")


# ---------------------------
# Recording
# ---------------------------


@dataclass(frozen=True)
class VisitResult:
    status: str  # "recorded" | "skipped" | "failed"
    visit_id: Optional[str] = None
    error: Optional[str] = None

    @property
    def recorded(self) -> bool:
        return self.status == "recorded"

    @property
    def skipped(self) -> bool:
        return self.status == "skipped"


def is_admin_path(path: str) -> bool:
    return (path or "").startswith(get_settings().admin_prefix)


async def record_visit(
    path: str,
    user_agent: Optional[str],
    visitor_ids: Optional[VisitorIdStore] = None,
    when: Optional[datetime] = None,
) -> VisitResult:
    """
    Log one page view. Back-office paths are skipped; failures are logged and
    reported in the result, never raised.
    """
    if is_admin_path(path):
        return VisitResult(status="skipped")
    visitor_ids = visitor_ids or VisitorIdStore()
    try:
        visitor_id = visitor_ids.get_or_create()
        visit_id = await crud.insert_visit(visitor_id, path, user_agent, when)
    except (BackendError, OSError) as exc:
        _logger.error(f"Error recording page visit to {path}: {exc}")
        return VisitResult(status="failed", error=str(exc))
    return VisitResult(status="recorded", visit_id=visit_id)


# ---------------------------
# Visitor statistics
# ---------------------------


@dataclass(frozen=True)
class DailyVisits:
    date: date
    visits: int

    @property
    def label(self) -> str:
        return self.date.isoformat()


@dataclass(frozen=True)
class VisitorStats:
    """
    Dashboard numbers. When success is False every count is zero and every
    collection empty; callers must check success before trusting them.
    """

    success: bool
    unique_visitor_count: int = 0
    total_page_views: int = 0
    page_views_by_page: Dict[str, int] = field(default_factory=dict)
    recent_visits: Tuple[VisitEvent, ...] = ()
    daily_visits_data: Tuple[DailyVisits, ...] = ()
    error: Optional[str] = None


def daily_series(times: List[datetime], today: date) -> Tuple[DailyVisits, ...]:
    """Exactly DAYS_IN_SERIES buckets ending today, zero-filled, oldest first."""
    days = last_n_days(today, DAYS_IN_SERIES)
    counts = {day: 0 for day in days}
    for moment in times:
        day = moment.astimezone(timezone.utc).date()
        if day in counts:
            counts[day] += 1
    return tuple(DailyVisits(date=day, visits=counts[day]) for day in days)


async def compute_stats(
    actor: "SessionContext", today: Optional[date] = None
) -> VisitorStats:
    """Visitor dashboard numbers; needs view_statistics (or super-admin)."""
    await authorize(actor, "view_statistics")
    today = today or utc_now().date()
    window_start = datetime.combine(
        last_n_days(today, DAYS_IN_SERIES)[0], time.min, tzinfo=timezone.utc
    )
    try:
        unique = len(set(await crud.visitor_ids()))
        total = await crud.count_visits()
        by_page = await crud.page_view_counts()
        recent = await crud.recent_visits(get_settings().recent_visits)
        window = await crud.visit_times_since(window_start)
    except BackendError as exc:
        _logger.error(f"Error fetching visitor stats: {exc}")
        return VisitorStats(success=False, error=str(exc))
    return VisitorStats(
        success=True,
        unique_visitor_count=unique,
        total_page_views=total,
        page_views_by_page=by_page,
        recent_visits=tuple(recent),
        daily_visits_data=daily_series(window, today),
    )


# ---------------------------
# Order statistics
# ---------------------------


@dataclass(frozen=True)
class MonthlyOrders:
    month: str  # "Oct 2026"
    orders: int
    revenue: Decimal


@dataclass(frozen=True)
class OrderAnalytics:
    """
    Quotes and orders counted together. Revenue is order totals plus quoted
    prices; a quote without a price yet contributes zero.
    """

    success: bool
    total_revenue: Decimal = Decimal("0.00")
    total_orders: int = 0
    average_order_value: Decimal = Decimal("0.00")
    orders_by_status: Dict[str, int] = field(default_factory=dict)
    orders_by_month: Tuple[MonthlyOrders, ...] = ()
    error: Optional[str] = None


async def compute_order_analytics(actor: "SessionContext") -> OrderAnalytics:
    await authorize(actor, "view_statistics")
    try:
        orders = await crud.list_orders()
        quotes = await crud.list_quotes()
    except BackendError as exc:
        _logger.error(f"Error fetching order analytics: {exc}")
        return OrderAnalytics(success=False, error=str(exc))

    items: List[Tuple[str, datetime, Decimal]] = [
        (o.status, o.created_at, o.total_amount) for o in orders
    ] + [
        (q.status, q.created_at, q.quoted_price or Decimal("0")) for q in quotes
    ]
    if not items:
        return OrderAnalytics(success=True)

    revenue = sum_money(amount for _, _, amount in items)
    by_status = Counter(status or "unknown" for status, _, _ in items)

    months: Dict[Tuple[int, int], List[Decimal]] = {}
    for _, created_at, amount in items:
        months.setdefault(month_key(created_at), []).append(amount)
    monthly = tuple(
        MonthlyOrders(month=month_label(*key), orders=len(amounts), revenue=sum_money(amounts))
        for key, amounts in sorted(months.items())
    )

    return OrderAnalytics(
        success=True,
        total_revenue=revenue,
        total_orders=len(items),
        average_order_value=to_money(revenue / len(items)),
        orders_by_status=dict(by_status),
        orders_by_month=monthly,
    )
