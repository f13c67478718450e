import os
import uuid
from datetime import date, datetime, timezone
from decimal import Decimal
from unittest import mock

from store_case import StoreTestCase

from backend import crud
from backend import database as db_database
from backend.models import Privileges
from services import analytics, lifecycle
from services.analytics import VisitorIdStore
from utils.config import get_settings, override_settings
from utils.errors import AuthorizationError, BackendError
from utils.pure import to_iso

CONTACT = {"name": "Dana Buyer", "email": "dana@example.com"}


def at(day, hour=12):
    return datetime(2026, 10, day, hour, 0, tzinfo=timezone.utc)


class VisitorIdStoreTestCase(StoreTestCase):
    def test_identifier_is_generated_once_and_reused(self):
        path = os.path.join(self.temp_dir.name, "ids", "visitor")
        first = VisitorIdStore(path).get_or_create()
        second = VisitorIdStore(path).get_or_create()
        self.assertEqual(first, second)
        with open(path) as f:
            self.assertEqual(f.read(), first)

        other = VisitorIdStore(os.path.join(self.temp_dir.name, "other")).get_or_create()
        self.assertNotEqual(first, other)

    def test_undecodable_file_is_replaced_with_a_fresh_identifier(self):
        path = os.path.join(self.temp_dir.name, "visitor")
        with open(path, "wb") as f:
            f.write(b"\xff\xfe\xfa")
        visitor_id = VisitorIdStore(path).get_or_create()
        self.assertEqual(str(uuid.UUID(visitor_id)), visitor_id)
        with open(path, encoding="utf-8") as f:
            self.assertEqual(f.read(), visitor_id)


class RecordVisitTestCase(StoreTestCase):
    async def test_admin_paths_are_never_recorded(self):
        result = await analytics.record_visit("/admin/login", "Mozilla/5.0")
        self.assertTrue(result.skipped)
        self.assertEqual(await crud.count_visits(), 0)

        result = await analytics.record_visit("/products", "Mozilla/5.0")
        self.assertTrue(result.recorded)
        self.assertEqual(await crud.count_visits(), 1)

    async def test_admin_prefix_comes_from_settings(self):
        override_settings(admin_prefix="/backoffice")
        self.assertTrue((await analytics.record_visit("/backoffice/orders", None)).skipped)
        self.assertTrue((await analytics.record_visit("/admin", None)).recorded)

    async def test_store_failure_is_reported_not_raised(self):
        with mock.patch.object(
            crud, "insert_visit", mock.AsyncMock(side_effect=BackendError("down"))
        ):
            result = await analytics.record_visit("/", "agent")
        self.assertEqual(result.status, "failed")
        self.assertIn("down", result.error)

    async def test_corrupt_identifier_file_does_not_break_recording(self):
        with open(get_settings().visitor_id_file, "wb") as f:
            f.write(b"\xff\xfe\xfa")
        result = await analytics.record_visit("/products", "agent")
        self.assertTrue(result.recorded)
        visitor_ids = await crud.visitor_ids()
        self.assertEqual(len(visitor_ids), 1)
        uuid.UUID(visitor_ids[0])


class VisitorStatsTestCase(StoreTestCase):
    async def asyncSetUp(self):
        await super().asyncSetUp()
        self.root, self.root_ctx = await self.make_super_admin()

    async def test_needs_view_statistics(self):
        _, products_only = await self.make_admin(
            "catalog@example.com", Privileges(manage_products=True), self.root.id
        )
        with self.assertRaises(AuthorizationError):
            await analytics.compute_stats(products_only)
        with self.assertRaises(AuthorizationError):
            await analytics.compute_stats(None)

        _, stats_only = await self.make_admin(
            "stats@example.com", Privileges(view_statistics=True), self.root.id
        )
        self.assertTrue((await analytics.compute_stats(stats_only)).success)

    async def test_unique_visitors_and_page_views(self):
        a = VisitorIdStore(os.path.join(self.temp_dir.name, "a"))
        b = VisitorIdStore(os.path.join(self.temp_dir.name, "b"))
        await analytics.record_visit("/", "agent", a, when=at(18))
        await analytics.record_visit("/products", "agent", a, when=at(19))
        await analytics.record_visit("/", "agent", b, when=at(19))

        stats = await analytics.compute_stats(self.root_ctx, today=date(2026, 10, 19))
        self.assertTrue(stats.success)
        self.assertEqual(stats.unique_visitor_count, 2)
        self.assertEqual(stats.total_page_views, 3)
        self.assertEqual(stats.page_views_by_page, {"/": 2, "/products": 1})

    async def test_daily_series_is_seven_zero_filled_days_ending_today(self):
        ids = VisitorIdStore()
        for when in (at(12), at(13), at(17, 8), at(17, 20), at(19, 1)):
            await analytics.record_visit("/", None, ids, when=when)

        stats = await analytics.compute_stats(self.root_ctx, today=date(2026, 10, 19))
        series = stats.daily_visits_data
        self.assertEqual(len(series), 7)
        self.assertEqual(series[0].date, date(2026, 10, 13))
        self.assertEqual(series[-1].date, date(2026, 10, 19))
        self.assertEqual([d.visits for d in series], [1, 0, 0, 0, 2, 0, 1])

    async def test_empty_store_still_has_seven_days(self):
        stats = await analytics.compute_stats(self.root_ctx, today=date(2026, 1, 3))
        self.assertTrue(stats.success)
        self.assertEqual(stats.unique_visitor_count, 0)
        self.assertEqual(
            [d.label for d in stats.daily_visits_data],
            ["2025-12-28", "2025-12-29", "2025-12-30", "2025-12-31",
             "2026-01-01", "2026-01-02", "2026-01-03"],
        )

    async def test_recent_visits_newest_first_and_limited(self):
        override_settings(recent_visits=2)
        ids = VisitorIdStore()
        for day, page in ((15, "/a"), (16, "/b"), (17, "/c")):
            await analytics.record_visit(page, None, ids, when=at(day))
        stats = await analytics.compute_stats(self.root_ctx, today=date(2026, 10, 19))
        self.assertEqual([v.page for v in stats.recent_visits], ["/c", "/b"])

    async def test_read_failure_zeroes_everything(self):
        await analytics.record_visit("/", None)
        with mock.patch.object(
            crud, "count_visits", mock.AsyncMock(side_effect=BackendError("down"))
        ):
            stats = await analytics.compute_stats(self.root_ctx)
        self.assertFalse(stats.success)
        self.assertEqual(stats.unique_visitor_count, 0)
        self.assertEqual(stats.total_page_views, 0)
        self.assertEqual(stats.page_views_by_page, {})
        self.assertEqual(stats.recent_visits, ())
        self.assertEqual(stats.daily_visits_data, ())


class OrderAnalyticsTestCase(StoreTestCase):
    async def asyncSetUp(self):
        await super().asyncSetUp()
        self.root, self.root_ctx = await self.make_super_admin()
        self.product = await self.make_product("Analyzer", "100.00")

    async def test_needs_view_statistics(self):
        _, products_only = await self.make_admin(
            "catalog@example.com", Privileges(manage_products=True), self.root.id
        )
        with self.assertRaises(AuthorizationError):
            await analytics.compute_order_analytics(products_only)

    async def test_empty_store(self):
        result = await analytics.compute_order_analytics(self.root_ctx)
        self.assertTrue(result.success)
        self.assertEqual(result.total_orders, 0)
        self.assertEqual(result.total_revenue, Decimal("0.00"))

    async def test_orders_and_quotes_are_counted_together(self):
        order_id = await lifecycle.place_order([(self.product.id, 3)])
        quoted = await lifecycle.submit_quote_request(self.product.id, 3, CONTACT)
        await lifecycle.attach_quote(quoted, "270.00", None, None, self.root_ctx)
        await lifecycle.submit_quote_request(self.product.id, 1, CONTACT)
        async with db_database.transaction() as conn:
            await conn.execute(
                "UPDATE orders SET created_at = ? WHERE id = ?;",
                (to_iso(datetime(2026, 9, 15, tzinfo=timezone.utc)), order_id),
            )
            await conn.execute(
                "UPDATE quotes SET created_at = ?;",
                (to_iso(datetime(2026, 10, 2, tzinfo=timezone.utc)),),
            )

        result = await analytics.compute_order_analytics(self.root_ctx)
        self.assertTrue(result.success)
        self.assertEqual(result.total_orders, 3)
        self.assertEqual(result.total_revenue, Decimal("570.00"))
        self.assertEqual(result.average_order_value, Decimal("190.00"))
        self.assertEqual(result.orders_by_status, {"pending": 1, "quote_requested": 2})
        self.assertEqual([m.month for m in result.orders_by_month], ["Sep 2026", "Oct 2026"])
        self.assertEqual(result.orders_by_month[0].revenue, Decimal("300.00"))
        self.assertEqual(result.orders_by_month[1].orders, 2)

    async def test_read_failure(self):
        with mock.patch.object(
            crud, "list_orders", mock.AsyncMock(side_effect=BackendError("down"))
        ):
            result = await analytics.compute_order_analytics(self.root_ctx)
        self.assertFalse(result.success)
        self.assertEqual(result.total_orders, 0)
        self.assertEqual(result.orders_by_month, ())
