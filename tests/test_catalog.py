from decimal import Decimal
from unittest import mock

from store_case import StoreTestCase

from backend import crud
from backend.models import AdminState, Privileges
from services import admin_auth, catalog, customers, lifecycle
from utils.errors import (
    AuthorizationError,
    BackendError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from utils.pure import utc_now
from utils.state import SessionContext


class CategoryTestCase(StoreTestCase):
    async def test_group_by_category(self):
        await self.make_product("ECG Monitor", "900.00", category="Diagnostic Equipment")
        await self.make_product("Pipette", "12.50", category="Laboratory Equipment")
        await self.make_product("Ultrasound", "4000.00", category="Diagnostic Equipment")
        await self.make_product("Dental Chair", "2500.00", category="Dental Equipment")

        result = await catalog.list_categories()
        self.assertTrue(result.ok)
        by_id = {c.id: c for c in result.data}
        self.assertEqual(
            list(by_id), ["dental-equipment", "diagnostic-equipment", "laboratory-equipment"]
        )
        self.assertEqual(
            [p.name for p in by_id["diagnostic-equipment"].products],
            ["ECG Monitor", "Ultrasound"],
        )
        self.assertEqual(
            by_id["laboratory-equipment"].description,
            "Precision laboratory instruments for research and testing",
        )
        self.assertEqual(
            by_id["dental-equipment"].description,
            "High-quality dental equipment for medical and industrial applications.",
        )


class CatalogTestCase(StoreTestCase):
    async def asyncSetUp(self):
        await super().asyncSetUp()
        self.root, self.root_ctx = await self.make_super_admin()
        _, self.products_admin = await self.make_admin(
            "catalog@example.com", Privileges(manage_products=True), self.root.id
        )
        _, self.orders_admin = await self.make_admin(
            "orders@example.com", Privileges(process_orders=True), self.root.id
        )

    # ---------- Products ----------

    async def test_product_writes_need_manage_products(self):
        with self.assertRaises(AuthorizationError):
            await catalog.create_product(self.orders_admin, "Scale", "10.00")
        with self.assertRaises(AuthorizationError):
            await catalog.create_product(AdminState(), "Scale", "10.00")

        product = await catalog.create_product(
            self.products_admin, "Scale", 10.5, category="Laboratory Equipment", is_featured=True
        )
        self.assertEqual(product.price, Decimal("10.50"))

        updated = await catalog.update_product(self.products_admin, product.id, price="11.25")
        self.assertEqual(updated.price, Decimal("11.25"))
        with self.assertRaises(ValidationError):
            await catalog.update_product(self.products_admin, product.id, price="-1")
        with self.assertRaises(ValidationError):
            await catalog.update_product(self.products_admin, product.id, colour="red")
        with self.assertRaises(NotFoundError):
            await catalog.update_product(self.products_admin, "missing", price="1")

        featured = await catalog.list_featured_products()
        self.assertEqual([p.id for p in featured.data], [product.id])
        self.assertEqual((await catalog.get_product(product.id)).data.name, "Scale")
        self.assertIsNone((await catalog.get_product("missing")).data)

    async def test_referenced_product_cannot_be_deleted(self):
        product = await self.make_product()
        await lifecycle.place_order([(product.id, 1)])
        with self.assertRaises(ConflictError):
            await catalog.delete_product(self.products_admin, product.id)

        spare = await self.make_product("Spare")
        await catalog.delete_product(self.products_admin, spare.id)
        self.assertFalse(await crud.product_exists(spare.id))

    async def test_read_failure_is_not_an_empty_catalog(self):
        with mock.patch.object(
            crud, "list_products", mock.AsyncMock(side_effect=BackendError("down"))
        ):
            result = await catalog.list_products()
        self.assertFalse(result.ok)
        self.assertEqual(result.data, [])

        result = await catalog.list_products()
        self.assertTrue(result.ok)
        self.assertEqual(result.data, [])

    # ---------- Gallery & projects ----------

    async def test_gallery_needs_an_approved_admin(self):
        pending_user = await self.make_user("pending@example.com")
        await admin_auth.register_admin("Pending", pending_user.id)
        pending = await self.user_session("pending@example.com")
        with self.assertRaises(AuthorizationError):
            await catalog.create_project(pending, "Clinic fit-out")
        pending.admin = AdminState(status="approved", user_id=pending_user.id)
        pending.admin_since = utc_now()
        with self.assertRaises(AuthorizationError):
            await catalog.create_project(pending, "Clinic fit-out")
        self.assertEqual((await catalog.list_projects()).data, [])

        project = await catalog.create_project(self.orders_admin, "Clinic fit-out")
        item = await catalog.add_gallery_item(
            self.orders_admin, "Reception", "https://img/1.jpg", project_id=project.id
        )
        await catalog.add_gallery_item(self.orders_admin, "Lab", "https://img/2.jpg")

        self.assertEqual(len((await catalog.list_gallery()).data), 2)
        self.assertEqual([g.id for g in (await catalog.list_gallery(project.id)).data], [item.id])

        with self.assertRaises(NotFoundError):
            await catalog.add_gallery_item(
                self.orders_admin, "Ghost", "https://img/3.jpg", project_id="missing"
            )

        await catalog.delete_project(self.orders_admin, project.id)
        self.assertEqual((await catalog.list_gallery(project.id)).data, [])
        self.assertEqual((await catalog.list_projects()).data, [])

        deleted = await catalog.delete_gallery_items(self.orders_admin, [item.id, "missing"])
        self.assertEqual(deleted, 1)

    async def test_gallery_items_are_deleted_as_one_batch(self):
        items = [
            await catalog.add_gallery_item(self.orders_admin, f"Shot {n}", f"https://img/{n}.jpg")
            for n in range(3)
        ]
        doomed = [items[0].id, items[1].id, items[0].id, "missing"]
        self.assertEqual(await catalog.delete_gallery_items(self.orders_admin, doomed), 2)
        self.assertEqual([g.id for g in (await catalog.list_gallery()).data], [items[2].id])
        self.assertEqual(await catalog.delete_gallery_items(self.orders_admin, []), 0)

    async def test_batch_delete_is_a_single_transaction(self):
        items = [
            await catalog.add_gallery_item(self.orders_admin, f"Shot {n}", f"https://img/{n}.jpg")
            for n in range(3)
        ]
        with mock.patch.object(crud, "transaction", wraps=crud.transaction) as spy:
            deleted = await catalog.delete_gallery_items(self.orders_admin, [g.id for g in items])
        self.assertEqual(deleted, 3)
        self.assertEqual(spy.call_count, 1)

    async def test_failed_batch_delete_removes_nothing(self):
        items = [
            await catalog.add_gallery_item(self.orders_admin, f"Shot {n}", f"https://img/{n}.jpg")
            for n in range(2)
        ]
        with mock.patch.object(
            crud, "transaction", side_effect=BackendError("down")
        ):
            with self.assertRaises(BackendError):
                await catalog.delete_gallery_items(self.orders_admin, [g.id for g in items])
        self.assertEqual(len((await catalog.list_gallery()).data), 2)

        with self.assertRaises(AuthorizationError):
            await catalog.delete_gallery_items(AdminState(status="approved"), [items[0].id])
        self.assertEqual(len((await catalog.list_gallery()).data), 2)


class CustomersTestCase(StoreTestCase):
    async def asyncSetUp(self):
        await super().asyncSetUp()
        self.root, self.root_ctx = await self.make_super_admin()
        self.product = await self.make_product("Analyzer", "19.99")

    async def test_directory_needs_access_clients(self):
        _, stats_only = await self.make_admin(
            "stats@example.com", Privileges(view_statistics=True), self.root.id
        )
        with self.assertRaises(AuthorizationError):
            await customers.list_customers(stats_only)
        with self.assertRaises(AuthorizationError):
            await customers.customer_orders(stats_only, self.root.id)

    async def test_order_count_and_total_spent(self):
        buyer = await self.make_user("buyer@example.com", name="Buyer")
        ctx = SessionContext(self.auth)
        await ctx.start()
        await self.auth.sign_in("buyer@example.com", "secret123")
        await lifecycle.place_order([(self.product.id, 2)], ctx=ctx)
        await lifecycle.place_order([(self.product.id, 1)], ctx=ctx)

        result = await customers.list_customers(self.root_ctx)
        self.assertTrue(result.ok)
        entry = next(c for c in result.data if c.id == buyer.id)
        self.assertEqual(entry.order_count, 2)
        self.assertEqual(entry.total_spent, Decimal("59.97"))

        orders = await customers.customer_orders(self.root_ctx, buyer.id)
        self.assertEqual(len(orders.data), 2)

    async def test_update_profile(self):
        await self.make_user("me@example.com", name="Me")
        ctx = SessionContext(self.auth)
        await ctx.start()
        with self.assertRaises(AuthorizationError):
            await customers.update_profile(ctx, name="Nobody")

        await self.auth.sign_in("me@example.com", "secret123")
        profile = await customers.update_profile(
            ctx,
            phone="555-0101",
            billing_address={"street": "2 Side Rd", "city": "Shelbyville", "zip_code": "12345"},
        )
        self.assertEqual(profile.name, "Me")
        self.assertEqual(profile.phone, "555-0101")
        self.assertEqual(profile.billing_address.city, "Shelbyville")
        self.assertEqual(profile.billing_address.country, "United States")

        with self.assertRaises(ValidationError):
            await customers.update_profile(ctx, name="  ")
        with self.assertRaises(ValidationError):
            await customers.update_profile(ctx, billing_address={"planet": "Mars"})
