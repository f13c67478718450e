from unittest import mock

from store_case import StoreTestCase

from backend import crud
from backend import database as db_database
from backend.models import AdminState, Privileges
from services import admin_auth
from utils.errors import (
    AuthorizationError,
    BackendError,
    ConflictError,
    InvalidTransitionError,
    ValidationError,
)


class AdminAuthTestCase(StoreTestCase):
    # ---------- Registration ----------

    async def test_registered_admin_is_pending_with_no_privileges(self):
        user = await self.make_user("new.admin@example.com")
        admin_id = await admin_auth.register_admin("New Admin", user.id)

        account = await crud.get_admin(admin_id)
        self.assertEqual(account.status, "pending")
        self.assertFalse(account.is_super_admin)
        self.assertEqual(account.privileges, Privileges.none())

        state = await admin_auth.resolve_admin_state(user.id)
        self.assertEqual(state.status, "pending")
        for name in ("manage_products", "process_orders", "access_clients", "view_statistics"):
            self.assertFalse(admin_auth.check_privilege(state, name))
        self.assertEqual(admin_auth.available_sections(state), [])

    async def test_register_rejects_short_names_and_duplicates(self):
        user = await self.make_user("dup@example.com")
        with self.assertRaises(ValidationError):
            await admin_auth.register_admin(" x ", user.id)
        await admin_auth.register_admin("Dupe", user.id)
        with self.assertRaises(ConflictError):
            await admin_auth.register_admin("Dupe Again", user.id)

    async def test_register_admin_account_creates_login_and_pending_account(self):
        admin_id = await admin_auth.register_admin_account(
            self.auth, "Self Service", "Self@Example.com", "secret123"
        )
        account = await crud.get_admin(admin_id)
        self.assertEqual(account.status, "pending")
        user, _ = await crud.get_auth_user_with_hash("self@example.com")
        self.assertEqual(account.user_id, user.id)

    # ---------- Masking ----------

    async def test_flags_on_a_pending_row_are_masked(self):
        user = await self.make_user("masked@example.com")
        admin_id = await admin_auth.register_admin("Masked", user.id)
        async with db_database.transaction() as conn:
            await conn.execute(
                "UPDATE admin_users SET can_manage_products = 1, is_super_admin = 1 WHERE id = ?;",
                (admin_id,),
            )

        state = await admin_auth.resolve_admin_state(user.id)
        self.assertFalse(state.is_super_admin)
        self.assertEqual(state.privileges, Privileges.none())
        self.assertFalse(admin_auth.check_privilege(state, "manage_products"))

    def test_check_privilege_for_blank_and_unknown_names(self):
        self.assertFalse(admin_auth.check_privilege(None, "manage_products"))
        self.assertFalse(admin_auth.check_privilege(AdminState(), "manage_products"))
        approved = AdminState(status="approved", privileges=Privileges(manage_products=True))
        self.assertTrue(admin_auth.check_privilege(approved, "manage_products"))
        self.assertFalse(admin_auth.check_privilege(approved, "process_orders"))
        self.assertFalse(admin_auth.check_privilege(approved, "delete_everything"))

    async def test_super_admin_passes_every_check(self):
        _, root_ctx = await self.make_super_admin()
        state = root_ctx.admin
        for name in ("manage_products", "process_orders", "access_clients", "view_statistics"):
            self.assertTrue(admin_auth.check_privilege(state, name))
        self.assertEqual(
            admin_auth.available_sections(state),
            ["statistics", "products", "orders", "customers", "gallery", "management"],
        )

    async def test_lookup_failure_resolves_to_no_admin(self):
        with mock.patch.object(
            crud, "get_admin_by_user_id", mock.AsyncMock(side_effect=BackendError("down"))
        ):
            state = await admin_auth.resolve_admin_state("someone")
        self.assertEqual(state.status, "none")
        self.assertFalse(admin_auth.check_privilege(state, "view_statistics"))

    # ---------- Approval ----------

    async def test_super_admin_approval_sets_exactly_the_granted_flags(self):
        root, root_ctx = await self.make_super_admin()
        user = await self.make_user("staff@example.com")
        admin_id = await admin_auth.register_admin("Staff", user.id)

        granted = Privileges(process_orders=True, view_statistics=True)
        self.assertTrue(await admin_auth.approve_admin(admin_id, root.id, granted))

        account = await crud.get_admin(admin_id)
        self.assertEqual(account.status, "approved")
        self.assertEqual(account.privileges, granted)
        self.assertEqual(account.approved_by, root_ctx.admin.admin_id)
        self.assertIsNotNone(account.approved_at)

        state = await admin_auth.resolve_admin_state(user.id)
        self.assertEqual(admin_auth.available_sections(state), ["statistics", "orders", "gallery"])

    async def test_approval_by_non_super_admin_changes_nothing(self):
        root, _ = await self.make_super_admin()
        staff, _ = await self.make_admin(
            "orders@example.com", Privileges(process_orders=True), root.id
        )
        target_user = await self.make_user("target@example.com")
        target_id = await admin_auth.register_admin("Target", target_user.id)

        with self.assertRaises(AuthorizationError):
            await admin_auth.approve_admin(target_id, staff.id, Privileges.all())

        account = await crud.get_admin(target_id)
        self.assertEqual(account.status, "pending")
        self.assertEqual(account.privileges, Privileges.none())
        self.assertIsNone(account.approved_at)
        self.assertIsNone(account.approved_by)

    async def test_approving_twice_is_an_invalid_transition(self):
        root, _ = await self.make_super_admin()
        user = await self.make_user("twice@example.com")
        admin_id = await admin_auth.register_admin("Twice", user.id)
        await admin_auth.approve_admin(admin_id, root.id, Privileges(manage_products=True))
        with self.assertRaises(InvalidTransitionError):
            await admin_auth.approve_admin(admin_id, root.id, Privileges.all())
        account = await crud.get_admin(admin_id)
        self.assertEqual(account.privileges, Privileges(manage_products=True))

    # ---------- Rejection & listing ----------

    async def test_reject_requires_super_admin_and_is_final(self):
        root, root_ctx = await self.make_super_admin()
        staff, staff_ctx = await self.make_admin(
            "clients@example.com", Privileges(access_clients=True), root.id
        )
        user = await self.make_user("reject.me@example.com")
        admin_id = await admin_auth.register_admin("Reject Me", user.id)

        with self.assertRaises(AuthorizationError):
            await admin_auth.reject_admin(admin_id, staff.id)
        self.assertEqual((await crud.get_admin(admin_id)).status, "pending")

        self.assertTrue(await admin_auth.reject_admin(admin_id, root.id))
        self.assertEqual((await crud.get_admin(admin_id)).status, "rejected")

        with self.assertRaises(InvalidTransitionError):
            await admin_auth.approve_admin(admin_id, root.id, Privileges.all())
        with self.assertRaises(InvalidTransitionError):
            await admin_auth.reject_admin(admin_id, root.id)

        with self.assertRaises(AuthorizationError):
            await admin_auth.list_admin_users(staff_ctx)
        accounts = await admin_auth.list_admin_users(root_ctx)
        self.assertEqual(len(accounts), 3)

    # ---------- Acting on a session ----------

    async def test_authorize_reads_standing_from_the_store(self):
        root, root_ctx = await self.make_super_admin()
        staff, staff_ctx = await self.make_admin(
            "orders@example.com", Privileges(process_orders=True), root.id
        )
        state = await admin_auth.authorize(staff_ctx, "process_orders")
        self.assertEqual(state.admin_id, staff_ctx.admin.admin_id)
        with self.assertRaises(AuthorizationError):
            await admin_auth.authorize(staff_ctx, "access_clients")
        with self.assertRaises(AuthorizationError):
            await admin_auth.authorize(staff_ctx, super_admin=True)
        self.assertTrue((await admin_auth.authorize(root_ctx, super_admin=True)).is_super_admin)

        # flags held by the caller are not enough on their own
        staff_ctx.admin = AdminState(
            status="approved", is_super_admin=True, user_id=staff.id
        )
        with self.assertRaises(AuthorizationError):
            await admin_auth.list_admin_users(staff_ctx)
        with self.assertRaises(AuthorizationError):
            await admin_auth.authorize(AdminState(status="approved", is_super_admin=True))

    async def test_authorize_refuses_signed_out_session(self):
        _, root_ctx = await self.make_super_admin()
        await admin_auth.admin_sign_out(root_ctx)
        with self.assertRaises(AuthorizationError):
            await admin_auth.authorize(root_ctx)
