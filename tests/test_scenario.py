"""
Tests for the full restock round trip between admin and booth staff.
"""
from boothboard.schemas.account import Role
from boothboard.schemas.booth import BoothCreate, ProductCreate
from boothboard.schemas.order import OrderStatus
from boothboard.main import select_dashboard
from boothboard.services.admin_dashboard import AdminDashboard
from boothboard.services.session import SessionContext
from boothboard.services.staff_dashboard import BoothStaffDashboard
from boothboard.store.memory import InMemoryStore
from tests.support import PASSWORD, run, settle


class TestGloggScenario:
    def test_restock_round_trip(self):
        async def scenario():
            store = InMemoryStore()
            admin_session = SessionContext(store)
            await admin_session.start()
            await admin_session.sign_up("admin@example.com", PASSWORD, "Anna Admin", Role.ADMIN)
            staff_account = await store.sign_up(
                "stina@example.com", PASSWORD, {"full_name": "Stina", "role": "booth_staff"}
            )
            await admin_session.sign_in("admin@example.com", PASSWORD)
            await store.drain()

            admin = select_dashboard(store, admin_session)
            assert isinstance(admin, AdminDashboard)
            await admin.mount()
            staff = BoothStaffDashboard(store, staff_account)
            await staff.mount()
            steps = {"unassigned": staff.unassigned}

            await admin.create_booth(BoothCreate(booth_number="12", booth_name="Knäck"))
            booth = await admin.create_booth(
                BoothCreate(booth_number="7", booth_name="Glögg", staff_id=staff_account.id)
            )
            await settle(store, admin, staff)
            steps["booth_order"] = [b.booth_number for b in admin.booths]
            steps["staff_booth"] = (staff.booth_id, len(staff.products))

            await admin.create_product(ProductCreate(booth_id=booth.id, name="Glögg mugg", price="45"))
            await settle(store, admin, staff)
            steps["catalog"] = [(p.name, str(p.price)) for p in staff.products]

            await staff.toggle_out_of_stock(staff.products[0].id)
            await settle(store, admin, staff)
            steps["after_toggle"] = admin.badge(booth.id)

            order = await staff.create_order(staff.products[0].id, 3)
            await settle(store, admin, staff)
            steps["after_order"] = admin.badge(booth.id)

            await admin.set_order_status(order.id, OrderStatus.COMPLETED)
            await settle(store, admin, staff)
            steps["after_complete"] = admin.badge(booth.id)
            steps["staff_order_status"] = staff.orders[0].status

            admin.unmount()
            staff.unmount()
            admin_session.close()
            steps["subscriptions"] = store.subscription_count
            return steps

        steps = run(scenario())
        assert steps["unassigned"] is True
        assert steps["booth_order"] == ["7", "12"]
        assert steps["staff_booth"][1] == 0
        assert steps["staff_booth"][0] is not None
        assert steps["catalog"] == [("Glögg mugg", "45")]
        assert steps["after_toggle"] == 1
        assert steps["after_order"] == 2
        assert steps["after_complete"] == 1
        assert steps["staff_order_status"] is OrderStatus.COMPLETED
        assert steps["subscriptions"] == 0
