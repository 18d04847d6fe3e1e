"""
Tests for boothboard.services.staff_dashboard: assignment resolution and staff actions.
"""
import asyncio

import pytest

from boothboard.core.exceptions import NotFoundError
from boothboard.schemas.account import Role
from boothboard.schemas.notification import NotificationKind
from boothboard.services.admin_dashboard import AdminDashboard
from boothboard.services.notifications import booth_notifications
from boothboard.services.staff_dashboard import BoothStaffDashboard
from boothboard.store.base import BOOTHS, MESSAGES, ORDERS, PRODUCTS, Eq
from boothboard.store.memory import InMemoryStore
from tests.support import Gate, make_account, run, settle


async def setup(store, assigned=True, mount=True):
    staff = await make_account(store, "stina@example.com", Role.BOOTH_STAFF, "Stina")
    await store.insert(BOOTHS, [
        {"id": "b1", "booth_number": "1", "booth_name": "Glögg", "staff_id": staff.id if assigned else None},
        {"id": "b2", "booth_number": "2", "booth_name": "Knäck"},
    ])
    await store.insert(PRODUCTS, [
        {"id": "p1", "booth_id": "b1", "name": "Glögg mugg", "price": "45"},
        {"id": "p2", "booth_id": "b1", "name": "Pepparkakor", "price": "30"},
        {"id": "p9", "booth_id": "b2", "name": "Knäck", "price": "20"},
    ])
    await store.drain()
    dashboard = BoothStaffDashboard(store, staff)
    if mount:
        await dashboard.mount()
    return dashboard


class TestResolution:
    def test_assigned_booth_loads(self):
        async def scenario():
            store = InMemoryStore()
            return await setup(store)

        dashboard = run(scenario())
        assert dashboard.booth_id == "b1"
        assert dashboard.unassigned is False
        assert [p.name for p in dashboard.products] == ["Glögg mugg", "Pepparkakor"]
        assert dashboard.loading is False

    def test_unassigned_is_an_end_state(self):
        async def scenario():
            store = InMemoryStore()
            return await setup(store, assigned=False)

        dashboard = run(scenario())
        assert dashboard.booth is None
        assert dashboard.unassigned is True
        assert dashboard.loading is False
        assert dashboard.products == []
        assert dashboard.notifications() == []

    def test_assignment_arrives_through_change_feed(self):
        async def scenario():
            store = InMemoryStore()
            dashboard = await setup(store, assigned=False)
            await store.update(BOOTHS, {"staff_id": dashboard.account.id}, [Eq("id", "b2")])
            await settle(store, dashboard)
            return dashboard

        dashboard = run(scenario())
        assert dashboard.booth_id == "b2"
        assert dashboard.unassigned is False
        assert [p.id for p in dashboard.products] == ["p9"]

    def test_unassignment_clears_booth(self):
        async def scenario():
            store = InMemoryStore()
            dashboard = await setup(store)
            await store.update(BOOTHS, {"staff_id": None}, [Eq("id", "b1")])
            await settle(store, dashboard)
            return dashboard

        dashboard = run(scenario())
        assert dashboard.booth is None
        assert dashboard.unassigned is True
        assert dashboard.products == []


class TestMutations:
    def test_toggle_twice_restores_admin_badge(self):
        async def scenario():
            store = InMemoryStore()
            staff_view = await setup(store)
            admin = await make_account(store, "admin@example.com", Role.ADMIN, "Admin")
            admin_view = AdminDashboard(store, admin)
            await admin_view.mount()
            badges = [admin_view.badge("b1")]

            await staff_view.toggle_out_of_stock("p1")
            await settle(store, staff_view, admin_view)
            badges.append(admin_view.badge("b1"))

            await staff_view.toggle_out_of_stock("p1")
            await settle(store, staff_view, admin_view)
            badges.append(admin_view.badge("b1"))
            return staff_view, badges

        staff_view, badges = run(scenario())
        assert badges == [None, 1, None]
        assert not any(p.is_out_of_stock for p in staff_view.products)

    def test_toggle_foreign_product_raises(self):
        async def scenario():
            store = InMemoryStore()
            dashboard = await setup(store)
            with pytest.raises(NotFoundError):
                await dashboard.toggle_out_of_stock("p9")
            rows = await store.select(PRODUCTS, [Eq("id", "p9")])
            return rows[0]["is_out_of_stock"]

        assert run(scenario()) is False

    def test_create_order(self):
        async def scenario():
            store = InMemoryStore()
            dashboard = await setup(store)
            order = await dashboard.create_order("p1", 3, "före lunch")
            return dashboard, order

        dashboard, order = run(scenario())
        assert order.booth_id == "b1"
        assert order.created_by == dashboard.account.id
        assert order.is_pending
        assert [o.id for o in dashboard.orders] == [order.id]

    def test_create_order_for_foreign_product_raises(self):
        async def scenario():
            store = InMemoryStore()
            dashboard = await setup(store)
            with pytest.raises(NotFoundError):
                await dashboard.create_order("p9", 1)
            return await store.select(ORDERS)

        assert run(scenario()) == []

    def test_create_order_when_unassigned_raises(self):
        async def scenario():
            store = InMemoryStore()
            dashboard = await setup(store, assigned=False)
            with pytest.raises(NotFoundError):
                await dashboard.create_order("p1", 1)

        run(scenario())

    def test_mark_message_read(self):
        async def scenario():
            store = InMemoryStore()
            dashboard = await setup(store)
            await store.insert(MESSAGES, [{"id": "m1", "from_user_id": "x", "to_booth_id": "b1", "message": "Hej"}])
            await settle(store, dashboard)
            unread_before = len(dashboard.unread_messages)
            await dashboard.mark_message_read("m1")
            return unread_before, dashboard

        unread_before, dashboard = run(scenario())
        assert unread_before == 1
        assert dashboard.unread_messages == []
        assert dashboard.messages[0].is_read

    def test_reading_broadcast_clears_it_for_every_booth(self):
        async def scenario():
            store = InMemoryStore()
            dashboard = await setup(store)
            await store.insert(MESSAGES, [{"id": "all", "from_user_id": "x", "message": "Stänger 18:00"}])
            await settle(store, dashboard)
            await dashboard.mark_message_read("all")
            return dashboard

        dashboard = run(scenario())
        assert dashboard.unread_messages == []
        assert booth_notifications("b2", dashboard.messages, [], []) == []


class TestMessagesAndNotifications:
    def test_broadcast_and_targeted_visibility(self):
        async def scenario():
            store = InMemoryStore()
            dashboard = await setup(store)
            await store.insert(MESSAGES, [
                {"id": "all", "from_user_id": "x", "message": "Stänger 18:00"},
                {"id": "mine", "from_user_id": "x", "to_booth_id": "b1", "message": "Ring mig"},
                {"id": "theirs", "from_user_id": "x", "to_booth_id": "b2", "message": "Inte till dig"},
            ])
            await settle(store, dashboard)
            return dashboard

        dashboard = run(scenario())
        assert [m.id for m in dashboard.messages] == ["mine", "all"]

    def test_notifications_combine_all_sources(self):
        async def scenario():
            store = InMemoryStore()
            dashboard = await setup(store)
            await store.insert(MESSAGES, [{"id": "m1", "from_user_id": "x", "message": "Hej"}])
            await dashboard.toggle_out_of_stock("p2")
            await dashboard.create_order("p1", 2)
            await settle(store, dashboard)
            return dashboard.notifications()

        items = run(scenario())
        assert [i.kind for i in items] == [
            NotificationKind.UNREAD_MESSAGE,
            NotificationKind.PENDING_ORDER,
            NotificationKind.OUT_OF_STOCK,
        ]
        assert items[2].text == "Pepparkakor is out of stock"


class TestLiveUpdates:
    def test_write_during_initial_load_is_picked_up(self):
        async def scenario():
            store = InMemoryStore()
            dashboard = await setup(store, mount=False)
            gate = Gate(store, PRODUCTS, times=1)

            mounting = asyncio.create_task(dashboard.mount())
            await gate.entered.wait()
            await store.update(PRODUCTS, {"is_out_of_stock": True}, [Eq("id", "p1")])
            await store.drain()
            gate.release()
            await mounting
            await settle(store, dashboard)
            return dashboard

        dashboard = run(scenario())
        assert dashboard.live is True
        assert [n.source_id for n in dashboard.notifications()] == ["p1"]

    def test_write_during_reassignment_is_picked_up(self):
        async def scenario():
            store = InMemoryStore()
            dashboard = await setup(store, assigned=False)
            gate = Gate(store, PRODUCTS, times=1)

            await store.update(BOOTHS, {"staff_id": dashboard.account.id}, [Eq("id", "b2")])
            await store.drain()
            await gate.entered.wait()
            await store.update(PRODUCTS, {"is_out_of_stock": True}, [Eq("id", "p9")])
            await store.drain()
            gate.release()
            await settle(store, dashboard)
            return dashboard

        dashboard = run(scenario())
        assert dashboard.booth_id == "b2"
        assert [(p.id, p.is_out_of_stock) for p in dashboard.products] == [("p9", True)]
