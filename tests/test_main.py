"""
Tests for boothboard.main: bootstrap and role-based dashboard selection.
"""
import pytest

from boothboard.core.config import Settings, get_settings
from boothboard.core.exceptions import ConfigError
from boothboard.main import lifespan, select_dashboard
from boothboard.schemas.account import Role
from boothboard.services.admin_dashboard import AdminDashboard
from boothboard.services.booth_detail import BoothDetailView
from boothboard.services.session import SessionContext
from boothboard.services.staff_dashboard import BoothStaffDashboard
from boothboard.store.base import BOOTHS
from boothboard.store.memory import InMemoryStore
from tests.support import PASSWORD, make_account, run


def settings():
    return Settings(STORE_URL="https://venue.example", STORE_ANON_KEY="anon", LOG_LEVEL="WARNING")


async def signed_in(store, email, role):
    await make_account(store, email, role)
    ctx = SessionContext(store)
    await ctx.start()
    await ctx.sign_in(email, PASSWORD)
    await store.drain()
    return ctx


class TestSelectDashboard:
    def test_signed_out_gets_nothing(self):
        async def scenario():
            store = InMemoryStore()
            ctx = SessionContext(store)
            before_start = select_dashboard(store, ctx)
            await ctx.start()
            return before_start, select_dashboard(store, ctx)

        assert run(scenario()) == (None, None)

    def test_admin_routes(self):
        async def scenario():
            store = InMemoryStore()
            ctx = await signed_in(store, "admin@example.com", Role.ADMIN)
            return select_dashboard(store, ctx), select_dashboard(store, ctx, booth_id="b7")

        overview, detail = run(scenario())
        assert isinstance(overview, AdminDashboard)
        assert isinstance(detail, BoothDetailView)
        assert detail.booth_id == "b7"

    def test_staff_ignores_booth_id(self):
        async def scenario():
            store = InMemoryStore()
            ctx = await signed_in(store, "stina@example.com", Role.BOOTH_STAFF)
            return select_dashboard(store, ctx, booth_id="someone-elses")

        assert isinstance(run(scenario()), BoothStaffDashboard)

    def test_account_without_profile_gets_nothing(self):
        async def scenario():
            store = InMemoryStore(profile_trigger=False)
            await store.sign_up("x@example.com", PASSWORD)
            ctx = SessionContext(store)
            await ctx.start()
            await ctx.sign_in("x@example.com", PASSWORD)
            return select_dashboard(store, ctx)

        assert run(scenario()) is None


class TestLifespan:
    def test_startup_and_shutdown(self):
        async def scenario():
            store = InMemoryStore()
            await make_account(store, "admin@example.com", Role.ADMIN)
            await store.insert(BOOTHS, [{"id": "b1", "booth_number": "1", "booth_name": "Glögg"}])
            async with lifespan(settings(), store) as app:
                await app.session.sign_in("admin@example.com", PASSWORD)
                dashboard = await app.open_dashboard()
                booths = [b.id for b in dashboard.booths]
                role = app.session.profile.role
                dashboard.unmount()
            return booths, role, store.subscription_count

        booths, role, subscriptions = run(scenario())
        assert booths == ["b1"]
        assert role == Role.ADMIN
        assert subscriptions == 0

    def test_signed_out_opens_no_dashboard(self):
        async def scenario():
            async with lifespan(settings(), InMemoryStore()) as app:
                return await app.open_dashboard()

        assert run(scenario()) is None

    def test_missing_configuration_stops_startup(self, monkeypatch, tmp_path):
        monkeypatch.chdir(tmp_path)
        monkeypatch.delenv("STORE_URL", raising=False)
        monkeypatch.delenv("STORE_ANON_KEY", raising=False)
        get_settings.cache_clear()

        async def scenario():
            async with lifespan(store=InMemoryStore()):
                pass

        try:
            with pytest.raises(ConfigError):
                run(scenario())
        finally:
            get_settings.cache_clear()
