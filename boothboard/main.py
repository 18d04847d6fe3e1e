"""
Application bootstrap
Reads configuration, connects the entity store and starts the session context.
Missing configuration raises ConfigError and stops startup.
Reference: https://docs.python.org/3/library/contextlib.html#contextlib.asynccontextmanager
"""
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Optional

from boothboard.core.config import Settings, get_settings
from boothboard.core.logging_config import configure_logging
from boothboard.schemas.account import Role
from boothboard.services.admin_dashboard import AdminDashboard
from boothboard.services.booth_detail import BoothDetailView
from boothboard.services.dashboard import Dashboard
from boothboard.services.session import SessionContext
from boothboard.services.staff_dashboard import BoothStaffDashboard
from boothboard.store.base import EntityStore
from boothboard.store.rest import RestStore

logger = logging.getLogger(__name__)


def select_dashboard(
    store: EntityStore,
    session: SessionContext,
    booth_id: Optional[str] = None,
) -> Optional[Dashboard]:
    """
    Pick the dashboard for the signed-in role.

    - Signed out, or no profile: None (the login screen)
    - admin: the booth detail view when booth_id is given, else the admin dashboard
    - booth_staff: the staff dashboard; booth_id is ignored

    The returned dashboard is not mounted yet.
    """
    if session.loading or session.account is None or session.profile is None:
        return None
    if session.profile.role == Role.ADMIN:
        if booth_id:
            return BoothDetailView(store, session.account, booth_id)
        return AdminDashboard(store, session.account)
    return BoothStaffDashboard(store, session.account)


@dataclass
class Application:
    settings: Settings
    store: EntityStore
    session: SessionContext

    async def open_dashboard(self, booth_id: Optional[str] = None) -> Optional[Dashboard]:
        """Select and mount the dashboard for the current session."""
        dashboard = select_dashboard(self.store, self.session, booth_id)
        if dashboard is not None:
            await dashboard.mount()
        return dashboard


@asynccontextmanager
async def lifespan(
    settings: Optional[Settings] = None,
    store: Optional[EntityStore] = None,
) -> AsyncIterator[Application]:
    """
    Startup and shutdown of the booth board

    Args:
        settings: Settings to use; read from the environment when omitted
        store: Entity store to use; a RestStore built from settings when omitted

    Raises:
        ConfigError: If STORE_URL or STORE_ANON_KEY is missing
    """
    # Startup: fail fast on missing configuration
    settings = settings or get_settings()
    configure_logging(settings.LOG_LEVEL)
    store = store or RestStore.from_settings(settings)

    session = SessionContext(store, profile_fallback_insert=settings.PROFILE_FALLBACK_INSERT)
    await session.start()
    logger.info(f"{settings.PROJECT_NAME} {settings.VERSION} started")

    try:
        yield Application(settings=settings, store=store, session=session)
    finally:
        # Shutdown: stop listening and release the HTTP client
        session.close()
        await store.close()
        logger.info("Store connection closed")
