"""
Session context
Tracks the signed-in account and its profile, and wraps the store's
sign-in, sign-up and sign-out primitives.
"""
import logging
from typing import Optional

from boothboard.core.exceptions import AuthError, StoreError
from boothboard.schemas.account import Account, AuthSession, Profile, ProfileCreate, Role
from boothboard.schemas.base import parse_row
from boothboard.store.base import PROFILES, SIGNED_IN, EntityStore, Eq, Subscription

logger = logging.getLogger(__name__)


class SessionContext:
    """
    Current identity and derived profile

    Attributes:
        account: Signed-in account, None when signed out
        profile: Profile of the account, None when signed out or unreadable
        loading: True until the session check (and profile fetch, if signed in) completes

    Args:
        store: Entity store providing session primitives
        profile_fallback_insert: Insert the profile from the client after sign-up
    """

    def __init__(self, store: EntityStore, profile_fallback_insert: bool = True):
        self._store = store
        self.profile_fallback_insert = profile_fallback_insert
        self.account: Optional[Account] = None
        self.profile: Optional[Profile] = None
        self.loading = True
        self._alive = False
        self._subscription: Optional[Subscription] = None
        self._access_token: Optional[str] = None
        # Bumped on every session change so a slow profile fetch for an
        # earlier session cannot overwrite the current one
        self._request = 0

    @property
    def is_authenticated(self) -> bool:
        return self.account is not None and self.profile is not None

    async def start(self) -> None:
        """
        Mount: read the current session and listen for auth state changes.
        """
        self._alive = True
        self._subscription = self._store.on_auth_state_change(self._on_auth_state_change)
        try:
            session = await self._store.get_session()
        except Exception as e:
            logger.error(f"Error reading session: {type(e).__name__}: {e}")
            session = None
        await self._apply_session(session)

    def close(self) -> None:
        """
        Teardown: stop listening; pending fetches finish without touching state.
        """
        self._alive = False
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None

    async def _on_auth_state_change(self, event: str, session: Optional[AuthSession]) -> None:
        if not self._alive:
            return
        if event == SIGNED_IN and session is not None and session.access_token == self._access_token:
            # Already applied by sign_in()
            return
        logger.debug(f"Auth state changed: {event}")
        await self._apply_session(session)

    async def _apply_session(self, session: Optional[AuthSession]) -> None:
        if not self._alive:
            return
        self._request += 1
        request = self._request
        self._access_token = session.access_token if session else None
        self.account = session.account if session else None

        if session is None:
            self.profile = None
            self.loading = False
            return

        self.loading = True
        profile = await self._fetch_profile(session.account.id)
        if not self._alive or request != self._request:
            return
        self.profile = profile
        self.loading = False

    async def _fetch_profile(self, account_id: str) -> Optional[Profile]:
        try:
            rows = await self._store.select(PROFILES, [Eq("id", account_id)])
            if not rows:
                logger.warning(f"No profile found for account {account_id}")
                return None
            return parse_row(Profile, rows[0], PROFILES)
        except Exception as e:
            logger.error(f"Error loading profile: {type(e).__name__}: {e}")
            return None

    async def sign_in(self, email: str, password: str) -> None:
        """
        Sign in with email and password.

        Raises:
            AuthError: If the credentials are rejected or the request fails
        """
        try:
            session = await self._store.sign_in_with_password(email, password)
        except AuthError:
            raise
        except Exception as e:
            raise AuthError(f"Sign in failed: {e}") from e
        await self._apply_session(session)

    async def sign_up(self, email: str, password: str, full_name: str, role: Role) -> Account:
        """
        Create an account and make sure its profile exists.

        The store may create the profile itself (trigger); the client insert
        runs as a fallback and accepts an existing row.

        Raises:
            AuthError: If the account cannot be created
            StoreError: If no profile exists afterwards
        """
        role = Role(role)
        try:
            account = await self._store.sign_up(
                email, password, {"full_name": full_name, "role": role.value}
            )
        except AuthError:
            raise
        except Exception as e:
            raise AuthError(f"Sign up failed: {e}") from e

        if self.profile_fallback_insert:
            await self.ensure_profile(ProfileCreate(id=account.id, full_name=full_name, role=role))
        return account

    async def ensure_profile(self, payload: ProfileCreate) -> Profile:
        """
        Insert a profile unless one already exists. Safe to call repeatedly.

        Returns:
            The stored profile

        Raises:
            StoreError: If the insert failed and no profile exists
        """
        try:
            rows = await self._store.insert(PROFILES, [payload.to_row()])
            if rows:
                return parse_row(Profile, rows[0], PROFILES)
        except StoreError as e:
            if e.is_duplicate:
                logger.info(f"Profile for {payload.id} already exists")
            else:
                logger.warning(f"Profile creation error for {payload.id}: {e}")

        rows = await self._store.select(PROFILES, [Eq("id", payload.id)])
        if not rows:
            raise StoreError(f"Profile for account {payload.id} could not be created")
        return parse_row(Profile, rows[0], PROFILES)

    async def sign_out(self) -> None:
        """
        Raises:
            AuthError: If the store rejects the sign-out
        """
        try:
            await self._store.sign_out()
        except AuthError:
            raise
        except Exception as e:
            raise AuthError(f"Sign out failed: {e}") from e
        await self._apply_session(None)
