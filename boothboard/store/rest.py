"""
REST entity store
Talks to a Supabase-style project: PostgREST tables under /rest/v1 and the
GoTrue auth API under /auth/v1.
Reference:
- https://postgrest.org/en/stable/references/api/tables_views.html
- https://supabase.com/docs/reference/api/introduction
"""
import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

import httpx

from boothboard.core.config import Settings
from boothboard.core.exceptions import AuthError, StoreError
from boothboard.schemas.account import Account, AuthSession
from boothboard.store.base import (
    SIGNED_IN,
    SIGNED_OUT,
    AnyOf,
    AuthCallback,
    ChangeCallback,
    Clause,
    EntityStore,
    Eq,
    OrderBy,
    Row,
    Subscription,
    Topic,
)

logger = logging.getLogger(__name__)


def _encode_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _encode_eq(clause: Eq, separator: str) -> Tuple[str, str]:
    # PostgREST: col=eq.value / col=is.null, and col.eq.value inside or=(...)
    if clause.value is None:
        return clause.column, f"is{separator}null"
    return clause.column, f"eq{separator}{_encode_value(clause.value)}"


def build_params(
    where: Sequence[Clause] = (),
    order_by: Sequence[OrderBy] = (),
    select: Optional[str] = None,
) -> List[Tuple[str, str]]:
    """
    Translate filter clauses into PostgREST query parameters.

    Example:
        [Eq("booth_id", "b1")] -> [("booth_id", "eq.b1")]
        [AnyOf([Eq("to_booth_id", "b1"), Eq("to_booth_id", None)])]
            -> [("or", "(to_booth_id.eq.b1,to_booth_id.is.null)")]
    """
    params: List[Tuple[str, str]] = []
    if select:
        params.append(("select", select))
    for clause in where:
        if isinstance(clause, AnyOf):
            parts = []
            for eq in clause.clauses:
                column, expr = _encode_eq(eq, ".")
                parts.append(f"{column}.{expr}")
            params.append(("or", f"({','.join(parts)})"))
        else:
            params.append(_encode_eq(clause, "."))
    if order_by:
        params.append((
            "order",
            ",".join(f"{o.column}.{'desc' if o.descending else 'asc'}" for o in order_by),
        ))
    return params


class RestStore(EntityStore):
    """
    Entity store over HTTP using httpx

    The REST API has no realtime channel; subscribe() raises StoreError and
    views fall back to manual reloads.
    """

    def __init__(
        self,
        url: str,
        anon_key: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.url = url.rstrip("/")
        self.anon_key = anon_key
        self._client = httpx.AsyncClient(
            base_url=self.url,
            timeout=timeout,
            transport=transport,
            headers={"apikey": anon_key},
        )
        self._session: Optional[AuthSession] = None
        self._auth_listeners: Dict[int, AuthCallback] = {}
        self._next_handle = 0

    @classmethod
    def from_settings(cls, settings: Settings) -> "RestStore":
        return cls(settings.STORE_URL, settings.STORE_ANON_KEY, timeout=settings.HTTP_TIMEOUT)

    def _headers(self, prefer: Optional[str] = None) -> Dict[str, str]:
        token = self._session.access_token if self._session else self.anon_key
        headers = {"Authorization": f"Bearer {token}"}
        if prefer:
            headers["Prefer"] = prefer
        return headers

    @staticmethod
    def _error_detail(response: httpx.Response) -> Tuple[str, Optional[str]]:
        try:
            body = response.json()
        except ValueError:
            return response.text or response.reason_phrase, None
        if not isinstance(body, dict):
            return str(body), None
        message = (
            body.get("message")
            or body.get("msg")
            or body.get("error_description")
            or body.get("error")
            or response.reason_phrase
        )
        code = body.get("code")
        return str(message), str(code) if code is not None else None

    async def _table_request(
        self,
        method: str,
        table: str,
        params: Sequence[Tuple[str, str]] = (),
        json: Any = None,
        prefer: Optional[str] = None,
    ) -> httpx.Response:
        try:
            response = await self._client.request(
                method,
                f"/rest/v1/{table}",
                params=list(params),
                json=json,
                headers=self._headers(prefer),
            )
        except httpx.HTTPError as e:
            logger.error(f"{method} {table} failed: {type(e).__name__}: {e}")
            raise StoreError(f"Store request failed: {e}") from e
        if response.is_error:
            message, code = self._error_detail(response)
            logger.warning(f"{method} {table} returned {response.status_code}: {message}")
            raise StoreError(message, code=code)
        return response

    async def _auth_request(
        self,
        path: str,
        json: Optional[dict] = None,
        params: Optional[dict] = None,
    ) -> httpx.Response:
        try:
            response = await self._client.post(
                f"/auth/v1/{path}", json=json, params=params, headers=self._headers()
            )
        except httpx.HTTPError as e:
            logger.error(f"Auth request {path} failed: {type(e).__name__}: {e}")
            raise AuthError(f"Auth request failed: {e}") from e
        if response.is_error:
            message, _ = self._error_detail(response)
            raise AuthError(message, status_code=response.status_code)
        return response

    # Tables

    async def select(
        self,
        table: str,
        where: Sequence[Clause] = (),
        order_by: Sequence[OrderBy] = (),
    ) -> List[dict]:
        response = await self._table_request("GET", table, build_params(where, order_by, select="*"))
        return list(response.json())

    async def insert(self, table: str, rows: Sequence[Row]) -> List[dict]:
        response = await self._table_request(
            "POST", table, json=[dict(r) for r in rows], prefer="return=representation"
        )
        return list(response.json())

    async def update(self, table: str, patch: Row, where: Sequence[Clause]) -> List[dict]:
        response = await self._table_request(
            "PATCH", table, build_params(where), json=dict(patch), prefer="return=representation"
        )
        return list(response.json())

    async def delete(self, table: str, where: Sequence[Clause]) -> None:
        await self._table_request("DELETE", table, build_params(where))

    # Change feed

    async def subscribe(self, topic: Topic, callback: ChangeCallback) -> Subscription:
        raise StoreError(f"Realtime change feed is not available for {topic} over REST")

    # Session

    async def _notify(self, event: str, session: Optional[AuthSession]) -> None:
        for callback in list(self._auth_listeners.values()):
            try:
                await callback(event, session)
            except Exception as e:
                logger.error(f"Auth listener failed: {type(e).__name__}: {e}", exc_info=True)

    async def get_session(self) -> Optional[AuthSession]:
        return self._session

    def on_auth_state_change(self, callback: AuthCallback) -> Subscription:
        self._next_handle += 1
        handle = self._next_handle
        self._auth_listeners[handle] = callback
        return Subscription(lambda: self._auth_listeners.pop(handle, None))

    async def sign_in_with_password(self, email: str, password: str) -> AuthSession:
        response = await self._auth_request(
            "token",
            json={"email": email, "password": password},
            params={"grant_type": "password"},
        )
        body = response.json()
        user = body.get("user") or {}
        self._session = AuthSession(
            access_token=body["access_token"],
            account=Account(id=user["id"], email=user.get("email", email)),
        )
        await self._notify(SIGNED_IN, self._session)
        return self._session

    async def sign_up(self, email: str, password: str, metadata: Optional[dict] = None) -> Account:
        response = await self._auth_request(
            "signup",
            json={"email": email, "password": password, "data": metadata or {}},
        )
        body = response.json()
        # GoTrue returns the user at the top level, or nested when a session is issued
        user = body.get("user") or body
        if not user.get("id"):
            raise AuthError("Sign-up response did not include a user")
        return Account(id=user["id"], email=user.get("email", email))

    async def sign_out(self) -> None:
        if self._session is None:
            return
        await self._auth_request("logout")
        self._session = None
        await self._notify(SIGNED_OUT, None)

    async def close(self) -> None:
        await self._client.aclose()
