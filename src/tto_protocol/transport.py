"""HttpActionTransport — sends queued actions to ``POST /api/v1/sync/actions``.

Thin httpx wrapper with the identity headers.  Network failures and 5xx
answers become ``PersistenceError`` (the action stays queued).  A 4xx
answer is rebuilt into the ``ProtocolError`` subclass named by the body's
``error`` code.  A 4xx without a known code comes from outside the engine
(identity headers, proxy secret, request parsing) and says nothing about
the action itself, so it is also a ``PersistenceError``.
"""

from __future__ import annotations

from typing import Any

import httpx

from tto_protocol.context import ActorRole
from tto_protocol.errors import ERRORS_BY_CODE, PersistenceError
from tto_protocol.interfaces import ActionTransport
from tto_protocol.models.sync import PendingAction, ReplayResult

SYNC_PATH = "/api/v1/sync/actions"


class HttpActionTransport(ActionTransport):
    """Async HTTP transport for the replay endpoint."""

    def __init__(
        self,
        base_url: str,
        *,
        user_id: str,
        role: ActorRole = ActorRole.INTERVIEWER,
        proxy_secret: str | None = None,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport
        self._headers = {"X-User-ID": user_id, "X-User-Role": ActorRole(role).value}
        if proxy_secret:
            self._headers["X-Proxy-Secret"] = proxy_secret
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> HttpActionTransport:
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=self._timeout,
            headers=self._headers,
            transport=self._transport,
        )
        return self

    async def __aexit__(self, *args: Any) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def send(self, action: PendingAction) -> ReplayResult:
        if self._client is None:
            raise RuntimeError("HttpActionTransport must be used as an async context manager")
        try:
            resp = await self._client.post(SYNC_PATH, json=action.model_dump(mode="json"))
        except httpx.TransportError as exc:
            raise PersistenceError(f"Network failure sending {action.id}: {exc}") from exc

        if resp.status_code >= 500:
            raise PersistenceError(
                f"Server error {resp.status_code} sending {action.id}"
            )
        if resp.status_code >= 400:
            raise self._error_from(resp)
        return ReplayResult.model_validate(resp.json())

    @staticmethod
    def _error_from(resp: httpx.Response) -> Exception:
        try:
            body = resp.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}
        detail = body.get("detail") or f"HTTP {resp.status_code}"
        if not isinstance(detail, str):
            # FastAPI request-validation errors carry a list here
            detail = str(detail)
        cls = ERRORS_BY_CODE.get(body.get("error") or "")
        if cls is None:
            return PersistenceError(f"HTTP {resp.status_code} from server: {detail}")
        return cls(detail)
