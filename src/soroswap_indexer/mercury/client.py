"""Mercury client - GraphQL queries and ledger entry subscriptions over httpx."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from soroswap_indexer.constants import DURABILITY_PERSISTENT
from soroswap_indexer.errors import ServiceUnavailable
from soroswap_indexer.interfaces.ledger import QueryResponse, SubscribeResponse
from soroswap_indexer.mercury.queries import AUTHENTICATE

log = logging.getLogger(__name__)


class MercuryClient:
    """Implements the LedgerService protocol against a Mercury deployment.

    Authenticates lazily: either with a static API key, or by exchanging
    email/password for a JWT via the ``authenticate`` mutation. A 401
    response triggers one re-authentication.

    Transport failures on queries are retried ``read_retries`` times since
    queries are idempotent. Subscriptions are never retried here.
    """

    def __init__(
        self,
        backend_url: str,
        graphql_url: str,
        email: str = "",
        password: str = "",
        api_key: str = "",
        timeout: float = 30.0,
        read_retries: int = 1,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._backend_url = backend_url.rstrip("/")
        self._graphql_url = graphql_url
        self._email = email
        self._password = password
        self._api_key = api_key
        self._read_retries = max(read_retries, 0)
        self._token: str | None = None
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout, connect=10),
        )

    async def close(self) -> None:
        if self._owns_client:
            await self._http.aclose()

    async def __aenter__(self) -> MercuryClient:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    # ── Auth ───────────────────────────────────────────────

    async def authenticate(self) -> str:
        """Exchange credentials for a JWT. Raises ServiceUnavailable on failure."""
        if self._api_key:
            return self._api_key
        if not self._email or not self._password:
            raise ServiceUnavailable("Mercury credentials are not configured")
        try:
            resp = await self._http.post(
                self._graphql_url,
                json={
                    "query": AUTHENTICATE,
                    "variables": {"email": self._email, "password": self._password},
                },
            )
            resp.raise_for_status()
            payload = resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise ServiceUnavailable(f"Mercury authentication failed: {exc}") from exc

        token = ((payload.get("data") or {}).get("authenticate") or {}).get("jwtToken")
        if not token:
            raise ServiceUnavailable("Mercury authentication returned no token")
        self._token = token
        log.debug("Authenticated with Mercury as %s", self._email)
        return token

    async def _headers(self) -> dict[str, str]:
        if self._token is None:
            self._token = await self.authenticate()
        return {"Authorization": f"Bearer {self._token}"}

    async def _post(self, url: str, body: dict[str, Any]) -> httpx.Response:
        resp = await self._http.post(url, json=body, headers=await self._headers())
        if resp.status_code == 401 and not self._api_key:
            log.info("Mercury token rejected, re-authenticating")
            self._token = None
            resp = await self._http.post(url, json=body, headers=await self._headers())
        return resp

    # ── Queries ────────────────────────────────────────────

    async def custom_query(
        self, request: str, variables: dict[str, Any] | None = None,
    ) -> QueryResponse:
        body: dict[str, Any] = {"query": request}
        if variables:
            body["variables"] = variables

        attempts = self._read_retries + 1
        for attempt in range(1, attempts + 1):
            try:
                resp = await self._post(self._graphql_url, body)
                resp.raise_for_status()
                payload = resp.json()
            except (httpx.TimeoutException, httpx.TransportError) as exc:
                if attempt < attempts:
                    log.warning(
                        "Mercury query failed (attempt %d/%d): %s", attempt, attempts, exc,
                    )
                    continue
                return QueryResponse(ok=False, error=f"transport error: {exc}")
            except httpx.HTTPStatusError as exc:
                return QueryResponse(ok=False, error=f"HTTP {exc.response.status_code}")
            except (ServiceUnavailable, ValueError) as exc:
                return QueryResponse(ok=False, error=str(exc))

            if payload.get("errors"):
                messages = "; ".join(
                    str(e.get("message", e)) if isinstance(e, dict) else str(e)
                    for e in payload["errors"]
                )
                return QueryResponse(ok=False, data=payload.get("data"), error=messages)
            return QueryResponse(ok=True, data=payload.get("data"))

        return QueryResponse(ok=False, error="no attempts made")

    # ── Subscriptions ──────────────────────────────────────

    async def subscribe_to_ledger_entries(
        self,
        contract_id: str,
        key_xdr: str,
        durability: str = DURABILITY_PERSISTENT,
        hydrate: bool = True,
    ) -> SubscribeResponse:
        body = {
            "contract_id": contract_id,
            "key_xdr": key_xdr,
            "durability": durability,
            "hydrate": hydrate,
        }
        try:
            resp = await self._post(f"{self._backend_url}/entry", body)
            resp.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise ServiceUnavailable(
                f"subscribe rejected with HTTP {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            raise ServiceUnavailable(f"subscribe transport error: {exc}") from exc

        try:
            data = resp.json()
        except ValueError:
            data = resp.text
        log.debug(
            "Subscribed to %s key=%s (%s)", contract_id[:16], key_xdr, durability,
        )
        return SubscribeResponse(ok=True, contract_id=contract_id, key_xdr=key_xdr, data=data)
