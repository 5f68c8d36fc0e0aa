"""Token list cache - resolves token metadata for pool snapshots."""

from __future__ import annotations

import logging
import time
from typing import Any

import httpx

from soroswap_indexer.models.pools import DEFAULT_DECIMALS, Token
from soroswap_indexer.models.records import Network

log = logging.getLogger(__name__)


def parse_token_list(payload: Any, network: Network) -> dict[str, Token]:
    """Extract {contract: Token} from a token list document.

    Accepts either a single list (``{"assets": [...]}``) or a per-network
    array (``[{"network": "testnet", "assets": [...]}, ...]``).
    """
    assets: list = []
    if isinstance(payload, dict):
        assets = payload.get("assets") or payload.get("tokens") or []
    elif isinstance(payload, list):
        for group in payload:
            if not isinstance(group, dict):
                continue
            if str(group.get("network", "")).upper() == network.value:
                assets = group.get("assets") or group.get("tokens") or []
                break

    tokens: dict[str, Token] = {}
    for asset in assets:
        if not isinstance(asset, dict) or not asset.get("contract"):
            continue
        contract = asset["contract"]
        code = asset.get("code") or asset.get("symbol") or contract
        tokens[contract] = Token(
            contract=contract,
            code=code,
            name=asset.get("name") or code,
            decimals=int(asset.get("decimals", DEFAULT_DECIMALS)),
        )
    return tokens


class TokenRegistry:
    """In-memory token list cache with a TTL.

    Unknown contracts and unreachable token lists degrade to placeholder
    tokens rather than failing pool assembly.
    """

    def __init__(
        self,
        token_list_url: str,
        network: Network,
        ttl_seconds: int = 3600,
        retry_seconds: int = 60,
        timeout: float = 30.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._url = token_list_url
        self._network = network
        self._ttl = ttl_seconds
        self._retry = retry_seconds
        self._expires_in: float = ttl_seconds
        self._timeout = timeout
        self._http = http_client
        self._tokens: dict[str, Token] = {}
        self._fetched_at: float | None = None

    async def get_token(self, contract: str) -> Token:
        tokens = await self.get_tokens()
        token = tokens.get(contract)
        if token is None:
            log.debug("Token %s not in token list", contract[:16])
            return Token.unknown(contract)
        return token

    async def get_tokens(self) -> dict[str, Token]:
        if self._fetched_at is not None and not self._is_expired():
            return self._tokens
        await self.refresh()
        return self._tokens

    async def refresh(self) -> None:
        if not self._url:
            self._fetched_at = time.monotonic()
            return
        try:
            if self._http is not None:
                resp = await self._http.get(self._url)
                resp.raise_for_status()
                payload = resp.json()
            else:
                async with httpx.AsyncClient(timeout=self._timeout, follow_redirects=True) as client:
                    resp = await client.get(self._url)
                    resp.raise_for_status()
                    payload = resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            # Keep serving the previous list. An empty cache retries sooner.
            log.warning("Token list fetch failed (%s): %s", self._url, exc)
            self._fetched_at = time.monotonic()
            self._expires_in = self._ttl if self._tokens else min(self._ttl, self._retry)
            return

        self._tokens = parse_token_list(payload, self._network)
        self._fetched_at = time.monotonic()
        self._expires_in = self._ttl
        log.info("Loaded %d tokens for %s", len(self._tokens), self._network.value)

    def _is_expired(self) -> bool:
        if self._fetched_at is None:
            return True
        return time.monotonic() - self._fetched_at > self._expires_in
