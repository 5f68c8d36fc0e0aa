"""Factory address resolution."""

from __future__ import annotations

import logging

import httpx

from soroswap_indexer.errors import ServiceUnavailable
from soroswap_indexer.stellar.address import is_address

log = logging.getLogger(__name__)


class FactoryAddressResolver:
    """Resolves the Soroswap factory contract address for one network.

    A configured address wins. Otherwise the address is fetched once from
    ``address_url`` (a JSON document with an ``address`` field) and cached
    for the lifetime of the resolver.
    """

    def __init__(
        self,
        configured_address: str = "",
        address_url: str = "",
        timeout: float = 30.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._address = configured_address or None
        self._address_url = address_url
        self._timeout = timeout
        self._http = http_client

    async def get_factory_address(self) -> str:
        if self._address:
            return self._address
        if not self._address_url:
            raise ServiceUnavailable("No factory address configured and no address URL set")

        try:
            if self._http is not None:
                resp = await self._http.get(self._address_url)
                resp.raise_for_status()
                payload = resp.json()
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    resp = await client.get(self._address_url)
                    resp.raise_for_status()
                    payload = resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise ServiceUnavailable(f"Could not fetch factory address: {exc}") from exc

        address = payload.get("address") if isinstance(payload, dict) else None
        if not is_address(address):
            raise ServiceUnavailable(f"Factory address response has no valid address: {payload!r}")

        log.info("Resolved factory address %s from %s", address, self._address_url)
        self._address = address
        return address
