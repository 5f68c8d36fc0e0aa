"""Pool aggregator - joins pair addresses with decoded tokens and reserves."""

from __future__ import annotations

import logging
from typing import Protocol

from soroswap_indexer.errors import InvalidRequest, ServiceUnavailable
from soroswap_indexer.interfaces.ledger import LedgerService
from soroswap_indexer.mercury.decoder import decode_pair_instances
from soroswap_indexer.mercury.queries import (
    build_get_pairs_with_tokens_and_reserves_query,
    pairs_with_tokens_and_reserves_variables,
)
from soroswap_indexer.models.pools import LiquidityPool, Token

log = logging.getLogger(__name__)


class TokenResolver(Protocol):
    async def get_token(self, contract: str) -> Token:
        ...


class PoolAggregator:
    """Builds LiquidityPool snapshots for a list of pair addresses."""

    def __init__(self, ledger: LedgerService, tokens: TokenResolver) -> None:
        self._ledger = ledger
        self._tokens = tokens

    async def assemble(self, addresses: list[str]) -> list[LiquidityPool]:
        """One pool per address with a complete token/reserve record, in input order.

        Addresses without data are omitted. Raises InvalidRequest for an
        empty list and ServiceUnavailable if the batch query fails.
        """
        if not addresses:
            raise InvalidRequest("Pool assembly needs at least one pair address")

        query = build_get_pairs_with_tokens_and_reserves_query(len(addresses))
        variables = pairs_with_tokens_and_reserves_variables(addresses)
        response = await self._ledger.custom_query(query, variables)
        if not response.ok:
            log.error("Pair tokens/reserves query failed: %s", response.error)
            raise ServiceUnavailable("Error getting pair tokens and reserves")

        entries = decode_pair_instances(response.data, addresses)

        pools: list[LiquidityPool] = []
        for address in addresses:
            entry = entries.get(address)
            if entry is None or not entry.complete:
                log.debug("Omitting pair %s: incomplete storage", address[:16])
                continue
            pools.append(LiquidityPool(
                address=address,
                token0=await self._tokens.get_token(entry.token0),
                token1=await self._tokens.get_token(entry.token1),
                reserve0=entry.reserve0,
                reserve1=entry.reserve1,
            ))

        log.info("Assembled %d/%d liquidity pools", len(pools), len(addresses))
        return pools
