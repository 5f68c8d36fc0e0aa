"""Counter tracker - reads how many pairs the factory has created."""

from __future__ import annotations

import logging

from soroswap_indexer.constants import INSTANCE_STORAGE_KEY
from soroswap_indexer.errors import ServiceUnavailable
from soroswap_indexer.interfaces.ledger import LedgerService
from soroswap_indexer.mercury.decoder import decode_factory_instance
from soroswap_indexer.mercury.queries import GET_LAST_CONTRACT_ENTRY
from soroswap_indexer.soroswap.factory import FactoryAddressResolver

log = logging.getLogger(__name__)


class PairCounterTracker:
    """Reads ``total_pairs`` from the factory's instance storage. Read-only."""

    def __init__(self, ledger: LedgerService, factory: FactoryAddressResolver) -> None:
        self._ledger = ledger
        self._factory = factory

    async def get_pair_counter(self) -> int:
        """Total pairs created by the factory; 0 if it has no instance entry yet.

        Raises ServiceUnavailable if the query fails; the caller owns retries.
        """
        contract_id = await self._factory.get_factory_address()
        response = await self._ledger.custom_query(
            GET_LAST_CONTRACT_ENTRY,
            {"contractId": contract_id, "ledgerKey": INSTANCE_STORAGE_KEY},
        )
        if not response.ok:
            log.error("Pair counter query failed: %s", response.error)
            raise ServiceUnavailable("Error getting pair counter")

        entries = decode_factory_instance(response.data)
        if not entries:
            return 0
        return entries[0].total_pairs
