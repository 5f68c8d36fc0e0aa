"""Subscription synchronizer - discovers new pairs and registers subscriptions."""

from __future__ import annotations

import asyncio
import logging
import weakref
from datetime import datetime, timezone

from soroswap_indexer.constants import DURABILITY_PERSISTENT, INSTANCE_STORAGE_KEY
from soroswap_indexer.errors import IndexerError, ServiceUnavailable, SubscribeFailure
from soroswap_indexer.interfaces.ledger import LedgerService
from soroswap_indexer.interfaces.store import SubscriptionStore
from soroswap_indexer.mercury.decoder import decode_pair_addresses
from soroswap_indexer.mercury.queries import (
    build_get_pair_addresses_query,
    pair_addresses_variables,
)
from soroswap_indexer.models.pools import LiquidityPool
from soroswap_indexer.models.records import (
    Classification,
    ContractType,
    Network,
    Protocol,
    StorageType,
    Subscription,
    SyncReport,
)
from soroswap_indexer.soroswap.factory import FactoryAddressResolver
from soroswap_indexer.stellar.keys import pair_key_xdr
from soroswap_indexer.sync.counter import PairCounterTracker
from soroswap_indexer.sync.pools import PoolAggregator

log = logging.getLogger(__name__)

FACTORY_INDEX_CLASSIFICATION = Classification(
    Protocol.SOROSWAP, ContractType.FACTORY, StorageType.PERSISTENT,
)
PAIR_INSTANCE_CLASSIFICATION = Classification(
    None, ContractType.PAIR, StorageType.INSTANCE,
)

# Single-flight guard: one synchronize() per (network, factory) per event loop.
_SYNC_LOCKS: weakref.WeakKeyDictionary[
    asyncio.AbstractEventLoop, dict[tuple[Network, str], asyncio.Lock]
] = weakref.WeakKeyDictionary()


def _sync_lock(network: Network, factory_address: str) -> asyncio.Lock:
    locks = _SYNC_LOCKS.setdefault(asyncio.get_running_loop(), {})
    return locks.setdefault((network, factory_address), asyncio.Lock())


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class SubscriptionSynchronizer:
    """Brings local subscriptions in line with the factory's pair list.

    Order within one pass: counter read, subscribe calls and inserts,
    counter persistence, then address and pool retrieval. A crash anywhere
    leaves the persisted counter at or below the range actually attempted,
    so re-running is always safe.
    """

    def __init__(
        self,
        ledger: LedgerService,
        store: SubscriptionStore,
        factory: FactoryAddressResolver,
        counter: PairCounterTracker,
        pools: PoolAggregator,
        network: Network,
    ) -> None:
        self._ledger = ledger
        self._store = store
        self._factory = factory
        self._counter = counter
        self._pools = pools
        self._network = network
        self.last_report: SyncReport | None = None

    async def synchronize(self) -> list[LiquidityPool]:
        """Subscribe to newly created pairs and return pool snapshots.

        Returns pools for the new pairs when the on-chain counter moved,
        otherwise pools for every known pair. Per-item subscribe failures
        are recorded on ``last_report`` and do not abort the pass.
        """
        factory_address = await self._factory.get_factory_address()
        async with _sync_lock(self._network, factory_address):
            return await self._synchronize(factory_address)

    async def _synchronize(self, factory_address: str) -> list[LiquidityPool]:
        report = SyncReport(
            network=self._network,
            factory_address=factory_address,
            old_count=0,
            new_count=0,
            started_at=_now(),
        )
        self.last_report = report
        try:
            new_count = await self._counter.get_pair_counter()
            stored = await self._store.get_counter(self._network)
            if stored is None:
                log.info("No pair counter stored for %s, starting from 0", self._network.value)
                old_count = 0
            else:
                old_count = stored
            report.old_count = old_count
            report.new_count = new_count

            if new_count > old_count:
                pools = await self._discover(factory_address, old_count, new_count, report)
            else:
                log.info("No new pairs found (%d on-chain, %d stored)", new_count, old_count)
                if stored is None:
                    await self._store.save_counter(self._network, old_count)
                report.saved_count = old_count
                addresses = await self.get_pair_addresses(new_count)
                pools = await self._assemble(list(addresses.values()))

            report.pools_returned = len(pools)
            return pools
        except IndexerError as exc:
            report.failures.append(str(exc))
            raise
        finally:
            report.completed_at = _now()
            await self._record(report)

    async def _record(self, report: SyncReport) -> None:
        # Never masks the error raised by the pass itself.
        try:
            await self._store.save_sync_report(report)
        except Exception as exc:
            log.error("Could not record sync report: %s", exc, exc_info=True)

    async def _discover(
        self, factory_address: str, old_count: int, new_count: int, report: SyncReport,
    ) -> list[LiquidityPool]:
        log.info("New pairs found: %d -> %d", old_count, new_count)

        failed = await self.subscribe_to_factory_indices(
            factory_address, old_count, new_count, report,
        )
        log.info("Subscribed to new pairs on factory")

        addresses = await self.get_pair_addresses(new_count)
        new_pairs: dict[int, str] = {}
        for index in range(old_count, new_count):
            address = addresses.get(index)
            if address is None:
                message = f"Pair {index} has no address entry yet"
                log.warning("Pair %d has no address entry yet", index)
                report.failures.append(message)
                failed.append(index)
            else:
                new_pairs[index] = address

        if new_pairs:
            failed += await self.subscribe_to_pairs(new_pairs, report)
            log.info("Subscribed to new pairs")

        # Stop at the first failed index so the next pass retries it.
        target = min(failed) if failed else new_count
        report.saved_count = await self._store.save_counter(
            self._network, max(target, old_count),
        )
        log.info("Updated pairs count on database: %d", report.saved_count)

        log.info("Fetching liquidity pools...")
        return await self._assemble(list(new_pairs.values()))

    async def subscribe_to_factory_indices(
        self, factory_address: str, first: int, last: int, report: SyncReport,
    ) -> list[int]:
        """Subscribe to ``PairAddressesNIndexed(i)`` for i in [first, last).

        Returns the indices whose subscribe call failed.
        """
        failed: list[int] = []
        for index in range(first, last):
            key_xdr = pair_key_xdr(index)
            try:
                await self._subscribe_once(
                    factory_address, key_xdr, DURABILITY_PERSISTENT, False,
                    FACTORY_INDEX_CLASSIFICATION, index, report,
                )
            except SubscribeFailure as exc:
                log.error("%s", exc)
                report.failures.append(str(exc))
                failed.append(index)
        return failed

    async def subscribe_to_pairs(
        self,
        pairs: dict[int, str],
        report: SyncReport,
        key_xdr: str = INSTANCE_STORAGE_KEY,
        durability: str = DURABILITY_PERSISTENT,
        hydrate: bool = True,
    ) -> list[int]:
        """Subscribe to ``key_xdr`` on every pair contract in ``{index: address}``.

        Returns the pair indices that failed.
        """
        failed: list[int] = []
        for index, contract_id in sorted(pairs.items()):
            try:
                await self._subscribe_once(
                    contract_id, key_xdr, durability, hydrate,
                    PAIR_INSTANCE_CLASSIFICATION, contract_id, report,
                )
            except SubscribeFailure as exc:
                log.error("%s", exc)
                report.failures.append(str(exc))
                failed.append(index)
        return failed

    async def _subscribe_once(
        self,
        contract_id: str,
        key_xdr: str,
        durability: str,
        hydrate: bool,
        classification: Classification,
        failure_key: int | str,
        report: SyncReport,
    ) -> bool:
        existing = await self._store.find_subscription(contract_id, key_xdr, self._network)
        if existing is not None:
            log.debug(
                "Subscription already exists for contractId=%s key_xdr=%s",
                contract_id[:16], key_xdr,
            )
            return False

        report.subscribe_calls += 1
        try:
            response = await self._ledger.subscribe_to_ledger_entries(
                contract_id, key_xdr, durability, hydrate,
            )
        except Exception as exc:
            raise SubscribeFailure(failure_key, exc) from exc
        if not response.ok:
            raise SubscribeFailure(failure_key, "subscription was not confirmed")

        created = await self._store.create_subscription(Subscription(
            contract_id=contract_id,
            key_xdr=key_xdr,
            network=self._network,
        ).classify_as(classification))
        if created:
            report.subscriptions_created += 1
            log.info("Subscription created: %s key=%s", contract_id[:16], key_xdr)
        return created

    async def get_pair_addresses(self, pair_count: int) -> dict[int, str]:
        """Pair addresses stored in the factory, keyed by pair index.

        Indices with no entry yet are absent. Raises ServiceUnavailable.
        """
        if pair_count <= 0:
            return {}
        factory_address = await self._factory.get_factory_address()
        response = await self._ledger.custom_query(
            build_get_pair_addresses_query(pair_count),
            pair_addresses_variables(factory_address, pair_count),
        )
        if not response.ok:
            log.error("Pair addresses query failed: %s", response.error)
            raise ServiceUnavailable("Error getting pair addresses")
        return decode_pair_addresses(response.data)

    async def _assemble(self, addresses: list[str]) -> list[LiquidityPool]:
        if not addresses:
            return []
        return await self._pools.assemble(addresses)
