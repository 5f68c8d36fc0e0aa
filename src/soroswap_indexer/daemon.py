"""Indexer daemon - wires all components together and runs the sync loop."""

from __future__ import annotations

import asyncio
import logging
import signal

from soroswap_indexer.mercury.client import MercuryClient
from soroswap_indexer.models.config import IndexerConfig
from soroswap_indexer.models.pools import LiquidityPool
from soroswap_indexer.soroswap.factory import FactoryAddressResolver
from soroswap_indexer.soroswap.tokens import TokenRegistry
from soroswap_indexer.storage.sqlite import SQLiteSubscriptionStore
from soroswap_indexer.sync.classifier import SubscriptionClassifier, SubscriptionReconciler
from soroswap_indexer.sync.counter import PairCounterTracker
from soroswap_indexer.sync.pools import PoolAggregator
from soroswap_indexer.sync.synchronizer import SubscriptionSynchronizer

log = logging.getLogger(__name__)


class IndexerDaemon:
    """Periodically synchronizes factory pairs into local subscriptions.

    Components are plain attributes so callers (and tests) can swap any of
    them before ``open()``.
    """

    def __init__(self, cfg: IndexerConfig) -> None:
        self._cfg = cfg
        self._running = False

        self.ledger = MercuryClient(
            backend_url=cfg.mercury_backend_url,
            graphql_url=cfg.mercury_graphql_url,
            email=cfg.mercury_email,
            password=cfg.mercury_password,
            api_key=cfg.mercury_api_key,
            timeout=cfg.request_timeout,
            read_retries=cfg.read_retries,
        )
        self.store = SQLiteSubscriptionStore(cfg.db_path)
        self.factory = FactoryAddressResolver(
            cfg.factory_contract_id, cfg.factory_address_url, cfg.request_timeout,
        )
        self.tokens = TokenRegistry(
            cfg.token_list_url, cfg.network, cfg.token_cache_ttl, cfg.request_timeout,
        )
        self.classifier = SubscriptionClassifier(cfg.soroswap_factories, cfg.phoenix_factories)
        self.wire()

    def wire(self) -> None:
        """(Re)build the engine components from the current collaborators."""
        self.counter = PairCounterTracker(self.ledger, self.factory)
        self.pools = PoolAggregator(self.ledger, self.tokens)
        self.synchronizer = SubscriptionSynchronizer(
            ledger=self.ledger,
            store=self.store,
            factory=self.factory,
            counter=self.counter,
            pools=self.pools,
            network=self._cfg.network,
        )
        self.reconciler = SubscriptionReconciler(
            self.ledger, self.store, self.classifier, self._cfg.network,
        )

    async def open(self) -> None:
        await self.store.initialize()

    async def close(self) -> None:
        if isinstance(self.ledger, MercuryClient):
            await self.ledger.close()
        await self.store.close()

    async def sync_once(self) -> list[LiquidityPool]:
        pools = await self.synchronizer.synchronize()
        report = self.synchronizer.last_report
        if report is not None:
            log.info(
                "Sync done: %d -> %d pairs, %d subscriptions created, %d failures, %d pools",
                report.old_count, report.new_count, report.subscriptions_created,
                len(report.failures), report.pools_returned,
            )
            for failure in report.failures:
                log.warning("  %s", failure)
        return pools

    async def start(self) -> None:
        """Initialize components and run the main loop."""
        log.info("Starting soroswap_indexer daemon")
        log.info("  Network: %s", self._cfg.network.value)
        log.info("  Mercury: %s", self._cfg.mercury_graphql_url)
        log.info("  Factory: %s", self._cfg.factory_contract_id or self._cfg.factory_address_url)
        log.info("  DB: %s", self._cfg.db_path)

        await self.open()
        self._running = True
        try:
            await self._main_loop()
        finally:
            await self.close()
            log.info("Daemon shut down cleanly")

    async def stop(self) -> None:
        """Signal the daemon to stop gracefully."""
        log.info("Stop requested")
        self._running = False

    async def _main_loop(self) -> None:
        while self._running:
            try:
                await self.sync_once()
                await asyncio.sleep(self._cfg.sync_interval)
            except asyncio.CancelledError:
                log.info("Main loop cancelled")
                break
            except Exception as exc:
                log.error("Main loop error: %s", exc, exc_info=True)
                await asyncio.sleep(self._cfg.error_backoff)


async def run_daemon(cfg: IndexerConfig) -> None:
    """Entry point for running the daemon."""
    daemon = IndexerDaemon(cfg)

    loop = asyncio.get_running_loop()

    def _signal_handler():
        asyncio.ensure_future(daemon.stop())

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _signal_handler)
        except NotImplementedError:
            # Windows doesn't support add_signal_handler
            pass

    await daemon.start()
