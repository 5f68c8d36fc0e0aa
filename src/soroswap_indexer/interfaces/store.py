"""SubscriptionStore protocol - persists subscriptions and the pair counter."""

from __future__ import annotations

from typing import Protocol

from soroswap_indexer.models.records import (
    ContractType,
    Network,
    Subscription,
    SyncReport,
)


class SubscriptionStore(Protocol):
    """Insert-only subscription log plus a per-network pair counter."""

    # ── Lifecycle ──────────────────────────────────────────

    async def initialize(self) -> None:
        """Create tables if they don't exist."""
        ...

    async def close(self) -> None:
        ...

    # ── Subscriptions ──────────────────────────────────────

    async def find_subscription(
        self, contract_id: str, key_xdr: str, network: Network,
    ) -> Subscription | None:
        ...

    async def create_subscription(self, subscription: Subscription) -> bool:
        """Insert a subscription. Returns False if the key already existed."""
        ...

    async def list_subscriptions(
        self,
        network: Network | None = None,
        contract_type: ContractType | None = None,
    ) -> list[Subscription]:
        ...

    # ── Pair counter ───────────────────────────────────────

    async def get_counter(self, network: Network) -> int | None:
        """Last persisted pair count, or None if never initialized."""
        ...

    async def save_counter(self, network: Network, count: int) -> int:
        """Upsert the counter. Returns the stored value."""
        ...

    # ── Sync history ───────────────────────────────────────

    async def save_sync_report(self, report: SyncReport) -> None:
        ...

    async def get_sync_history(
        self, network: Network | None = None, limit: int = 10,
    ) -> list[SyncReport]:
        ...
