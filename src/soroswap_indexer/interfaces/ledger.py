"""LedgerService protocol - the ledger query and subscription service."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol


@dataclass
class QueryResponse:
    """Result of a custom GraphQL query. ``ok`` is False on any failure."""

    ok: bool
    data: Any = None
    error: str | None = None


@dataclass
class SubscribeResponse:
    """Confirmation of a ledger entry subscription."""

    ok: bool
    contract_id: str
    key_xdr: str
    data: Any = None


class LedgerService(Protocol):
    """Queries indexed ledger entries and registers entry subscriptions."""

    async def custom_query(
        self, request: str, variables: dict[str, Any] | None = None,
    ) -> QueryResponse:
        """Run a GraphQL query. Never raises for service-side failures."""
        ...

    async def subscribe_to_ledger_entries(
        self,
        contract_id: str,
        key_xdr: str,
        durability: str = "persistent",
        hydrate: bool = True,
    ) -> SubscribeResponse:
        """Register interest in a storage key. Raises on failure."""
        ...
