"""Protocol interfaces for soroswap_indexer collaborators."""

from soroswap_indexer.interfaces.ledger import LedgerService, QueryResponse, SubscribeResponse
from soroswap_indexer.interfaces.store import SubscriptionStore

__all__ = [
    "LedgerService", "QueryResponse", "SubscribeResponse",
    "SubscriptionStore",
]
