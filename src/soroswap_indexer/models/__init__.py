"""Data models for the soroswap_indexer package."""

from soroswap_indexer.models.config import IndexerConfig, NETWORK_DEFAULTS, NetworkDefaults
from soroswap_indexer.models.entries import (
    FACTORY_DATA_KEYS,
    PAIR_DATA_KEYS,
    FactoryInstanceEntry,
    PairInstanceEntry,
)
from soroswap_indexer.models.pools import LiquidityPool, Token
from soroswap_indexer.models.records import (
    Classification,
    ContractType,
    Network,
    Protocol,
    ReconcileReport,
    StorageType,
    Subscription,
    SyncReport,
)

__all__ = [
    "IndexerConfig", "NETWORK_DEFAULTS", "NetworkDefaults",
    "FACTORY_DATA_KEYS", "PAIR_DATA_KEYS", "FactoryInstanceEntry", "PairInstanceEntry",
    "LiquidityPool", "Token",
    "Classification", "ContractType", "Network", "Protocol", "ReconcileReport",
    "StorageType", "Subscription", "SyncReport",
]
