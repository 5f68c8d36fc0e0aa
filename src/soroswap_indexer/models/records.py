"""Persisted subscription records and taxonomy enums."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class Network(str, Enum):
    """Stellar network a subscription or counter belongs to."""

    MAINNET = "MAINNET"
    TESTNET = "TESTNET"


class Protocol(str, Enum):
    SOROSWAP = "SOROSWAP"
    PHOENIX = "PHOENIX"


class ContractType(str, Enum):
    FACTORY = "FACTORY"
    PAIR = "PAIR"


class StorageType(str, Enum):
    INSTANCE = "INSTANCE"
    PERSISTENT = "PERSISTENT"


@dataclass(frozen=True)
class Classification:
    """Taxonomy triple assigned to a (contract_id, key_xdr) subscription."""

    protocol: Protocol | None
    contract_type: ContractType
    storage_type: StorageType


@dataclass
class Subscription:
    """Registered interest in one contract storage slot.

    Unique on (contract_id, key_xdr, network). Insert-only.
    """

    contract_id: str  # 56-char contract address
    key_xdr: str  # base64 SCVal storage key
    network: Network
    protocol: Protocol | None = None
    contract_type: ContractType | None = None
    storage_type: StorageType | None = None
    created_at: str = ""

    def classify_as(self, classification: Classification) -> Subscription:
        return Subscription(
            contract_id=self.contract_id,
            key_xdr=self.key_xdr,
            network=self.network,
            protocol=classification.protocol,
            contract_type=classification.contract_type,
            storage_type=classification.storage_type,
        )


@dataclass
class SyncReport:
    """Outcome of one synchronize() pass."""

    network: Network
    factory_address: str
    old_count: int
    new_count: int
    saved_count: int = 0  # counter value actually persisted
    subscriptions_created: int = 0
    subscribe_calls: int = 0
    failures: list[str] = field(default_factory=list)
    pools_returned: int = 0
    started_at: str = ""
    completed_at: str = ""

    @property
    def new_pairs(self) -> int:
        return max(self.new_count - self.old_count, 0)

    @property
    def ok(self) -> bool:
        return not self.failures


@dataclass
class ReconcileReport:
    """Outcome of a reconciliation pass over the bulk subscription listing."""

    network: Network
    total_seen: int = 0
    created: int = 0
    counters: dict[str, int] = field(default_factory=lambda: {
        "soroswap_factory_instance": 0,
        "soroswap_factory_persistent": 0,
        "phoenix_factory_instance": 0,
        "phoenix_factory_config": 0,
        "phoenix_factory_lp_vec": 0,
        "phoenix_factory_initialized": 0,
        "pair_storage": 0,
        "others": 0,
    })
