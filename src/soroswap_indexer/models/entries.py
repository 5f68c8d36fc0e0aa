"""Decoded contract storage snapshots."""

from __future__ import annotations

from dataclasses import dataclass

# Factory instance storage DataKey ordinals
FACTORY_DATA_KEYS: tuple[str, ...] = (
    "fee_to",  # address
    "fee_to_setter",  # address
    "total_pairs",  # u32
    "fees_enabled",  # bool
)

# Pair instance storage DataKey ordinals
PAIR_DATA_KEYS: tuple[str, ...] = (
    "token0",
    "token1",
    "reserve0",
    "reserve1",
    "factory",
    "total_shares",
)


@dataclass(frozen=True)
class FactoryInstanceEntry:
    """Snapshot of the factory contract's instance storage. Never persisted."""

    fee_to: str | None = None
    fee_to_setter: str | None = None
    total_pairs: int = 0
    fees_enabled: bool = False


@dataclass(frozen=True)
class PairInstanceEntry:
    """Snapshot of a pair contract's instance storage."""

    contract_id: str
    token0: str | None = None
    token1: str | None = None
    reserve0: int | None = None
    reserve1: int | None = None
    factory: str | None = None
    total_shares: int | None = None

    @property
    def complete(self) -> bool:
        return None not in (self.token0, self.token1, self.reserve0, self.reserve1)
