"""Token and liquidity pool snapshots returned to callers."""

from __future__ import annotations

from dataclasses import asdict, dataclass

DEFAULT_DECIMALS = 7  # Stellar asset contracts


@dataclass(frozen=True)
class Token:
    """A token contract. Identity is the contract address."""

    contract: str
    code: str
    name: str
    decimals: int = DEFAULT_DECIMALS

    @classmethod
    def unknown(cls, contract: str) -> Token:
        """Placeholder for a contract missing from the token list."""
        return cls(contract=contract, code=contract, name=contract)


@dataclass(frozen=True)
class LiquidityPool:
    """Pair contract with its tokens and reserves. Rebuilt on every query."""

    address: str
    token0: Token
    token1: Token
    reserve0: int
    reserve1: int

    def to_dict(self) -> dict:
        return asdict(self)
