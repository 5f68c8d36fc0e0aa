"""Soroswap off-chain metadata: factory address and token list."""

from soroswap_indexer.soroswap.factory import FactoryAddressResolver
from soroswap_indexer.soroswap.tokens import TokenRegistry, parse_token_list

__all__ = ["FactoryAddressResolver", "TokenRegistry", "parse_token_list"]
