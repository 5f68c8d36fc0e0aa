"""Stellar/Soroban XDR helpers."""

from soroswap_indexer.stellar.address import is_address, shorten_address
from soroswap_indexer.stellar.keys import pair_index_from_key, pair_key_xdr
from soroswap_indexer.stellar.scval_native import map_entries, scval_to_native

__all__ = [
    "is_address", "shorten_address",
    "pair_index_from_key", "pair_key_xdr",
    "map_entries", "scval_to_native",
]
