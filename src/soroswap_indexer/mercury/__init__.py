"""Mercury ledger query service integration."""

from soroswap_indexer.mercury.client import MercuryClient
from soroswap_indexer.mercury.decoder import (
    decode_factory_instance,
    decode_pair_addresses,
    decode_pair_instances,
)

__all__ = [
    "MercuryClient",
    "decode_factory_instance", "decode_pair_addresses", "decode_pair_instances",
]
