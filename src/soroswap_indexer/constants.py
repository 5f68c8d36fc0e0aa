"""Well-known ledger keys and factory address sets."""

from __future__ import annotations

# Instance storage of any contract (SCV_LEDGER_KEY_CONTRACT_INSTANCE)
INSTANCE_STORAGE_KEY = "AAAAFA=="

# Phoenix factory persistent DataKey entries, stored as u32 discriminants
PHOENIX_CONFIG_KEY = "AAAAAwAAAAE="  # DataKey::Config = 1
PHOENIX_LP_VEC_KEY = "AAAAAwAAAAI="  # DataKey::LpVec = 2
PHOENIX_INITIALIZED_KEY = "AAAAAwAAAAM="  # DataKey::Initialized = 3

# Symbol tag of the factory's indexed pair list: PairAddressesNIndexed(u32)
PAIR_INDEX_SYMBOL = "PairAddressesNIndexed"

DURABILITY_PERSISTENT = "persistent"

SOROSWAP_FACTORY_ADDRESSES = frozenset({
    "CA4HEQTL2WPEUYKYKCDOHCDNIV4QHNJ7EL4J4NQ6VADP7SYHVRYZ7AW2",  # mainnet
    "CDP3HMUH6SMS3S7NPGNDJLULCOXXEPSHY4JKUKMBNQMATHDHWXRRJTBY",  # testnet
})

PHOENIX_FACTORY_ADDRESSES = frozenset({
    "CB4SVAWJA6TSRNOJZ7W2AWFW46D5VR4ZMFZKDIKXEINZCZEGZCJZCKMI",  # mainnet
})
