"""Configuration models for the indexer."""

from __future__ import annotations

from dataclasses import dataclass, field

from soroswap_indexer.constants import (
    PHOENIX_FACTORY_ADDRESSES,
    SOROSWAP_FACTORY_ADDRESSES,
)
from soroswap_indexer.models.records import Network


@dataclass(frozen=True)
class NetworkDefaults:
    """Per-network endpoints used when the config file leaves them unset."""

    mercury_backend_url: str
    mercury_graphql_url: str
    factory_address_url: str
    token_list_url: str


NETWORK_DEFAULTS: dict[Network, NetworkDefaults] = {
    Network.MAINNET: NetworkDefaults(
        mercury_backend_url="https://mainnet.mercurydata.app",
        mercury_graphql_url="https://mainnet.mercurydata.app:2083/graphql",
        factory_address_url="https://api.soroswap.finance/api/mainnet/factory",
        token_list_url="https://raw.githubusercontent.com/soroswap/token-list/main/tokenList.json",
    ),
    Network.TESTNET: NetworkDefaults(
        mercury_backend_url="https://api.mercurydata.app",
        mercury_graphql_url="https://api.mercurydata.app:2083/graphql",
        factory_address_url="https://api.soroswap.finance/api/testnet/factory",
        token_list_url="https://api.soroswap.finance/api/tokens",
    ),
}


@dataclass
class IndexerConfig:
    """Complete indexer configuration."""

    # Indexer
    network: Network = Network.TESTNET
    sync_interval: int = 60  # seconds
    error_backoff: int = 30  # seconds
    log_level: str = "info"

    # Mercury
    mercury_backend_url: str = ""
    mercury_graphql_url: str = ""
    mercury_email: str = ""
    mercury_password: str = ""  # loaded from env var SOROSWAP_INDEXER_MERCURY_PASSWORD
    mercury_api_key: str = ""
    request_timeout: float = 30.0  # seconds
    read_retries: int = 1  # idempotent reads only

    # Soroswap
    factory_contract_id: str = ""  # resolved from factory_address_url when empty
    factory_address_url: str = ""
    token_list_url: str = ""
    token_cache_ttl: int = 3600  # seconds

    # Classifier
    soroswap_factories: frozenset[str] = field(
        default_factory=lambda: SOROSWAP_FACTORY_ADDRESSES
    )
    phoenix_factories: frozenset[str] = field(
        default_factory=lambda: PHOENIX_FACTORY_ADDRESSES
    )

    # Storage
    db_path: str = "~/.soroswap_indexer/state.db"

    def apply_network_defaults(self) -> None:
        """Fill unset endpoints from NETWORK_DEFAULTS for the selected network."""
        defaults = NETWORK_DEFAULTS[self.network]
        if not self.mercury_backend_url:
            self.mercury_backend_url = defaults.mercury_backend_url
        if not self.mercury_graphql_url:
            self.mercury_graphql_url = defaults.mercury_graphql_url
        if not self.factory_address_url:
            self.factory_address_url = defaults.factory_address_url
        if not self.token_list_url:
            self.token_list_url = defaults.token_list_url
