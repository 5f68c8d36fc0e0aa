"""Configuration loading: TOML file + environment variables."""

from __future__ import annotations

import os
import tomllib
from pathlib import Path

from soroswap_indexer.models.config import IndexerConfig
from soroswap_indexer.models.records import Network


def parse_network(value: str) -> Network:
    """Accept ``mainnet``/``MAINNET``/``public`` style names."""
    name = str(value).strip().upper()
    if name == "PUBLIC":
        name = "MAINNET"
    return Network(name)


def load_config(
    config_path: str | Path | None = None,
    env_prefix: str = "SOROSWAP_INDEXER_",
    network: str | None = None,
) -> IndexerConfig:
    """Load indexer configuration from a TOML file and env vars.

    Priority (highest wins):
        1. Environment variables (SOROSWAP_INDEXER_MERCURY_PASSWORD, etc.)
        2. TOML config file
        3. Defaults from IndexerConfig / NETWORK_DEFAULTS

    An explicit ``network`` argument (the CLI flag) beats all of them.
    """
    raw: dict = {}
    if config_path is not None:
        p = Path(config_path).expanduser()
        if p.exists():
            with open(p, "rb") as f:
                raw = tomllib.load(f)

    cfg = IndexerConfig()

    # ── Indexer section ────────────────────────────────────
    indexer = raw.get("indexer", {})
    if v := indexer.get("network"):
        cfg.network = parse_network(v)
    if v := indexer.get("sync_interval"):
        cfg.sync_interval = int(v)
    if v := indexer.get("error_backoff"):
        cfg.error_backoff = int(v)
    if v := indexer.get("log_level"):
        cfg.log_level = str(v)

    # ── Mercury section ────────────────────────────────────
    mercury = raw.get("mercury", {})
    if v := mercury.get("backend_url"):
        cfg.mercury_backend_url = str(v)
    if v := mercury.get("graphql_url"):
        cfg.mercury_graphql_url = str(v)
    if v := mercury.get("email"):
        cfg.mercury_email = str(v)
    if v := mercury.get("password"):
        cfg.mercury_password = str(v)
    if v := mercury.get("api_key"):
        cfg.mercury_api_key = str(v)
    if v := mercury.get("request_timeout"):
        cfg.request_timeout = float(v)
    if (v := mercury.get("read_retries")) is not None:
        cfg.read_retries = int(v)

    # ── Soroswap section ───────────────────────────────────
    soroswap = raw.get("soroswap", {})
    if v := soroswap.get("factory_contract_id"):
        cfg.factory_contract_id = str(v)
    if v := soroswap.get("factory_address_url"):
        cfg.factory_address_url = str(v)
    if v := soroswap.get("token_list_url"):
        cfg.token_list_url = str(v)
    if v := soroswap.get("token_cache_ttl"):
        cfg.token_cache_ttl = int(v)

    # ── Classifier section ─────────────────────────────────
    classifier = raw.get("classifier", {})
    if (v := classifier.get("soroswap_factories")) is not None:
        cfg.soroswap_factories = frozenset(str(a) for a in v)
    if (v := classifier.get("phoenix_factories")) is not None:
        cfg.phoenix_factories = frozenset(str(a) for a in v)

    # ── Storage section ────────────────────────────────────
    storage = raw.get("storage", {})
    if v := storage.get("db_path"):
        cfg.db_path = str(v)

    # ── Environment variable overrides (highest priority) ──
    if net := os.environ.get(f"{env_prefix}NETWORK"):
        cfg.network = parse_network(net)
    if email := os.environ.get(f"{env_prefix}MERCURY_EMAIL"):
        cfg.mercury_email = email
    if password := os.environ.get(f"{env_prefix}MERCURY_PASSWORD"):
        cfg.mercury_password = password
    if api_key := os.environ.get(f"{env_prefix}MERCURY_API_KEY"):
        cfg.mercury_api_key = api_key
    if factory := os.environ.get(f"{env_prefix}FACTORY_ID"):
        cfg.factory_contract_id = factory
    if db_path := os.environ.get(f"{env_prefix}DB_PATH"):
        cfg.db_path = db_path

    if network:
        cfg.network = parse_network(network)

    cfg.apply_network_defaults()

    # Expand ~ in paths
    if cfg.db_path != ":memory:":
        cfg.db_path = str(Path(cfg.db_path).expanduser())

    return cfg
