"""Shared fixtures for soroswap_indexer tests."""

from __future__ import annotations

import pytest
from pytest_metadata.plugin import metadata_key

from soroswap_indexer.models.config import IndexerConfig
from soroswap_indexer.models.records import Network
from soroswap_indexer.soroswap.factory import FactoryAddressResolver
from soroswap_indexer.storage.sqlite import SQLiteSubscriptionStore
from soroswap_indexer.sync.counter import PairCounterTracker
from soroswap_indexer.sync.pools import PoolAggregator
from soroswap_indexer.sync.synchronizer import SubscriptionSynchronizer

from tests.factories import contract_address
from tests.mocks import MockLedgerService, MockTokenRegistry

FACTORY_ADDRESS = contract_address("soroswap-factory")
TOKEN_A = contract_address("token-a")
TOKEN_B = contract_address("token-b")
TOKEN_C = contract_address("token-c")

EXPLORER_BASE = "https://stellar.expert/explorer/testnet"


def pair_address(i: int) -> str:
    return contract_address(f"pair-{i}")


# ── Report metadata ──────────────────────────────────────────────


def pytest_configure(config):
    """Add network info to the HTML report Environment table."""
    meta = config.stash.setdefault(metadata_key, {})
    meta["Network"] = "Stellar Testnet (mocked Mercury)"
    meta["Factory Contract"] = FACTORY_ADDRESS


def pytest_html_results_summary(prefix, summary, postfix):
    """Link the test factory contract in the report summary."""
    url = f"{EXPLORER_BASE}/contract/{FACTORY_ADDRESS}"
    prefix.append(
        '<div style="margin:8px 0;padding:10px;background:#f8f9fa;border:1px solid #dee2e6;'
        'border-radius:4px;font-family:monospace;font-size:13px;">'
        f'Factory: <a href="{url}" target="_blank">{FACTORY_ADDRESS}</a>'
        "</div>"
    )


def make_test_config(**overrides) -> IndexerConfig:
    """Build an IndexerConfig suitable for testing."""
    defaults = dict(
        network=Network.TESTNET,
        sync_interval=1,
        error_backoff=1,
        mercury_api_key="test-api-key",
        factory_contract_id=FACTORY_ADDRESS,
        token_list_url="",
        db_path=":memory:",
    )
    defaults.update(overrides)
    cfg = IndexerConfig(**defaults)
    cfg.apply_network_defaults()
    return cfg


@pytest.fixture
def test_config():
    return make_test_config()


@pytest.fixture
async def store():
    """Initialized in-memory SQLiteSubscriptionStore."""
    s = SQLiteSubscriptionStore(":memory:")
    await s.initialize()
    yield s
    await s.close()


@pytest.fixture
def ledger():
    return MockLedgerService(FACTORY_ADDRESS)


@pytest.fixture
def tokens():
    registry = MockTokenRegistry()
    registry.add(TOKEN_A, "USDC")
    registry.add(TOKEN_B, "XLM")
    registry.add(TOKEN_C, "AQUA")
    return registry


@pytest.fixture
def factory():
    return FactoryAddressResolver(configured_address=FACTORY_ADDRESS)


@pytest.fixture
def counter(ledger, factory):
    return PairCounterTracker(ledger, factory)


@pytest.fixture
def pools(ledger, tokens):
    return PoolAggregator(ledger, tokens)


@pytest.fixture
def synchronizer(ledger, store, factory, counter, pools):
    """SubscriptionSynchronizer wired to the mock ledger and a real store."""
    return SubscriptionSynchronizer(
        ledger=ledger,
        store=store,
        factory=factory,
        counter=counter,
        pools=pools,
        network=Network.TESTNET,
    )


def seed_pairs(ledger: MockLedgerService, count: int) -> list[str]:
    """Test helper: give the mock factory ``count`` pairs cycling over tokens."""
    tokens = [TOKEN_A, TOKEN_B, TOKEN_C]
    added = []
    for i in range(len(ledger.pairs), len(ledger.pairs) + count):
        address = pair_address(i)
        ledger.add_pair(
            address, tokens[i % 3], tokens[(i + 1) % 3],
            reserve0=1_000 * (i + 1), reserve1=500 * (i + 1),
        )
        added.append(address)
    return added
