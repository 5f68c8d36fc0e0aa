"""SQLite subscription store: insert-only subscriptions, monotonic counter."""

from __future__ import annotations

from soroswap_indexer.constants import INSTANCE_STORAGE_KEY
from soroswap_indexer.models.records import (
    Classification,
    ContractType,
    Network,
    Protocol,
    StorageType,
    Subscription,
    SyncReport,
)
from soroswap_indexer.storage.sqlite import SQLiteSubscriptionStore

from tests.conftest import FACTORY_ADDRESS, pair_address


def make_subscription(contract_id: str = FACTORY_ADDRESS, key_xdr: str = INSTANCE_STORAGE_KEY,
                      network: Network = Network.TESTNET) -> Subscription:
    return Subscription(contract_id=contract_id, key_xdr=key_xdr, network=network).classify_as(
        Classification(Protocol.SOROSWAP, ContractType.FACTORY, StorageType.INSTANCE),
    )


async def test_create_and_find_subscription(store):
    assert await store.create_subscription(make_subscription()) is True

    found = await store.find_subscription(FACTORY_ADDRESS, INSTANCE_STORAGE_KEY, Network.TESTNET)
    assert found is not None
    assert found.protocol == Protocol.SOROSWAP
    assert found.contract_type == ContractType.FACTORY
    assert found.storage_type == StorageType.INSTANCE
    assert found.created_at


async def test_duplicate_subscription_ignored(store):
    assert await store.create_subscription(make_subscription()) is True
    assert await store.create_subscription(make_subscription()) is False
    assert await store.count_subscriptions() == 1


async def test_subscriptions_scoped_by_network(store):
    await store.create_subscription(make_subscription(network=Network.TESTNET))
    assert await store.create_subscription(make_subscription(network=Network.MAINNET)) is True

    assert await store.find_subscription(
        FACTORY_ADDRESS, INSTANCE_STORAGE_KEY, Network.MAINNET,
    ) is not None
    assert await store.count_subscriptions(Network.TESTNET) == 1
    assert await store.count_subscriptions() == 2


async def test_list_subscriptions_filters(store):
    await store.create_subscription(make_subscription())
    pair = Subscription(
        contract_id=pair_address(0), key_xdr=INSTANCE_STORAGE_KEY, network=Network.TESTNET,
    ).classify_as(Classification(None, ContractType.PAIR, StorageType.INSTANCE))
    await store.create_subscription(pair)

    pairs = await store.list_subscriptions(Network.TESTNET, ContractType.PAIR)
    assert [s.contract_id for s in pairs] == [pair_address(0)]
    assert pairs[0].protocol is None
    assert len(await store.list_subscriptions()) == 2
    assert await store.list_subscriptions(Network.MAINNET) == []


async def test_counter_uninitialized(store):
    assert await store.get_counter(Network.TESTNET) is None


async def test_counter_upsert_is_monotonic(store):
    assert await store.save_counter(Network.TESTNET, 5) == 5
    assert await store.save_counter(Network.TESTNET, 8) == 8
    # A stale writer cannot move it back
    assert await store.save_counter(Network.TESTNET, 6) == 8
    assert await store.get_counter(Network.TESTNET) == 8


async def test_counter_per_network(store):
    await store.save_counter(Network.TESTNET, 3)
    await store.save_counter(Network.MAINNET, 40)
    assert await store.get_counter(Network.TESTNET) == 3
    assert await store.get_counter(Network.MAINNET) == 40


async def test_sync_history_round_trip(store):
    report = SyncReport(
        network=Network.TESTNET,
        factory_address=FACTORY_ADDRESS,
        old_count=1,
        new_count=3,
        saved_count=2,
        subscriptions_created=3,
        subscribe_calls=4,
        failures=["Error subscribing to pair 2: boom"],
        pools_returned=1,
        started_at="2026-01-01T00:00:00+00:00",
        completed_at="2026-01-01T00:00:01+00:00",
    )
    await store.save_sync_report(report)
    await store.save_sync_report(SyncReport(Network.MAINNET, FACTORY_ADDRESS, 0, 0))

    [loaded] = await store.get_sync_history(Network.TESTNET)
    assert loaded == report
    assert len(await store.get_sync_history()) == 2
    assert len(await store.get_sync_history(limit=1)) == 1


async def test_file_backed_store_persists(tmp_path):
    db_path = str(tmp_path / "nested" / "state.db")
    first = SQLiteSubscriptionStore(db_path)
    await first.initialize()
    await first.create_subscription(make_subscription())
    await first.save_counter(Network.TESTNET, 7)
    await first.close()

    second = SQLiteSubscriptionStore(db_path)
    await second.initialize()
    try:
        assert await second.get_counter(Network.TESTNET) == 7
        assert await second.count_subscriptions() == 1
    finally:
        await second.close()
