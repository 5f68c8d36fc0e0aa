"""Subscription synchronizer: discovery, idempotence, failure isolation."""

from __future__ import annotations

import asyncio

import pytest

from soroswap_indexer.constants import DURABILITY_PERSISTENT, INSTANCE_STORAGE_KEY
from soroswap_indexer.errors import ServiceUnavailable
from soroswap_indexer.models.records import ContractType, Network, Protocol, StorageType
from soroswap_indexer.stellar.keys import pair_key_xdr

from tests.conftest import FACTORY_ADDRESS, TOKEN_A, seed_pairs
from tests.mocks import MockLedgerService


def factory_calls(ledger: MockLedgerService) -> list[tuple]:
    return [c for c in ledger.subscribe_calls if c[0] == FACTORY_ADDRESS]


def pair_calls(ledger: MockLedgerService) -> list[tuple]:
    return [c for c in ledger.subscribe_calls if c[0] != FACTORY_ADDRESS]


async def preload(synchronizer, store, ledger, count: int) -> list[str]:
    """Bring the store to a synchronized state with ``count`` pairs."""
    seed_pairs(ledger, count)
    await synchronizer.synchronize()
    ledger.subscribe_calls.clear()
    assert await store.get_counter(Network.TESTNET) == count
    return list(ledger.pairs)


# ── Discovery ────────────────────────────────────────────────────


async def test_new_pairs_are_subscribed(synchronizer, store, ledger):
    """Counter 5 -> 8: three factory indices and three pair instances."""
    await preload(synchronizer, store, ledger, 5)
    new = seed_pairs(ledger, 3)

    pools = await synchronizer.synchronize()

    assert [c[1] for c in factory_calls(ledger)] == [pair_key_xdr(i) for i in (5, 6, 7)]
    assert all(c[2] == DURABILITY_PERSISTENT and c[3] is False for c in factory_calls(ledger))
    assert [c[0] for c in pair_calls(ledger)] == new
    assert all(c[1] == INSTANCE_STORAGE_KEY and c[3] is True for c in pair_calls(ledger))

    assert await store.get_counter(Network.TESTNET) == 8
    assert [p.address for p in pools] == new

    report = synchronizer.last_report
    assert report.old_count == 5
    assert report.new_count == 8
    assert report.saved_count == 8
    assert report.subscriptions_created == 6
    assert report.subscribe_calls == 6
    assert report.new_pairs == 3
    assert report.ok


async def test_subscriptions_are_classified(synchronizer, store, ledger):
    seed_pairs(ledger, 1)
    await synchronizer.synchronize()

    index_sub = await store.find_subscription(FACTORY_ADDRESS, pair_key_xdr(0), Network.TESTNET)
    assert index_sub.protocol == Protocol.SOROSWAP
    assert index_sub.contract_type == ContractType.FACTORY
    assert index_sub.storage_type == StorageType.PERSISTENT

    pair_sub = await store.find_subscription(ledger.pairs[0], INSTANCE_STORAGE_KEY, Network.TESTNET)
    assert pair_sub.protocol is None
    assert pair_sub.contract_type == ContractType.PAIR
    assert pair_sub.storage_type == StorageType.INSTANCE


async def test_first_run_treats_missing_counter_as_zero(synchronizer, store, ledger):
    seed_pairs(ledger, 4)
    assert await store.get_counter(Network.TESTNET) is None

    pools = await synchronizer.synchronize()

    assert len(factory_calls(ledger)) == 4
    assert len(pair_calls(ledger)) == 4
    assert len(pools) == 4
    assert await store.get_counter(Network.TESTNET) == 4


async def test_empty_factory_initializes_counter(synchronizer, store, ledger):
    pools = await synchronizer.synchronize()
    assert pools == []
    assert ledger.subscribe_calls == []
    assert await store.get_counter(Network.TESTNET) == 0


async def test_pool_values(synchronizer, store, ledger, tokens):
    seed_pairs(ledger, 1)
    [pool] = await synchronizer.synchronize()
    assert pool.token0.contract == TOKEN_A
    assert pool.token0.code == "USDC"
    assert pool.token1.code == "XLM"
    assert (pool.reserve0, pool.reserve1) == (1_000, 500)


# ── Idempotence ──────────────────────────────────────────────────


async def test_no_new_pairs_returns_all_pools(synchronizer, store, ledger):
    pairs = await preload(synchronizer, store, ledger, 3)

    pools = await synchronizer.synchronize()

    assert ledger.subscribe_calls == []
    assert [p.address for p in pools] == pairs
    assert synchronizer.last_report.subscriptions_created == 0
    assert await store.get_counter(Network.TESTNET) == 3


async def test_existing_subscriptions_are_not_resubscribed(synchronizer, store, ledger):
    """Subscriptions already stored (e.g. by populate) are skipped."""
    seed_pairs(ledger, 2)
    await synchronizer.synchronize()
    # Counter lost, subscriptions kept: the full range is walked again
    await store.db.execute("DELETE FROM pair_counter")
    await store.db.commit()
    ledger.subscribe_calls.clear()

    await synchronizer.synchronize()

    assert ledger.subscribe_calls == []
    assert await store.count_subscriptions(Network.TESTNET) == 4
    assert await store.get_counter(Network.TESTNET) == 2


async def test_concurrent_passes_are_serialized(synchronizer, store, ledger):
    seed_pairs(ledger, 3)

    await asyncio.gather(synchronizer.synchronize(), synchronizer.synchronize())

    assert len(ledger.subscribe_calls) == 6
    assert await store.count_subscriptions(Network.TESTNET) == 6
    assert await store.get_counter(Network.TESTNET) == 3


# ── Failure isolation ────────────────────────────────────────────


async def test_factory_index_failure_isolated(synchronizer, store, ledger):
    await preload(synchronizer, store, ledger, 5)
    seed_pairs(ledger, 3)
    ledger.fail_subscribe.add((FACTORY_ADDRESS, pair_key_xdr(6)))

    pools = await synchronizer.synchronize()

    # Index 7 and every pair instance are still attempted
    assert len(factory_calls(ledger)) == 3
    assert len(pair_calls(ledger)) == 3
    assert len(pools) == 3

    report = synchronizer.last_report
    assert not report.ok
    assert report.failures == [
        "Error subscribing to pair 6: mock subscribe failure",
    ]
    # Counter stops at the first failed index
    assert await store.get_counter(Network.TESTNET) == 6
    assert await store.find_subscription(
        FACTORY_ADDRESS, pair_key_xdr(6), Network.TESTNET,
    ) is None

    # Next pass retries only what is missing
    ledger.fail_subscribe.clear()
    ledger.subscribe_calls.clear()
    await synchronizer.synchronize()

    assert ledger.subscribe_calls == [
        (FACTORY_ADDRESS, pair_key_xdr(6), DURABILITY_PERSISTENT, False),
    ]
    assert await store.get_counter(Network.TESTNET) == 8


async def test_pair_instance_failure_isolated(synchronizer, store, ledger):
    await preload(synchronizer, store, ledger, 2)
    new = seed_pairs(ledger, 3)
    ledger.fail_subscribe.add((new[1], INSTANCE_STORAGE_KEY))

    await synchronizer.synchronize()

    report = synchronizer.last_report
    assert report.failures == [
        f"Error subscribing to contract {new[1]}: mock subscribe failure",
    ]
    assert report.subscriptions_created == 5
    assert await store.get_counter(Network.TESTNET) == 3


async def test_counter_never_moves_backwards(synchronizer, store, ledger):
    await preload(synchronizer, store, ledger, 4)
    seed_pairs(ledger, 2)
    ledger.fail_subscribe.add((FACTORY_ADDRESS, pair_key_xdr(4)))

    await synchronizer.synchronize()

    assert synchronizer.last_report.saved_count == 4
    assert await store.get_counter(Network.TESTNET) == 4


# ── Missing address entries ──────────────────────────────────────


async def test_missing_address_stops_counter(synchronizer, store, ledger):
    await preload(synchronizer, store, ledger, 5)
    new = seed_pairs(ledger, 3)
    ledger.missing_indices.add(7)

    pools = await synchronizer.synchronize()

    assert [c[0] for c in pair_calls(ledger)] == new[:2]
    assert [p.address for p in pools] == new[:2]
    report = synchronizer.last_report
    assert report.failures == ["Pair 7 has no address entry yet"]
    assert report.saved_count == 7
    assert await store.get_counter(Network.TESTNET) == 7
    assert await store.find_subscription(new[2], INSTANCE_STORAGE_KEY, Network.TESTNET) is None

    # The entry shows up later and the next pass picks it up
    ledger.missing_indices.clear()
    ledger.subscribe_calls.clear()
    await synchronizer.synchronize()

    assert ledger.subscribe_calls == [(new[2], INSTANCE_STORAGE_KEY, DURABILITY_PERSISTENT, True)]
    assert await store.find_subscription(new[2], INSTANCE_STORAGE_KEY, Network.TESTNET) is not None
    assert await store.get_counter(Network.TESTNET) == 8


async def test_gap_does_not_shift_later_addresses(synchronizer, store, ledger):
    await preload(synchronizer, store, ledger, 5)
    new = seed_pairs(ledger, 3)
    ledger.missing_indices.add(2)

    await synchronizer.synchronize()

    assert [c[0] for c in pair_calls(ledger)] == new
    assert synchronizer.last_report.ok
    assert await store.get_counter(Network.TESTNET) == 8


async def test_gap_on_first_run_is_retried_in_order(synchronizer, store, ledger):
    old = seed_pairs(ledger, 5)
    ledger.missing_indices.add(2)

    pools = await synchronizer.synchronize()

    assert [c[0] for c in pair_calls(ledger)] == [old[0], old[1], old[3], old[4]]
    assert [p.address for p in pools] == [old[0], old[1], old[3], old[4]]
    assert await store.get_counter(Network.TESTNET) == 2

    ledger.missing_indices.clear()
    ledger.subscribe_calls.clear()
    new = seed_pairs(ledger, 3)
    await synchronizer.synchronize()

    assert [c[1] for c in factory_calls(ledger)] == [pair_key_xdr(i) for i in (5, 6, 7)]
    assert [c[0] for c in pair_calls(ledger)] == [old[2], *new]
    assert await store.get_counter(Network.TESTNET) == 8


# ── Service failures ─────────────────────────────────────────────


async def test_counter_failure_propagates(synchronizer, store, ledger):
    await preload(synchronizer, store, ledger, 2)
    seed_pairs(ledger, 1)
    ledger.fail_queries.add("GetLastContractEntry")

    with pytest.raises(ServiceUnavailable):
        await synchronizer.synchronize()

    assert ledger.subscribe_calls == []
    assert await store.get_counter(Network.TESTNET) == 2

    [latest, *_] = await store.get_sync_history(Network.TESTNET)
    assert latest.failures == ["Error getting pair counter"]


async def test_pair_address_failure_propagates(synchronizer, store, ledger):
    await preload(synchronizer, store, ledger, 1)
    seed_pairs(ledger, 2)
    ledger.fail_queries.add("GetPairAddresses")

    with pytest.raises(ServiceUnavailable, match="Error getting pair addresses"):
        await synchronizer.synchronize()

    # Factory indices were subscribed before the failure, counter untouched
    assert len(factory_calls(ledger)) == 2
    assert pair_calls(ledger) == []
    assert await store.get_counter(Network.TESTNET) == 1


async def test_pool_query_failure_after_counter_saved(synchronizer, store, ledger):
    seed_pairs(ledger, 2)
    ledger.fail_queries.add("GetPairsWithTokensAndReserves")

    with pytest.raises(ServiceUnavailable):
        await synchronizer.synchronize()

    assert await store.get_counter(Network.TESTNET) == 2
    assert await store.count_subscriptions(Network.TESTNET) == 4


async def test_report_write_failure_keeps_original_error(synchronizer, store, ledger, monkeypatch):
    seed_pairs(ledger, 1)
    ledger.fail_queries.add("GetLastContractEntry")

    async def broken_save(report):
        raise RuntimeError("disk full")

    monkeypatch.setattr(store, "save_sync_report", broken_save)

    with pytest.raises(ServiceUnavailable):
        await synchronizer.synchronize()


async def test_report_write_failure_does_not_fail_pass(synchronizer, store, ledger, monkeypatch):
    seed_pairs(ledger, 2)

    async def broken_save(report):
        raise RuntimeError("disk full")

    monkeypatch.setattr(store, "save_sync_report", broken_save)

    pools = await synchronizer.synchronize()

    assert len(pools) == 2
    assert await store.get_counter(Network.TESTNET) == 2


async def test_history_recorded_per_pass(synchronizer, store, ledger):
    seed_pairs(ledger, 2)
    await synchronizer.synchronize()
    await synchronizer.synchronize()

    history = await store.get_sync_history(Network.TESTNET)
    assert len(history) == 2
    assert history[0].old_count == 2  # newest first
    assert history[1].subscriptions_created == 4
    assert history[1].factory_address == FACTORY_ADDRESS
