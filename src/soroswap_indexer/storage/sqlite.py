"""SQLite implementation of the SubscriptionStore protocol."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path

import aiosqlite

from soroswap_indexer.models.records import (
    ContractType,
    Network,
    Protocol,
    StorageType,
    Subscription,
    SyncReport,
)

SCHEMA = """
-- Ledger entry subscriptions (append-only)
CREATE TABLE IF NOT EXISTS subscriptions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    contract_id TEXT NOT NULL,
    key_xdr TEXT NOT NULL,
    network TEXT NOT NULL,
    protocol TEXT,
    contract_type TEXT,
    storage_type TEXT,
    created_at TEXT NOT NULL DEFAULT (datetime('now'))
);
CREATE UNIQUE INDEX IF NOT EXISTS idx_subscriptions_key
    ON subscriptions(contract_id, key_xdr, network);
CREATE INDEX IF NOT EXISTS idx_subscriptions_type ON subscriptions(contract_type);

-- Last known factory pair count, one row per network
CREATE TABLE IF NOT EXISTS pair_counter (
    network TEXT PRIMARY KEY,
    count INTEGER NOT NULL CHECK (count >= 0),
    updated_at TEXT NOT NULL DEFAULT (datetime('now'))
);

-- Synchronization history
CREATE TABLE IF NOT EXISTS sync_history (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    network TEXT NOT NULL,
    factory_address TEXT NOT NULL,
    old_count INTEGER NOT NULL,
    new_count INTEGER NOT NULL,
    saved_count INTEGER NOT NULL,
    subscriptions_created INTEGER NOT NULL,
    subscribe_calls INTEGER NOT NULL,
    failures TEXT NOT NULL,
    pools_returned INTEGER NOT NULL,
    started_at TEXT NOT NULL,
    completed_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_sync_history_network ON sync_history(network);
"""


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class SQLiteSubscriptionStore:
    """SQLite-backed implementation of the SubscriptionStore protocol."""

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path
        self._db: aiosqlite.Connection | None = None

    async def initialize(self) -> None:
        if self._db_path != ":memory:":
            Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)
        self._db = await aiosqlite.connect(self._db_path)
        self._db.row_factory = aiosqlite.Row
        await self._db.executescript(SCHEMA)
        await self._db.commit()

    async def close(self) -> None:
        if self._db:
            await self._db.close()
            self._db = None

    @property
    def db(self) -> aiosqlite.Connection:
        assert self._db is not None, "Store not initialized. Call initialize() first."
        return self._db

    # ── Subscriptions ──────────────────────────────────────

    async def find_subscription(
        self, contract_id: str, key_xdr: str, network: Network,
    ) -> Subscription | None:
        async with self.db.execute(
            "SELECT * FROM subscriptions WHERE contract_id=? AND key_xdr=? AND network=?",
            (contract_id, key_xdr, network.value),
        ) as cur:
            row = await cur.fetchone()
            return _row_to_subscription(row) if row else None

    async def create_subscription(self, subscription: Subscription) -> bool:
        cur = await self.db.execute(
            "INSERT OR IGNORE INTO subscriptions"
            " (contract_id, key_xdr, network, protocol, contract_type, storage_type, created_at)"
            " VALUES (?, ?, ?, ?, ?, ?, ?)",
            (
                subscription.contract_id,
                subscription.key_xdr,
                subscription.network.value,
                _enum_value(subscription.protocol),
                _enum_value(subscription.contract_type),
                _enum_value(subscription.storage_type),
                subscription.created_at or _now(),
            ),
        )
        inserted = cur.rowcount > 0
        await cur.close()
        await self.db.commit()
        return inserted

    async def list_subscriptions(
        self,
        network: Network | None = None,
        contract_type: ContractType | None = None,
    ) -> list[Subscription]:
        clauses: list[str] = []
        params: list = []
        if network is not None:
            clauses.append("network=?")
            params.append(network.value)
        if contract_type is not None:
            clauses.append("contract_type=?")
            params.append(contract_type.value)
        sql = "SELECT * FROM subscriptions"
        if clauses:
            sql += f" WHERE {' AND '.join(clauses)}"
        sql += " ORDER BY id"
        async with self.db.execute(sql, params) as cur:
            return [_row_to_subscription(row) async for row in cur]

    async def count_subscriptions(self, network: Network | None = None) -> int:
        if network is None:
            sql, params = "SELECT COUNT(*) AS c FROM subscriptions", ()
        else:
            sql, params = "SELECT COUNT(*) AS c FROM subscriptions WHERE network=?", (network.value,)
        async with self.db.execute(sql, params) as cur:
            row = await cur.fetchone()
            return row["c"] if row else 0

    # ── Pair counter ───────────────────────────────────────

    async def get_counter(self, network: Network) -> int | None:
        async with self.db.execute(
            "SELECT count FROM pair_counter WHERE network=?", (network.value,)
        ) as cur:
            row = await cur.fetchone()
            return row["count"] if row else None

    async def save_counter(self, network: Network, count: int) -> int:
        # Never moves backwards, even if a stale writer finishes last.
        await self.db.execute(
            "INSERT INTO pair_counter (network, count, updated_at) VALUES (?, ?, ?)"
            " ON CONFLICT(network) DO UPDATE SET"
            " count=MAX(pair_counter.count, excluded.count),"
            " updated_at=excluded.updated_at",
            (network.value, count, _now()),
        )
        await self.db.commit()
        stored = await self.get_counter(network)
        return stored if stored is not None else count

    # ── Sync history ───────────────────────────────────────

    async def save_sync_report(self, report: SyncReport) -> None:
        await self.db.execute(
            "INSERT INTO sync_history"
            " (network, factory_address, old_count, new_count, saved_count,"
            "  subscriptions_created, subscribe_calls, failures, pools_returned,"
            "  started_at, completed_at)"
            " VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (
                report.network.value, report.factory_address,
                report.old_count, report.new_count, report.saved_count,
                report.subscriptions_created, report.subscribe_calls,
                json.dumps(report.failures), report.pools_returned,
                report.started_at or _now(), report.completed_at or _now(),
            ),
        )
        await self.db.commit()

    async def get_sync_history(
        self, network: Network | None = None, limit: int = 10,
    ) -> list[SyncReport]:
        if network is None:
            sql = "SELECT * FROM sync_history ORDER BY id DESC LIMIT ?"
            params: tuple = (limit,)
        else:
            sql = "SELECT * FROM sync_history WHERE network=? ORDER BY id DESC LIMIT ?"
            params = (network.value, limit)
        async with self.db.execute(sql, params) as cur:
            return [
                SyncReport(
                    network=Network(row["network"]),
                    factory_address=row["factory_address"],
                    old_count=row["old_count"],
                    new_count=row["new_count"],
                    saved_count=row["saved_count"],
                    subscriptions_created=row["subscriptions_created"],
                    subscribe_calls=row["subscribe_calls"],
                    failures=json.loads(row["failures"]),
                    pools_returned=row["pools_returned"],
                    started_at=row["started_at"],
                    completed_at=row["completed_at"],
                )
                async for row in cur
            ]


# ── Row converters ─────────────────────────────────────────


def _enum_value(value) -> str | None:
    return value.value if value is not None else None


def _row_to_subscription(row: aiosqlite.Row) -> Subscription:
    return Subscription(
        contract_id=row["contract_id"],
        key_xdr=row["key_xdr"],
        network=Network(row["network"]),
        protocol=Protocol(row["protocol"]) if row["protocol"] else None,
        contract_type=ContractType(row["contract_type"]) if row["contract_type"] else None,
        storage_type=StorageType(row["storage_type"]) if row["storage_type"] else None,
        created_at=row["created_at"],
    )
