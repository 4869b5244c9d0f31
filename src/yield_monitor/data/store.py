"""Typed SQLite read/write abstraction for yield history.

yield_history is append-only; current_yields holds one upserted row per
symbol. All SQL is isolated behind YieldHistoryStore.
"""

import time
from datetime import datetime

from yield_monitor.data.database import YieldDatabase
from yield_monitor.data.models import HistoricalYield
from yield_monitor.logging import get_logger
from yield_monitor.models import YieldSnapshot, ensure_utc

logger = get_logger(__name__)

_COLUMNS = (
    "symbol, timestamp_ms, supply_apy, borrow_apy, utilization_rate, "
    "total_supply, total_borrow, block_number, source"
)


def _to_ms(value: datetime) -> int:
    return int(ensure_utc(value).timestamp() * 1000)


def _row_to_yield(row: tuple) -> HistoricalYield:
    return HistoricalYield(
        symbol=row[0],
        timestamp_ms=row[1],
        supply_apy=float(row[2]),
        borrow_apy=float(row[3]),
        utilization_rate=float(row[4]),
        total_supply=row[5],
        total_borrow=row[6],
        block_number=row[7],
        source=row[8],
    )


class YieldHistoryStore:
    """Async SQLite store for yield history and latest values per symbol.

    Usage:
        async with YieldDatabase("data/yields.db") as database:
            store = YieldHistoryStore(database)
            await store.record_snapshot(snapshot)
    """

    def __init__(self, database: YieldDatabase) -> None:
        self._database = database

    # ──────────────────────────────────────────────
    # Write methods
    # ──────────────────────────────────────────────

    async def record_snapshot(self, snapshot: YieldSnapshot) -> None:
        """Append to history and upsert the latest value for the symbol."""
        now_ms = int(time.time() * 1000)
        values = (
            snapshot.symbol,
            _to_ms(snapshot.timestamp),
            str(snapshot.supply_apy),
            str(snapshot.borrow_apy),
            str(snapshot.utilization_rate),
            snapshot.total_supply,
            snapshot.total_borrow,
            snapshot.block_number,
            snapshot.source,
        )
        db = self._database.db
        await db.execute(
            f"INSERT INTO yield_history ({_COLUMNS}, recorded_at_ms) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (*values, now_ms),
        )
        await db.execute(
            f"INSERT OR REPLACE INTO current_yields ({_COLUMNS}, updated_at_ms) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (*values, now_ms),
        )
        await db.commit()
        logger.debug("yield_snapshot_recorded", symbol=snapshot.symbol)

    # ──────────────────────────────────────────────
    # Read methods
    # ──────────────────────────────────────────────

    async def get_history(
        self,
        symbol: str,
        since: datetime | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[HistoricalYield]:
        """History for one symbol, newest first."""
        query = f"SELECT {_COLUMNS} FROM yield_history WHERE symbol = ?"
        params: list = [symbol.upper()]
        if since is not None:
            query += " AND timestamp_ms >= ?"
            params.append(_to_ms(since))
        query += " ORDER BY timestamp_ms DESC, id DESC LIMIT ? OFFSET ?"
        params.extend([limit, offset])

        cursor = await self._database.db.execute(query, params)
        rows = await cursor.fetchall()
        return [_row_to_yield(row) for row in rows]

    async def get_current_yields(self) -> list[HistoricalYield]:
        cursor = await self._database.db.execute(
            f"SELECT {_COLUMNS} FROM current_yields ORDER BY symbol"
        )
        rows = await cursor.fetchall()
        return [_row_to_yield(row) for row in rows]

    async def count_history(self, symbol: str | None = None) -> int:
        if symbol is None:
            cursor = await self._database.db.execute("SELECT COUNT(*) FROM yield_history")
        else:
            cursor = await self._database.db.execute(
                "SELECT COUNT(*) FROM yield_history WHERE symbol = ?",
                (symbol.upper(),),
            )
        row = await cursor.fetchone()
        return row[0] if row else 0
