"""
Trade Store for synchronized trade history.

Provides:
- Append-only trade rows per tracked group (SQLite)
- Last-row lookup per pair for cursor resolution
- Header region per group: status, last sync, record and pair counters
- Read-back as pandas DataFrame and Parquet export
"""

import json
import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, List, Optional

import pandas as pd
import pyarrow as pa
import pyarrow.parquet as pq

from .records import GroupState, StoredRecord

logger = logging.getLogger(__name__)


class TradeStore:
    """
    SQLite-backed store owning the persisted rows of every group.

    Rows are only ever appended. Each row is committed on its own, so a
    crash mid-batch leaves a durable prefix; resuming from the last
    stored trade id then re-fetches only the missing tail.

    Usage:
        store = TradeStore("data/trades.db")
        store.register_group("main", ["BTCUSDT", "ETHUSDT"], "USDT")

        last = store.last_matching("main", "BTCUSDT")
        store.append_all("main", records)
    """

    SCHEMA = """
    -- Header region: one row per tracked group
    CREATE TABLE IF NOT EXISTS groups (
        name TEXT PRIMARY KEY,
        symbols TEXT NOT NULL DEFAULT '[]',
        ticker TEXT NOT NULL DEFAULT '',
        status TEXT NOT NULL DEFAULT '',
        last_sync TEXT,
        record_count INTEGER NOT NULL DEFAULT 0,
        pair_count INTEGER NOT NULL DEFAULT 0,
        created_at TEXT DEFAULT CURRENT_TIMESTAMP,
        updated_at TEXT DEFAULT CURRENT_TIMESTAMP
    );

    -- Data rows, insertion order = row_id order
    CREATE TABLE IF NOT EXISTS trades (
        row_id INTEGER PRIMARY KEY AUTOINCREMENT,
        group_name TEXT NOT NULL,
        trade_id INTEGER NOT NULL,
        order_id INTEGER NOT NULL,
        date TEXT NOT NULL,
        pair TEXT NOT NULL,
        order_type TEXT NOT NULL,
        side TEXT NOT NULL,
        price TEXT NOT NULL,
        amount REAL NOT NULL,
        commission TEXT NOT NULL,
        total REAL NOT NULL,
        UNIQUE (group_name, pair, trade_id)
    );

    CREATE INDEX IF NOT EXISTS idx_trades_group_pair ON trades(group_name, pair, row_id);
    """

    COLUMNS = [
        "trade_id",
        "order_id",
        "date",
        "pair",
        "order_type",
        "side",
        "price",
        "amount",
        "commission",
        "total",
    ]

    PARQUET_SCHEMA = pa.schema([
        ("trade_id", pa.int64()),
        ("order_id", pa.int64()),
        ("date", pa.timestamp("us", tz="UTC")),
        ("pair", pa.string()),
        ("order_type", pa.string()),
        ("side", pa.string()),
        ("price", pa.float64()),
        ("amount", pa.float64()),
        ("commission", pa.float64()),
        ("total", pa.float64()),
    ])

    def __init__(self, db_path: str = "data/trades.db"):
        """
        Initialize trade store.

        Args:
            db_path: Path to SQLite database file
        """
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)

        self._init_database()
        logger.info(f"TradeStore initialized with database: {self._db_path}")

    def _init_database(self) -> None:
        """Initialize database schema."""
        with sqlite3.connect(self._db_path) as conn:
            conn.executescript(self.SCHEMA)
            conn.commit()

    def _get_connection(self) -> sqlite3.Connection:
        """Get database connection."""
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        return conn

    # === Header Region ===

    def register_group(self, name: str, symbols: List[str], ticker: str) -> None:
        """
        Create or refresh a group's header row.

        Existing status and counters are kept.
        """
        now = datetime.now(timezone.utc).isoformat()

        with self._get_connection() as conn:
            conn.execute(
                """
                INSERT INTO groups (name, symbols, ticker, updated_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(name) DO UPDATE SET
                    symbols = excluded.symbols,
                    ticker = excluded.ticker,
                    updated_at = excluded.updated_at
                """,
                (name, json.dumps(list(symbols)), ticker, now),
            )
            conn.commit()

    def _update_header(self, group: str, **fields) -> None:
        """Update header columns, creating the header row if missing."""
        assignments = ", ".join(f"{column} = ?" for column in fields)
        now = datetime.now(timezone.utc).isoformat()

        with self._get_connection() as conn:
            conn.execute(
                "INSERT OR IGNORE INTO groups (name) VALUES (?)",
                (group,),
            )
            conn.execute(
                f"UPDATE groups SET {assignments}, updated_at = ? WHERE name = ?",
                (*fields.values(), now, group),
            )
            conn.commit()

    def set_status(self, group: str, status: str) -> None:
        """Write the group's status cell."""
        self._update_header(group, status=status)
        logger.debug(f"[{group}] status: {status}")

    def set_last_sync(self, group: str, timestamp: datetime) -> None:
        """Write the group's last-sync cell."""
        self._update_header(group, last_sync=timestamp.isoformat())

    def save_stats(self, group: str, record_count: int, pair_count: int) -> None:
        """Write the group's record and distinct-pair counters."""
        self._update_header(group, record_count=record_count, pair_count=pair_count)

    def get_group_state(self, group: str) -> Optional[GroupState]:
        """
        Read a group's header region.

        Returns:
            GroupState if the group is known, None otherwise
        """
        with self._get_connection() as conn:
            row = conn.execute(
                """
                SELECT name, status, last_sync, record_count, pair_count
                FROM groups WHERE name = ?
                """,
                (group,),
            ).fetchone()

        if row is None:
            return None

        return GroupState(
            name=row["name"],
            status=row["status"],
            last_sync=datetime.fromisoformat(row["last_sync"]) if row["last_sync"] else None,
            record_count=row["record_count"],
            pair_count=row["pair_count"],
        )

    def list_groups(self) -> List[str]:
        """Names of all groups with a header row."""
        with self._get_connection() as conn:
            rows = conn.execute("SELECT name FROM groups ORDER BY name").fetchall()
        return [row["name"] for row in rows]

    # === Data Rows ===

    def last_matching(self, group: str, symbol: str) -> Optional[StoredRecord]:
        """
        Most recently appended record of a group whose pair equals symbol.

        Returns:
            StoredRecord, or None when the pair has no rows yet
        """
        with self._get_connection() as conn:
            row = conn.execute(
                f"""
                SELECT {", ".join(self.COLUMNS)} FROM trades
                WHERE group_name = ? AND pair = ?
                ORDER BY row_id DESC
                LIMIT 1
                """,
                (group, symbol),
            ).fetchone()

        if row is None:
            return None
        return StoredRecord.from_row(dict(row))

    def append_all(self, group: str, records: Iterable[StoredRecord]) -> int:
        """
        Append records in order, one commit per record.

        Trade ids are only unique per symbol, so a record is skipped when
        the same (pair, trade id) is already stored for the group.

        Returns:
            Number of rows actually inserted
        """
        inserted = 0
        placeholders = ", ".join("?" for _ in self.COLUMNS)

        with self._get_connection() as conn:
            for record in records:
                row = record.to_row()
                cursor = conn.execute(
                    f"""
                    INSERT OR IGNORE INTO trades (group_name, {", ".join(self.COLUMNS)})
                    VALUES (?, {placeholders})
                    """,
                    (group, *(row[column] for column in self.COLUMNS)),
                )
                conn.commit()

                if cursor.rowcount:
                    inserted += 1
                else:
                    logger.warning(
                        f"[{group}] trade {record.trade_id} ({record.pair}) already stored, skipped"
                    )

        return inserted

    def pair_values(self, group: str) -> List[str]:
        """All stored pair values of a group, in row order."""
        with self._get_connection() as conn:
            rows = conn.execute(
                "SELECT pair FROM trades WHERE group_name = ? ORDER BY row_id",
                (group,),
            ).fetchall()
        return [row["pair"] for row in rows]

    def count_rows(self, group: str) -> int:
        """Number of stored rows for a group."""
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT COUNT(*) AS count FROM trades WHERE group_name = ?",
                (group,),
            ).fetchone()
        return row["count"]

    def get_records(self, group: str) -> List[StoredRecord]:
        """All records of a group, in row order."""
        with self._get_connection() as conn:
            rows = conn.execute(
                f"""
                SELECT {", ".join(self.COLUMNS)} FROM trades
                WHERE group_name = ? ORDER BY row_id
                """,
                (group,),
            ).fetchall()
        return [StoredRecord.from_row(dict(row)) for row in rows]

    # === Read-back and Export ===

    def load_trades(self, group: str) -> pd.DataFrame:
        """
        Load a group's rows as a DataFrame.

        Returns:
            DataFrame with one column per stored field, dates as UTC timestamps
        """
        with self._get_connection() as conn:
            df = pd.read_sql_query(
                f"""
                SELECT {", ".join(self.COLUMNS)} FROM trades
                WHERE group_name = ? ORDER BY row_id
                """,
                conn,
                params=(group,),
            )

        if df.empty:
            return pd.DataFrame(columns=self.COLUMNS)

        df["date"] = pd.to_datetime(df["date"], utc=True)
        return df

    def export_parquet(self, group: str, path: Path, compression: str = "snappy") -> int:
        """
        Write a group's rows to a Parquet file.

        Returns:
            Number of rows written
        """
        df = self.load_trades(group)
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        if df.empty:
            table = self.PARQUET_SCHEMA.empty_table()
        else:
            df["date"] = df["date"].dt.as_unit("us")
            for column in ("price", "commission"):
                df[column] = df[column].astype(float)

            table = pa.Table.from_pandas(
                df,
                schema=self.PARQUET_SCHEMA,
                preserve_index=False,
            )
        pq.write_table(table, path, compression=compression)

        logger.info(f"[{group}] exported {len(df)} trades to {path}")
        return len(df)
