"""
Record storage for linksync.

Provides the ``EntityRepository`` protocol consumed by the sync engine and
two implementations:
- ``InMemoryRepository`` for tests and embedding
- ``SQLiteRepository`` storing each record as a JSON row

Both keep a read cache. A loaded record is returned as the same object until
``invalidate_cache`` drops it or the record is saved.
"""

import copy
import json
import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Protocol, Tuple, runtime_checkable

from .errors import ConfigError, StorageError
from .records import Record

logger = logging.getLogger(__name__)

# Schema version for migrations
SCHEMA_VERSION = 1

SCHEMA_SQL = """
-- Meta table for schema version tracking
CREATE TABLE IF NOT EXISTS meta (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

-- One row per record, links and attributes stored as JSON
CREATE TABLE IF NOT EXISTS records (
    record_type TEXT NOT NULL,
    record_id TEXT NOT NULL,
    subtype TEXT NOT NULL,
    data_json TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    PRIMARY KEY (record_type, record_id)
);

CREATE INDEX IF NOT EXISTS idx_records_subtype ON records(record_type, subtype);
"""


def _utcnow() -> str:
    """Return current UTC time as ISO format string."""
    return datetime.now(timezone.utc).isoformat()


@runtime_checkable
class EntityRepository(Protocol):
    """Loads and saves records by type and id."""

    def load(self, record_type: str, ids: Iterable[str]) -> List[Record]:
        """Return the records that exist among ``ids``; unknown ids are skipped."""
        ...

    def save(self, record: Record) -> None:
        ...

    def invalidate_cache(self, record_type: str, ids: Iterable[str]) -> None:
        ...


class BaseRepository:
    """Read cache and call counters shared by the repository implementations."""

    def __init__(self):
        self._cache: Dict[Tuple[str, str], Record] = {}
        self.load_count = 0
        self.save_count = 0
        self.invalidation_count = 0

    def load(self, record_type: str, ids: Iterable[str]) -> List[Record]:
        wanted = [str(i) for i in ids]
        self.load_count += 1
        missing = [i for i in wanted if (record_type, i) not in self._cache]
        if missing:
            for record in self._fetch(record_type, missing):
                self._cache[record.identity] = record
        return [self._cache[(record_type, i)] for i in wanted if (record_type, i) in self._cache]

    def get(self, record_type: str, record_id: str) -> Optional[Record]:
        """Load a single record, or None if it does not exist."""
        records = self.load(record_type, [record_id])
        return records[0] if records else None

    def save(self, record: Record) -> None:
        # A cached copy loaded before this save would shadow the new state
        self._cache.pop(record.identity, None)
        self._store(record)
        self.save_count += 1
        logger.debug(f"Saved {record.record_type} '{record.id}'")

    def delete(self, record_type: str, record_id: str) -> bool:
        """Remove a record. Returns False if it did not exist."""
        self._cache.pop((record_type, str(record_id)), None)
        return self._remove(record_type, str(record_id))

    def invalidate_cache(self, record_type: str, ids: Iterable[str]) -> None:
        for record_id in ids:
            self._cache.pop((record_type, str(record_id)), None)
        self.invalidation_count += 1

    def all(self, record_type: str) -> List[Record]:
        """Return every stored record of ``record_type``, ordered by id."""
        return self._fetch_all(record_type)

    def _fetch(self, record_type: str, ids: List[str]) -> List[Record]:
        raise NotImplementedError

    def _fetch_all(self, record_type: str) -> List[Record]:
        raise NotImplementedError

    def _store(self, record: Record) -> None:
        raise NotImplementedError

    def _remove(self, record_type: str, record_id: str) -> bool:
        raise NotImplementedError


class InMemoryRepository(BaseRepository):
    """
    Repository keeping deep copies of records in a dictionary.

    Stored and loaded records are independent objects, so a record is only
    changed in the store when it is saved.
    """

    def __init__(self, records: Iterable[Record] = ()):
        super().__init__()
        self._records: Dict[Tuple[str, str], Record] = {}
        for record in records:
            self._store(record)

    def _fetch(self, record_type: str, ids: List[str]) -> List[Record]:
        return [
            copy.deepcopy(self._records[(record_type, i)])
            for i in ids
            if (record_type, i) in self._records
        ]

    def _fetch_all(self, record_type: str) -> List[Record]:
        return [
            copy.deepcopy(record)
            for key, record in sorted(self._records.items())
            if key[0] == record_type
        ]

    def _store(self, record: Record) -> None:
        self._records[record.identity] = copy.deepcopy(record)

    def _remove(self, record_type: str, record_id: str) -> bool:
        return self._records.pop((record_type, record_id), None) is not None

    def __len__(self) -> int:
        return len(self._records)


def init_db(db_path: Path, force: bool = False) -> Path:
    """
    Initialize the database with schema.

    Args:
        db_path: Path to the database file.
        force: If True, recreate the database even if it exists.

    Returns:
        Path to the database file.
    """
    db_path = Path(db_path)
    db_path.parent.mkdir(parents=True, exist_ok=True)

    if db_path.exists():
        if not force:
            logger.info(f"Database already exists: {db_path}")
            _check_schema_version(db_path)
            return db_path
        logger.info(f"Removing existing database: {db_path}")
        db_path.unlink()

    logger.info(f"Creating database: {db_path}")
    conn = sqlite3.connect(db_path)
    try:
        cursor = conn.cursor()
        cursor.executescript(SCHEMA_SQL)
        cursor.execute(
            "INSERT OR REPLACE INTO meta (key, value, updated_at) VALUES (?, ?, ?)",
            ("schema_version", str(SCHEMA_VERSION), _utcnow())
        )
        conn.commit()
        logger.info(f"Database initialized with schema version {SCHEMA_VERSION}")
    finally:
        conn.close()

    return db_path


def _check_schema_version(db_path: Path) -> None:
    conn = sqlite3.connect(db_path)
    try:
        cursor = conn.cursor()
        cursor.execute("SELECT value FROM meta WHERE key = 'schema_version'")
        row = cursor.fetchone()
        if row and int(row[0]) != SCHEMA_VERSION:
            logger.warning(
                f"Schema version mismatch: DB has v{row[0]}, expected v{SCHEMA_VERSION}"
            )
    except sqlite3.OperationalError as e:
        raise ConfigError(f"Not a linksync database: {db_path} ({e})")
    finally:
        conn.close()


class SQLiteRepository(BaseRepository):
    """Repository storing each record as one JSON row in SQLite."""

    def __init__(self, db_path: Path):
        super().__init__()
        self.db_path = Path(db_path)

        if not self.db_path.exists():
            raise ConfigError(f"Database not found: {self.db_path}")

    def _connect(self) -> sqlite3.Connection:
        """Get a database connection."""
        return sqlite3.connect(self.db_path, timeout=30)

    def _fetch(self, record_type: str, ids: List[str]) -> List[Record]:
        placeholders = ", ".join("?" for _ in ids)
        conn = self._connect()
        try:
            cursor = conn.cursor()
            cursor.execute(
                f"SELECT record_id, data_json FROM records WHERE record_type = ? "  # noqa: S608
                f"AND record_id IN ({placeholders})",
                [record_type, *ids],
            )
            return [self._decode(record_type, *row) for row in cursor.fetchall()]
        except sqlite3.Error as e:
            raise StorageError(f"Cannot load {record_type} {ids} from {self.db_path}: {e}")
        finally:
            conn.close()

    def _fetch_all(self, record_type: str) -> List[Record]:
        conn = self._connect()
        try:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT record_id, data_json FROM records WHERE record_type = ? ORDER BY record_id",
                (record_type,),
            )
            return [self._decode(record_type, *row) for row in cursor.fetchall()]
        except sqlite3.Error as e:
            raise StorageError(f"Cannot load {record_type} records from {self.db_path}: {e}")
        finally:
            conn.close()

    @staticmethod
    def _decode(record_type: str, record_id: str, data_json: str) -> Record:
        try:
            return Record.from_dict(json.loads(data_json))
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            raise StorageError(f"Corrupt row for {record_type} '{record_id}': {e}")

    def _store(self, record: Record) -> None:
        conn = self._connect()
        try:
            conn.execute(
                """INSERT OR REPLACE INTO records
                   (record_type, record_id, subtype, data_json, updated_at)
                   VALUES (?, ?, ?, ?, ?)""",
                (
                    record.record_type,
                    record.id,
                    record.subtype,
                    json.dumps(record.to_dict(), ensure_ascii=False),
                    _utcnow(),
                ),
            )
            conn.commit()
        except sqlite3.Error as e:
            raise StorageError(f"Cannot save {record.record_type} '{record.id}': {e}")
        finally:
            conn.close()

    def _remove(self, record_type: str, record_id: str) -> bool:
        conn = self._connect()
        try:
            cursor = conn.execute(
                "DELETE FROM records WHERE record_type = ? AND record_id = ?",
                (record_type, record_id),
            )
            conn.commit()
            return cursor.rowcount > 0
        except sqlite3.Error as e:
            raise StorageError(f"Cannot delete {record_type} '{record_id}': {e}")
        finally:
            conn.close()
