# maritime_ledger/storage/sqlite.py
import os
import json
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Iterator, List, Optional

from maritime_ledger.core.types import Event, Identity, IdentityKind, VoyageEntry
from maritime_ledger.core.canon import canonical_json_str
from . import StorageBackend

DB_PATH_ENV = "MARITIME_LEDGER_DB_PATH"
DEFAULT_DB_NAME = "maritime-ledger.db"


class SQLiteStorage(StorageBackend):
    """SQLite persistent storage for registries, voyages and emitted events."""

    def __init__(self, db_path: str | Path | None = None):
        if db_path is None:
            env_path = os.environ.get(DB_PATH_ENV)
            db_path = env_path if env_path else Path.cwd() / DEFAULT_DB_NAME

        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.db_path = self.db_path.resolve()

        # one connection shared by every registry / vessel lock holder;
        # reentrant so saves can run inside atomic()
        self._lock = threading.RLock()
        self._depth = 0
        self._pending: List[Callable[[], None]] = []
        self._conn: Optional[sqlite3.Connection] = None
        self._connect()

    def _connect(self):
        conn_str = str(self.db_path)
        self._conn = sqlite3.connect(conn_str, isolation_level=None, check_same_thread=False)
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._create_schema()

    def _create_schema(self):
        self.conn.execute("""
            CREATE TABLE IF NOT EXISTS identities (
                kind            TEXT    NOT NULL,
                id              INTEGER NOT NULL,
                owner           TEXT    NOT NULL,
                metadata_ref    TEXT    NOT NULL,
                canonical_json  TEXT    NOT NULL,
                PRIMARY KEY (kind, id)
            )
        """)
        self.conn.execute("""
            CREATE TABLE IF NOT EXISTS voyages (
                vessel_id       INTEGER NOT NULL,
                sequence        INTEGER NOT NULL,
                sailor_id       INTEGER NOT NULL,
                evidence_ref    TEXT    NOT NULL,
                description     TEXT    NOT NULL,
                timestamp       INTEGER NOT NULL,
                canonical_json  TEXT    NOT NULL,
                PRIMARY KEY (vessel_id, sequence)
            )
        """)
        self.conn.execute("""
            CREATE TABLE IF NOT EXISTS events (
                seq             INTEGER PRIMARY KEY,
                name            TEXT    NOT NULL,
                payload_json    TEXT    NOT NULL
            )
        """)
        self.conn.execute("CREATE INDEX IF NOT EXISTS idx_owner  ON identities(owner)")
        self.conn.execute("CREATE INDEX IF NOT EXISTS idx_sailor ON voyages(sailor_id)")
        self.conn.execute("CREATE INDEX IF NOT EXISTS idx_event  ON events(name)")

    @contextmanager
    def atomic(self) -> Iterator[None]:
        with self._lock:
            outermost = self._depth == 0
            if outermost:
                self.conn.execute("BEGIN IMMEDIATE")
            self._depth += 1
            try:
                yield
            except BaseException:
                self._depth -= 1
                if outermost:
                    self._pending = []
                    self.conn.execute("ROLLBACK")
                raise
            self._depth -= 1
            if outermost:
                callbacks, self._pending = self._pending, []
                try:
                    self.conn.execute("COMMIT")
                except BaseException:
                    if self.conn.in_transaction:
                        self.conn.execute("ROLLBACK")
                    raise
                # still under the lock: nobody else writes before callbacks run
                for callback in callbacks:
                    callback()

    def on_commit(self, callback: Callable[[], None]) -> None:
        with self._lock:
            if self._depth == 0:
                callback()
            else:
                self._pending.append(callback)

    @property
    def conn(self) -> sqlite3.Connection:
        if self._conn is None:
            raise RuntimeError("Storage connection is closed")
        return self._conn

    # Plain INSERT: a duplicate key means the caller's counter is out of sync
    # with the file, and that must surface as sqlite3.IntegrityError.

    def save_identity(self, identity: Identity) -> None:
        with self._lock:
            self.conn.execute("""
                INSERT INTO identities (kind, id, owner, metadata_ref, canonical_json)
                VALUES (?, ?, ?, ?, ?)
            """, (
                identity.kind, identity.id, identity.owner, identity.metadata_ref,
                canonical_json_str(identity.to_dict())
            ))

    def load_identities(self, kind: IdentityKind) -> List[Identity]:
        with self._lock:
            rows = self.conn.execute("""
                SELECT id, owner, metadata_ref FROM identities
                WHERE kind = ? ORDER BY id ASC
            """, (kind,)).fetchall()
        return [Identity(id=i, owner=o, metadata_ref=m, kind=kind) for i, o, m in rows]

    def save_voyage(self, entry: VoyageEntry) -> None:
        with self._lock:
            self.conn.execute("""
                INSERT INTO voyages
                (vessel_id, sequence, sailor_id, evidence_ref, description, timestamp, canonical_json)
                VALUES (?, ?, ?, ?, ?, ?, ?)
            """, (
                entry.vessel_id, entry.sequence, entry.sailor_id, entry.evidence_ref,
                entry.description, entry.timestamp, canonical_json_str(entry.to_dict())
            ))

    def load_voyages(self) -> List[VoyageEntry]:
        with self._lock:
            rows = self.conn.execute("""
                SELECT vessel_id, sequence, sailor_id, evidence_ref, description, timestamp
                FROM voyages ORDER BY vessel_id ASC, sequence ASC
            """).fetchall()

        loaded = []
        for vid, seq, sid, evidence, desc, ts in rows:
            loaded.append(VoyageEntry(
                vessel_id=vid,
                sailor_id=sid,
                evidence_ref=evidence,
                description=desc,
                timestamp=ts,
                sequence=seq,
            ))
        return loaded

    def save_event(self, event: Event) -> None:
        with self._lock:
            self.conn.execute(
                "INSERT INTO events (seq, name, payload_json) VALUES (?, ?, ?)",
                (event.seq, event.name, canonical_json_str(dict(event.payload)))
            )

    def load_events(self) -> List[Event]:
        with self._lock:
            rows = self.conn.execute(
                "SELECT seq, name, payload_json FROM events ORDER BY seq ASC"
            ).fetchall()
        return [Event(seq=seq, name=name, payload=json.loads(pjson)) for seq, name, pjson in rows]

    def close(self) -> None:
        with self._lock:
            if self._conn:
                self._conn.close()
                self._conn = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def get_voyage_count(self, vessel_id: int) -> int:
        with self._lock:
            cursor = self.conn.execute(
                "SELECT COUNT(*) FROM voyages WHERE vessel_id = ?",
                (vessel_id,)
            )
            return cursor.fetchone()[0]

    def get_latest_timestamp(self, vessel_id: int) -> Optional[int]:
        with self._lock:
            row = self.conn.execute(
                "SELECT MAX(timestamp) FROM voyages WHERE vessel_id = ?",
                (vessel_id,)
            ).fetchone()
        return row[0] if row and row[0] is not None else None
