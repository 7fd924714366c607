"""
Durable local storage provider backed by SQLite.

This module persists entity instances in a single SQLite file under a
data directory, so state survives process restarts:
- Instances stored as JSON payloads keyed by (context, id)
- Optional NDJSON journal with one line per mutation

Filters are evaluated in Python with the shared query evaluator after
loading the rows of one type; SQLite is only the durable store.

Invariants:
    - All writes run in a single BEGIN IMMEDIATE transaction
    - Mutations are serialized by an asyncio lock
    - Several contexts (tenants) can share one file without seeing each other
    - The journal is append-only; unreadable lines are skipped on replay

How to change safely:
    - Table changes must stay readable by older files (add columns only)
    - Bump SCHEMA_VERSION when the table layout changes

Table schema:
    instances:
        - context TEXT
        - id TEXT
        - type TEXT
        - version INTEGER
        - payload_json TEXT (full instance including metadata)
        - created_at TEXT
        - updated_at TEXT
        - PRIMARY KEY (context, id)
"""

from __future__ import annotations

import asyncio
import json
import logging
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from ..errors import NotFoundError
from ..query import matches
from .base import (
    DEFAULT_CONTEXT,
    Instance,
    ProviderKind,
    apply_changes,
    generate_sqid,
    new_instance,
    now_iso,
)

logger = logging.getLogger(__name__)

DB_FILENAME = "nouns.db"
JOURNAL_FILENAME = "events.ndjson"


class LocalNounProvider:
    """SQLite-backed implementation of NounProvider.

    Thread safety:
        Each operation opens its own connection. An asyncio lock
        serializes mutations within the process; SQLite busy_timeout
        covers other processes sharing the file.

    Example:
        >>> provider = LocalNounProvider("/var/lib/nounkit", context="https://headless.ly/~acme")
        >>> contact = await provider.create("Contact", {"name": "Alice"})
        >>> # after a restart
        >>> await LocalNounProvider("/var/lib/nounkit", context=...).get("Contact", contact["$id"])
    """

    kind = ProviderKind.LOCAL.value

    # SQLite schema version for migrations
    SCHEMA_VERSION = 1

    def __init__(
        self,
        data_dir: str = ".nounkit",
        context: str = DEFAULT_CONTEXT,
        journal: bool = True,
        busy_timeout_ms: int = 5000,
    ) -> None:
        """Initialize the local provider.

        Args:
            data_dir: Directory holding the database and journal
            context: Tenant context URL stamped on instances
            journal: Append mutations to an NDJSON journal
            busy_timeout_ms: SQLite busy timeout
        """
        self.data_dir = Path(data_dir)
        self.context = context
        self.journal = journal
        self.busy_timeout_ms = busy_timeout_ms
        self._initialized = False
        self._lock = asyncio.Lock()

    @property
    def db_path(self) -> Path:
        return self.data_dir / DB_FILENAME

    @property
    def journal_path(self) -> Path:
        return self.data_dir / JOURNAL_FILENAME

    @contextmanager
    def _get_connection(self) -> Iterator[sqlite3.Connection]:
        """Open a configured connection, creating the schema on first use."""
        self.data_dir.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(
            str(self.db_path),
            timeout=self.busy_timeout_ms / 1000.0,
            isolation_level=None,  # Autocommit by default, explicit transactions
        )
        conn.row_factory = sqlite3.Row
        try:
            conn.execute(f"PRAGMA busy_timeout = {self.busy_timeout_ms}")
            conn.execute("PRAGMA synchronous = NORMAL")
            if not self._initialized:
                self._create_schema(conn)
                self._initialized = True
            yield conn
        finally:
            conn.close()

    def _create_schema(self, conn: sqlite3.Connection) -> None:
        conn.executescript("""
            CREATE TABLE IF NOT EXISTS schema_version (
                version INTEGER PRIMARY KEY,
                applied_at TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS instances (
                context TEXT NOT NULL,
                id TEXT NOT NULL,
                type TEXT NOT NULL,
                version INTEGER NOT NULL,
                payload_json TEXT NOT NULL,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                PRIMARY KEY (context, id)
            );

            CREATE INDEX IF NOT EXISTS idx_instances_type ON instances(context, type);
        """)
        conn.execute(
            "INSERT OR IGNORE INTO schema_version (version, applied_at) VALUES (?, ?)",
            (self.SCHEMA_VERSION, now_iso()),
        )

    def _select(self, conn: sqlite3.Connection, type_name: str, entity_id: str) -> Optional[Instance]:
        row = conn.execute(
            "SELECT payload_json FROM instances WHERE context = ? AND type = ? AND id = ?",
            (self.context, type_name, entity_id),
        ).fetchone()
        return json.loads(row["payload_json"]) if row else None

    async def create(self, type_name: str, data: Mapping[str, Any]) -> Instance:
        async with self._lock:
            with self._get_connection() as conn:
                conn.execute("BEGIN IMMEDIATE")
                try:
                    instance = new_instance(type_name, data, self.context)
                    while conn.execute(
                        "SELECT 1 FROM instances WHERE context = ? AND id = ?",
                        (self.context, instance["$id"]),
                    ).fetchone():
                        instance = new_instance(type_name, data, self.context)
                    conn.execute(
                        """
                        INSERT INTO instances (context, id, type, version, payload_json,
                                               created_at, updated_at)
                        VALUES (?, ?, ?, ?, ?, ?, ?)
                        """,
                        (
                            self.context,
                            instance["$id"],
                            type_name,
                            instance["$version"],
                            json.dumps(instance),
                            instance["$createdAt"],
                            instance["$updatedAt"],
                        ),
                    )
                    conn.execute("COMMIT")
                except Exception:
                    conn.execute("ROLLBACK")
                    raise
            self._append_event(type_name, "create", instance["$id"], data, None, instance)

        logger.debug("Created instance", extra={"type": type_name, "id": instance["$id"]})
        return instance

    async def find(
        self,
        type_name: str,
        where: Optional[Mapping[str, Any]] = None,
    ) -> List[Instance]:
        with self._get_connection() as conn:
            rows = conn.execute(
                "SELECT payload_json FROM instances WHERE context = ? AND type = ? ORDER BY rowid",
                (self.context, type_name),
            ).fetchall()
        instances = [json.loads(row["payload_json"]) for row in rows]
        return [instance for instance in instances if matches(instance, where)]

    async def get(self, type_name: str, entity_id: str) -> Optional[Instance]:
        with self._get_connection() as conn:
            return self._select(conn, type_name, entity_id)

    async def update(
        self,
        type_name: str,
        entity_id: str,
        data: Mapping[str, Any],
    ) -> Instance:
        return await self._merge(type_name, "update", entity_id, data)

    async def delete(self, type_name: str, entity_id: str) -> bool:
        async with self._lock:
            with self._get_connection() as conn:
                conn.execute("BEGIN IMMEDIATE")
                try:
                    before = self._select(conn, type_name, entity_id)
                    cursor = conn.execute(
                        "DELETE FROM instances WHERE context = ? AND type = ? AND id = ?",
                        (self.context, type_name, entity_id),
                    )
                    conn.execute("COMMIT")
                except Exception:
                    conn.execute("ROLLBACK")
                    raise
            removed = cursor.rowcount > 0
            if removed:
                self._append_event(type_name, "delete", entity_id, None, before, None)
        return removed

    async def perform(
        self,
        type_name: str,
        verb: str,
        entity_id: str,
        data: Optional[Mapping[str, Any]] = None,
    ) -> Instance:
        return await self._merge(type_name, verb, entity_id, data)

    async def count(self, type_name: str) -> int:
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT COUNT(*) AS n FROM instances WHERE context = ? AND type = ?",
                (self.context, type_name),
            ).fetchone()
        return int(row["n"])

    async def close(self) -> None:
        """Connections are per-operation; nothing stays open."""

    async def _merge(
        self,
        type_name: str,
        verb: str,
        entity_id: str,
        data: Optional[Mapping[str, Any]],
    ) -> Instance:
        async with self._lock:
            with self._get_connection() as conn:
                conn.execute("BEGIN IMMEDIATE")
                try:
                    before = self._select(conn, type_name, entity_id)
                    if before is None:
                        conn.execute("ROLLBACK")
                        raise NotFoundError(type_name, entity_id)
                    after = apply_changes(before, data)
                    conn.execute(
                        """
                        UPDATE instances SET payload_json = ?, version = ?, updated_at = ?
                        WHERE context = ? AND id = ?
                        """,
                        (
                            json.dumps(after),
                            after["$version"],
                            after["$updatedAt"],
                            self.context,
                            entity_id,
                        ),
                    )
                    conn.execute("COMMIT")
                except NotFoundError:
                    raise
                except Exception:
                    conn.execute("ROLLBACK")
                    raise
            self._append_event(type_name, verb, entity_id, data, before, after)
        return after

    # --- Journal ---

    def _append_event(
        self,
        type_name: str,
        verb: str,
        entity_id: str,
        data: Optional[Mapping[str, Any]],
        before: Optional[Instance],
        after: Optional[Instance],
    ) -> None:
        if not self.journal:
            return
        event = {
            "$id": f"evt_{generate_sqid(12)}",
            "$type": f"{type_name}.{verb}",
            "entityType": type_name,
            "entityId": entity_id,
            "verb": verb,
            "data": dict(data) if data is not None else None,
            "before": before,
            "after": after,
            "context": self.context,
            "timestamp": now_iso(),
        }
        with self.journal_path.open("a", encoding="utf-8") as fh:
            fh.write(json.dumps(event) + "\n")

    def read_events(
        self,
        type_name: Optional[str] = None,
        entity_id: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """Replay journal entries for this context, oldest first.

        Args:
            type_name: Only events for this entity type
            entity_id: Only events for this instance

        Returns:
            Parsed events; malformed lines are skipped
        """
        if not self.journal_path.exists():
            return []
        events: List[Dict[str, Any]] = []
        with self.journal_path.open("r", encoding="utf-8") as fh:
            for line in fh:
                line = line.strip()
                if not line:
                    continue
                try:
                    event = json.loads(line)
                except json.JSONDecodeError:
                    logger.warning("Skipping malformed journal line", extra={"path": str(self.journal_path)})
                    continue
                if event.get("context") != self.context:
                    continue
                if type_name is not None and event.get("entityType") != type_name:
                    continue
                if entity_id is not None and event.get("entityId") != entity_id:
                    continue
                events.append(event)
        return events
