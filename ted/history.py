"""Bounded, persistent history of ted interactions.

Every ``ted agent`` or ``ted ask`` run that executes a command leaves an
:class:`Entry` behind.  Entries live in a single SQLite file
(``~/.ted/history.db`` by default) inside one logical collection named
``history``.  Rows are keyed by the 8-byte big-endian encoding of the
entry id, so byte order of the keys is also numeric order and the
first/last row of the collection is the oldest/newest entry.  Values are
JSON documents with non-ASCII text escaped.

The log never holds more than :data:`MAX_ENTRIES` entries: each insert
evicts the oldest rows inside the same transaction.  A log is opened
with :func:`load` and must be closed again; it is also a context
manager::

    with history.load() as log:
        log.add_entry("agent", "list files", "Lists files", selected="ls")
        for entry in log.get_entries():
            ...
"""

from __future__ import annotations

import contextlib
import json
import logging
import os
import sqlite3
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, List, Optional

from .config import config_dir

logger = logging.getLogger(__name__)

MAX_ENTRIES = 5
BUCKET = "history"
LOCK_TIMEOUT = 1.0

_SCHEMA = """
CREATE TABLE IF NOT EXISTS buckets (
    name TEXT PRIMARY KEY,
    sequence INTEGER NOT NULL DEFAULT 0
);
CREATE TABLE IF NOT EXISTS records (
    bucket TEXT NOT NULL,
    key BLOB NOT NULL,
    value BLOB NOT NULL,
    PRIMARY KEY (bucket, key)
) WITHOUT ROWID;
"""


class HistoryError(Exception):
    """Base class for history store failures."""


class StorageUnavailable(HistoryError):
    """The backing file could not be created, opened or locked."""


class StorageWriteError(HistoryError):
    """A change could not be committed to an open store."""


class NotFound(HistoryError):
    """The requested entry does not exist."""


class NotOpen(HistoryError):
    """The store is closed."""


class DecodeSkipped(HistoryError):
    """A stored record could not be decoded and was left out of a read."""


@dataclass(frozen=True)
class Entry:
    id: int
    timestamp: datetime
    command_kind: str
    query: str
    response: str
    selected: Optional[str] = None


def history_path() -> Path:
    """Return the default location of the history database."""
    return config_dir() / "history.db"


def encode_key(entry_id: int) -> bytes:
    return entry_id.to_bytes(8, "big")


def decode_key(key: bytes) -> int:
    return int.from_bytes(key, "big")


def encode_entry(entry: Entry) -> bytes:
    """Serialise an entry to its stored JSON form.

    ``selected`` is written only when a command was chosen, so its
    absence in the document means "nothing selected".
    """
    doc = {
        "id": entry.id,
        "timestamp": entry.timestamp.isoformat(),
        "command_kind": entry.command_kind,
        "query": entry.query,
        "response": entry.response,
    }
    if entry.selected is not None:
        doc["selected"] = entry.selected
    # ASCII escapes keep lone surrogates (from undecodable argv) storable
    return json.dumps(doc).encode("ascii")


def decode_entry(key: bytes, value: bytes) -> Entry:
    """Rebuild an entry from a stored row.

    :raises DecodeSkipped: when the value is not a well formed record.
    """
    try:
        doc = json.loads(bytes(value).decode("utf-8"))
        selected = doc.get("selected")
        if selected is not None and not isinstance(selected, str):
            raise TypeError("selected must be a string")
        fields = [doc["command_kind"], doc["query"], doc["response"]]
        if not all(isinstance(f, str) for f in fields):
            raise TypeError("text fields must be strings")
        return Entry(
            id=decode_key(bytes(key)),
            timestamp=datetime.fromisoformat(doc["timestamp"]),
            command_kind=fields[0],
            query=fields[1],
            response=fields[2],
            selected=selected,
        )
    except (UnicodeDecodeError, ValueError, KeyError, TypeError, AttributeError) as exc:
        raise DecodeSkipped(f"undecodable record {bytes(key).hex()}: {exc}") from exc


class HistoryLog:
    """Owned handle on the history database.

    The handle holds an exclusive lock on the file for as long as it is
    open.  Every mutation runs in one transaction guarded by a thread
    lock, so callers sharing the instance never observe an insert
    without its eviction.
    """

    def __init__(self, path: Optional[os.PathLike] = None) -> None:
        self.path = Path(path) if path is not None else history_path()
        self.skipped_records = 0
        self._conn: Optional[sqlite3.Connection] = None
        self._closed = False
        self._lock = threading.RLock()

    def __enter__(self) -> "HistoryLog":
        return self.open()

    def __exit__(self, *exc_info) -> None:
        self.close()

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    def open(self) -> "HistoryLog":
        """Open (creating if needed) the backing file and take its lock."""
        if self._conn is not None:
            return self
        if self._closed:
            raise StorageUnavailable("history store was closed; load a new one")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StorageUnavailable(f"failed to create history directory: {exc}") from exc
        conn = None
        try:
            conn = sqlite3.connect(
                str(self.path),
                timeout=LOCK_TIMEOUT,
                isolation_level=None,
                check_same_thread=False,
            )
            # The lock taken by the first write stays held until close().
            conn.execute("PRAGMA locking_mode=EXCLUSIVE")
            conn.execute("BEGIN EXCLUSIVE")
            for statement in _SCHEMA.split(";"):
                if statement.strip():
                    conn.execute(statement)
            conn.execute("INSERT OR IGNORE INTO buckets (name) VALUES (?)", (BUCKET,))
            conn.execute("COMMIT")
        except sqlite3.Error as exc:
            if conn is not None:
                conn.close()
            raise StorageUnavailable(f"failed to open history database {self.path}: {exc}") from exc
        self._conn = conn
        logger.debug("Opened history database %s", self.path)
        return self

    def close(self) -> None:
        with self._lock:
            if self._conn is None:
                return
            self._conn.close()
            self._conn = None
            self._closed = True
            logger.debug("Closed history database %s", self.path)

    def _require_open(self) -> sqlite3.Connection:
        if self._conn is None:
            raise NotOpen("history store is not open")
        return self._conn

    @contextlib.contextmanager
    def _update(self) -> Iterator[sqlite3.Connection]:
        """Run the body in a write transaction, rolling back on any error."""
        with self._lock:
            conn = self._require_open()
            try:
                conn.execute("BEGIN IMMEDIATE")
            except sqlite3.Error as exc:
                raise StorageWriteError(f"failed to start transaction: {exc}") from exc
            try:
                yield conn
            except BaseException:
                with contextlib.suppress(sqlite3.Error):
                    conn.execute("ROLLBACK")
                raise
            try:
                conn.execute("COMMIT")
            except sqlite3.Error as exc:
                with contextlib.suppress(sqlite3.Error):
                    conn.execute("ROLLBACK")
                raise StorageWriteError(f"failed to commit history change: {exc}") from exc

    def add_entry(
        self,
        command_kind: str,
        query: str,
        response: str,
        selected: Optional[str] = None,
    ) -> Entry:
        """Record an interaction and evict entries beyond :data:`MAX_ENTRIES`.

        :returns: The stored entry, with its id and timestamp filled in.
        :raises StorageWriteError: if the entry could not be persisted.
          Nothing is evicted in that case.
        :raises TypeError: if a text field is not a string.
        """
        for name, value in (('command_kind', command_kind), ('query', query), ('response', response)):
            if not isinstance(value, str):
                raise TypeError(f"{name} must be a string, not {type(value).__name__}")
        if selected is not None and not isinstance(selected, str):
            raise TypeError(f"selected must be a string or None, not {type(selected).__name__}")
        with self._update() as conn:
            try:
                entry = Entry(
                    id=self._next_sequence(conn),
                    timestamp=datetime.now(timezone.utc),
                    command_kind=command_kind,
                    query=query,
                    response=response,
                    selected=selected,
                )
                conn.execute(
                    "INSERT INTO records (bucket, key, value) VALUES (?, ?, ?)",
                    (BUCKET, encode_key(entry.id), encode_entry(entry)),
                )
                self._trim(conn)
            except (sqlite3.Error, ValueError) as exc:
                raise StorageWriteError(f"failed to store entry: {exc}") from exc
        logger.debug("Stored history entry %d (%s)", entry.id, command_kind)
        return entry

    def get_entries(self) -> List[Entry]:
        """Return all entries, newest first.

        Records that cannot be decoded are skipped and counted in
        :attr:`skipped_records`.
        """
        with self._lock:
            conn = self._require_open()
            try:
                rows = conn.execute(
                    "SELECT key, value FROM records WHERE bucket = ? ORDER BY key DESC",
                    (BUCKET,),
                ).fetchall()
            except sqlite3.Error as exc:
                raise StorageUnavailable(f"failed to retrieve entries: {exc}") from exc
            entries = []
            for key, value in rows:
                try:
                    entries.append(decode_entry(key, value))
                except DecodeSkipped as exc:
                    self.skipped_records += 1
                    logger.warning("Skipping history record: %s", exc)
        return entries

    def delete_most_recent(self) -> Optional[Entry]:
        """Remove the newest entry.

        :returns: The removed entry, or ``None`` if its record was not
          decodable.
        :raises NotFound: if the store is empty.
        """
        with self._update() as conn:
            try:
                row = conn.execute(
                    "SELECT key, value FROM records WHERE bucket = ? ORDER BY key DESC LIMIT 1",
                    (BUCKET,),
                ).fetchone()
                if row is None:
                    raise NotFound("no entries to delete")
                conn.execute("DELETE FROM records WHERE bucket = ? AND key = ?", (BUCKET, row[0]))
            except sqlite3.Error as exc:
                raise StorageWriteError(f"failed to delete entry: {exc}") from exc
        try:
            return decode_entry(row[0], row[1])
        except DecodeSkipped:
            return None

    def clear(self) -> None:
        """Remove every entry.  Ids keep counting from where they were."""
        with self._update() as conn:
            try:
                conn.execute("DELETE FROM records WHERE bucket = ?", (BUCKET,))
            except sqlite3.Error as exc:
                raise StorageWriteError(f"failed to clear history: {exc}") from exc

    def _next_sequence(self, conn: sqlite3.Connection) -> int:
        conn.execute("UPDATE buckets SET sequence = sequence + 1 WHERE name = ?", (BUCKET,))
        (seq,) = conn.execute("SELECT sequence FROM buckets WHERE name = ?", (BUCKET,)).fetchone()
        return seq

    def _trim(self, conn: sqlite3.Connection) -> None:
        (count,) = conn.execute("SELECT COUNT(*) FROM records WHERE bucket = ?", (BUCKET,)).fetchone()
        excess = count - MAX_ENTRIES
        if excess <= 0:
            return
        oldest = conn.execute(
            "SELECT key FROM records WHERE bucket = ? ORDER BY key ASC LIMIT ?",
            (BUCKET, excess),
        ).fetchall()
        for (key,) in oldest:
            conn.execute("DELETE FROM records WHERE bucket = ? AND key = ?", (BUCKET, key))
        logger.debug("Evicted %d old history entries", len(oldest))


def load(path: Optional[os.PathLike] = None) -> HistoryLog:
    """Open the history log at ``path`` (default :func:`history_path`)."""
    return HistoryLog(path).open()
