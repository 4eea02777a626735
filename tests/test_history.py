"""Tests for the bounded history log."""

import sqlite3
import threading
from datetime import datetime, timedelta, timezone

import pytest

from ted import history
from ted.history import MAX_ENTRIES, Entry


def test_fresh_store_is_empty(log):
    assert log.get_entries() == []


def test_default_path_under_ted_home(ted_home):
    assert history.history_path() == ted_home / "history.db"


def test_load_creates_directory_and_file(tmp_path):
    path = tmp_path / "nested" / "dir" / "history.db"
    with history.load(path) as opened:
        assert opened.is_open
    assert path.exists()


def test_add_entry_returns_stored_entry(log):
    before = datetime.now(timezone.utc)
    entry = log.add_entry("agent", "list files", "Lists files", "ls -la")

    assert entry.id == 1
    assert entry.command_kind == "agent"
    assert entry.query == "list files"
    assert entry.selected == "ls -la"
    assert entry.timestamp.tzinfo is not None
    assert before - timedelta(seconds=1) <= entry.timestamp <= datetime.now(timezone.utc)
    assert log.get_entries() == [entry]


def test_round_trip_without_selection(log):
    log.add_entry("ask", "find big files", "1. `du -sh *` - sizes")

    [stored] = log.get_entries()
    assert stored.selected is None
    assert stored.response == "1. `du -sh *` - sizes"
    assert stored.command_kind == "ask"
    assert stored.query == "find big files"


def test_round_trip_unicode_and_newlines(log):
    response = "1. `ls` - list\n2. `echo ✓` - tick"
    log.add_entry("ask", "café", response, "echo ✓")

    [stored] = log.get_entries()
    assert stored.query == "café"
    assert stored.response == response
    assert stored.selected == "echo ✓"


def test_entries_are_newest_first(log):
    for i in range(3):
        log.add_entry("agent", f"q{i}", "r")

    assert [e.query for e in log.get_entries()] == ["q2", "q1", "q0"]


def test_ids_strictly_increase(log):
    ids = [log.add_entry("agent", f"q{i}", "r").id for i in range(4)]
    assert ids == sorted(ids)
    assert len(set(ids)) == len(ids)


def test_capacity_keeps_most_recent_five(log):
    for i in range(1, 7):
        log.add_entry("agent", f"q{i}", "r")

    assert [e.query for e in log.get_entries()] == ["q6", "q5", "q4", "q3", "q2"]


def test_never_more_than_max_entries(log):
    for i in range(MAX_ENTRIES * 3):
        log.add_entry("ask", f"q{i}", "r")
        assert len(log.get_entries()) <= MAX_ENTRIES

    entries = log.get_entries()
    assert [e.id for e in entries] == list(range(MAX_ENTRIES * 3, MAX_ENTRIES * 2, -1))


def test_delete_most_recent(log):
    for i in range(3):
        log.add_entry("agent", f"q{i}", "r")

    removed = log.delete_most_recent()

    assert removed.query == "q2"
    assert [e.query for e in log.get_entries()] == ["q1", "q0"]


def test_delete_most_recent_on_empty_store(log):
    with pytest.raises(history.NotFound):
        log.delete_most_recent()
    assert log.get_entries() == []


def test_delete_does_not_reuse_ids(log):
    log.add_entry("agent", "a", "r")
    second = log.add_entry("agent", "b", "r")
    log.delete_most_recent()

    third = log.add_entry("agent", "c", "r")
    assert third.id > second.id


def test_clear_then_add(log):
    old_ids = {log.add_entry("agent", f"q{i}", "r").id for i in range(3)}

    log.clear()
    assert log.get_entries() == []

    entry = log.add_entry("ask", "again", "r")
    assert entry.id not in old_ids
    assert log.get_entries() == [entry]


def test_clear_on_empty_store(log):
    log.clear()
    assert log.get_entries() == []


def test_entries_survive_reopen(tmp_path):
    path = tmp_path / "history.db"
    with history.load(path) as first:
        created = first.add_entry("agent", "persist me", "r", "true")

    with history.load(path) as second:
        assert second.get_entries() == [created]
        assert second.add_entry("agent", "next", "r").id == created.id + 1


def test_failed_insert_is_rolled_back(log, monkeypatch):
    log.add_entry("agent", "kept", "r")

    def broken_trim(self, conn):
        raise sqlite3.OperationalError("disk I/O error")

    monkeypatch.setattr(history.HistoryLog, "_trim", broken_trim)
    with pytest.raises(history.StorageWriteError):
        log.add_entry("agent", "lost", "r")

    assert [e.query for e in log.get_entries()] == ["kept"]


def test_corrupt_record_is_skipped(tmp_path):
    path = tmp_path / "history.db"
    with history.load(path) as opened:
        opened.add_entry("agent", "good one", "r")
        opened.add_entry("agent", "good two", "r")

    conn = sqlite3.connect(str(path))
    conn.execute(
        "INSERT INTO records (bucket, key, value) VALUES (?, ?, ?)",
        (history.BUCKET, history.encode_key(3), b"\x00not json"),
    )
    conn.execute(
        "INSERT INTO records (bucket, key, value) VALUES (?, ?, ?)",
        (history.BUCKET, history.encode_key(4), b'{"query": "missing fields"}'),
    )
    conn.commit()
    conn.close()

    with history.load(path) as reopened:
        assert [e.query for e in reopened.get_entries()] == ["good two", "good one"]
        assert reopened.skipped_records == 2


def test_decode_entry_rejects_garbage():
    with pytest.raises(history.DecodeSkipped):
        history.decode_entry(history.encode_key(1), b"[1, 2, 3]")


def test_encoding_omits_absent_selection():
    entry = Entry(1, datetime.now(timezone.utc), "ask", "q", "r", None)
    assert b"selected" not in history.encode_entry(entry)
    assert history.decode_entry(history.encode_key(1), history.encode_entry(entry)) == entry


def test_keys_sort_numerically():
    keys = [history.encode_key(n) for n in (1, 255, 256, 70000, 2**40)]
    assert keys == sorted(keys)
    assert [history.decode_key(k) for k in keys] == [1, 255, 256, 70000, 2**40]


def test_operations_on_closed_store(tmp_path):
    opened = history.load(tmp_path / "history.db")
    opened.close()

    with pytest.raises(history.NotOpen):
        opened.get_entries()
    with pytest.raises(history.NotOpen):
        opened.add_entry("agent", "q", "r")
    with pytest.raises(history.NotOpen):
        opened.delete_most_recent()
    with pytest.raises(history.NotOpen):
        opened.clear()


def test_close_is_idempotent(tmp_path):
    opened = history.load(tmp_path / "history.db")
    opened.close()
    opened.close()
    history.HistoryLog(tmp_path / "other.db").close()


def test_closed_store_cannot_be_reopened(tmp_path):
    opened = history.load(tmp_path / "history.db")
    opened.close()
    with pytest.raises(history.StorageUnavailable):
        opened.open()


def test_second_handle_is_locked_out(tmp_path):
    path = tmp_path / "history.db"
    with history.load(path):
        with pytest.raises(history.StorageUnavailable):
            history.load(path)

    with history.load(path) as again:
        assert again.get_entries() == []


def test_unusable_location(tmp_path):
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("")
    with pytest.raises(history.StorageUnavailable):
        history.load(blocker / "history.db")


def test_concurrent_inserts_keep_invariants(log):
    def worker(n):
        for i in range(10):
            log.add_entry("agent", f"t{n}-{i}", "r")

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    entries = log.get_entries()
    assert [e.id for e in entries] == [40, 39, 38, 37, 36]


def test_lone_surrogates_round_trip(log):
    # argv bytes that are not valid UTF-8 arrive as lone surrogates
    entry = log.add_entry("agent", "list files \udcff", "r\udcfe", "ls \udcff")

    assert log.get_entries() == [entry]
    assert entry.query == "list files \udcff"


@pytest.mark.parametrize(
    "fields",
    [
        ("agent", None, "r", None),
        ("agent", "q", b"r", None),
        (None, "q", "r", None),
        ("agent", "q", "r", 42),
    ],
)
def test_add_entry_rejects_non_text_fields(log, fields):
    for i in range(MAX_ENTRIES):
        log.add_entry("agent", f"q{i}", "r")
    before = log.get_entries()

    with pytest.raises(TypeError):
        log.add_entry(*fields)

    assert log.get_entries() == before
    assert log.add_entry("agent", "next", "r").id == MAX_ENTRIES + 1


def test_failed_insert_on_full_store_evicts_nothing(log, monkeypatch):
    for i in range(MAX_ENTRIES):
        log.add_entry("agent", f"q{i}", "r")
    before = log.get_entries()

    def broken_encode(entry):
        raise ValueError("cannot encode")

    with monkeypatch.context() as patched:
        patched.setattr(history, "encode_entry", broken_encode)
        with pytest.raises(history.StorageWriteError):
            log.add_entry("agent", "lost", "r")

    assert log.get_entries() == before
    assert log.add_entry("agent", "next", "r").id == MAX_ENTRIES + 1


def test_skipped_records_counted_across_threads(tmp_path):
    path = tmp_path / "history.db"
    with history.load(path):
        pass
    conn = sqlite3.connect(str(path))
    conn.execute(
        "INSERT INTO records (bucket, key, value) VALUES (?, ?, ?)",
        (history.BUCKET, history.encode_key(1), b"garbage"),
    )
    conn.commit()
    conn.close()

    with history.load(path) as opened:
        def reader():
            for _ in range(25):
                opened.get_entries()

        threads = [threading.Thread(target=reader) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert opened.skipped_records == 100
