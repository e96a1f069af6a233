"""Tests for ReadWriteLock."""

from __future__ import annotations

import threading

import pytest

from policykit import ReadWriteLock
from policykit.locks import reading


class TestReadWriteLock:
    """Tests for shared and exclusive sections."""

    def test_concurrent_readers(self) -> None:
        """Two threads can hold the read side at the same time."""
        lock = ReadWriteLock()
        both_in = threading.Barrier(2, timeout=5)

        def reader() -> None:
            with lock.read():
                both_in.wait()

        threads = [threading.Thread(target=reader) for _ in range(2)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(5)
        assert not both_in.broken

    def test_writer_excludes_readers(self) -> None:
        """A reader waits until the writer leaves."""
        lock = ReadWriteLock()
        entered = threading.Event()
        with lock.write():
            reader = threading.Thread(target=lambda: (lock.acquire_read(), entered.set(), lock.release_read()))
            reader.start()
            assert not entered.wait(0.2)
        reader.join(5)
        assert entered.is_set()

    def test_reader_excludes_writer(self) -> None:
        """A writer waits until every reader leaves."""
        lock = ReadWriteLock()
        entered = threading.Event()
        with lock.read():
            writer = threading.Thread(target=lambda: (lock.acquire_write(), entered.set(), lock.release_write()))
            writer.start()
            assert not entered.wait(0.2)
        writer.join(5)
        assert entered.is_set()

    def test_writer_is_reentrant(self) -> None:
        """The writing thread can nest write and read sections."""
        lock = ReadWriteLock()
        with lock.write():
            with lock.write():
                with lock.read():
                    assert lock.write_locked
            assert lock.write_locked
        assert not lock.write_locked

    def test_release_write_from_other_thread(self) -> None:
        lock = ReadWriteLock()
        with pytest.raises(RuntimeError):
            lock.release_write()

    def test_unbalanced_release_read(self) -> None:
        lock = ReadWriteLock()
        with pytest.raises(RuntimeError):
            lock.release_read()

    def test_reading_without_lock(self) -> None:
        """reading(None) is a no-op context."""
        with reading(None):
            pass
