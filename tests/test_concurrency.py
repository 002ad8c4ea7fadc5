"""
Concurrency tests for RecordStore.

Captures arrive from the clipboard thread and the image worker while the
UI queries, so every operation must be safe to call from several threads.
Two stores opened on one directory stand in for two processes sharing the
database file.
"""

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from pastee.errors import LockError, StorageInitError
from pastee.record_store import RecordStore
from pastee.types import ContentVariant


def _run_all(fn, args_list, workers=8):
    with ThreadPoolExecutor(max_workers=workers) as pool:
        return list(pool.map(lambda args: fn(*args), args_list))


class TestConcurrentWrites:
    """Many threads writing through one store."""

    def test_identical_text_yields_one_record(self, store):
        """Forty threads copying the same text end up with one id."""
        ids = _run_all(lambda _: store.add_text("same clip"), [(i,) for i in range(40)])
        assert len(set(ids)) == 1
        assert store.count() == 1

    def test_distinct_text_no_loss(self, store):
        """Concurrent distinct captures each get their own row."""
        texts = [f"clip number {i}" for i in range(60)]
        ids = _run_all(store.add_text, [(t,) for t in texts])
        assert len(set(ids)) == 60
        assert store.count() == 60

    def test_timestamps_unique_under_contention(self, store):
        """No two rows share a created_at even when writes race."""
        _run_all(store.add_text, [(f"t{i}",) for i in range(50)])
        stamps = [row[0] for row in store._conn.execute("SELECT created_at FROM records")]
        assert len(set(stamps)) == len(stamps)

    def test_identical_images_one_record(self, store, rgba):
        """Racing identical image captures write one original and one thumbnail."""
        pixels = rgba(16, 16, seed=9)
        results = _run_all(lambda _: store.add_image(16, 16, pixels), [(i,) for i in range(6)], workers=6)
        assert len({id for id, _ in results}) == 1
        assert len({thumb for _, thumb in results}) == 1
        assert store.count() == 1
        # One original and one thumbnail, no duplicates
        assert len([p for p in store.image_root.rglob("*") if p.is_file()]) == 2

    def test_mixed_reads_and_writes(self, store):
        """Readers running beside writers never see an error."""
        errors = []

        def writer(i):
            store.add_text(f"writer {i}")
            store.add_files([f"/tmp/file{i}"])

        def reader(_):
            try:
                items = store.list(20, 0)
                for item in items:
                    store.get_content(item.id)
                store.search("writer")
            except Exception as e:
                errors.append(e)

        with ThreadPoolExecutor(max_workers=8) as pool:
            futures = [pool.submit(writer, i) for i in range(20)]
            futures += [pool.submit(reader, i) for i in range(20)]
            for f in futures:
                f.result()

        assert errors == []
        assert store.count() == 40


class TestSharedDatabase:
    """Two stores on the same directory, as two processes would be."""

    def test_dedup_across_stores(self, data_dir):
        """Two connections racing on the same text agree on one row."""
        with RecordStore(data_dir) as a, RecordStore(data_dir) as b:
            barrier = threading.Barrier(2)

            def add(s):
                barrier.wait()
                return [s.add_text("shared") for _ in range(10)]

            with ThreadPoolExecutor(max_workers=2) as pool:
                ids_a, ids_b = pool.map(add, [a, b])

            assert set(ids_a) == set(ids_b)
            assert a.count() == 1
            assert b.count() == 1

    def test_writes_visible_to_other_store(self, data_dir):
        """A row written through one store is listed by the other."""
        with RecordStore(data_dir) as a, RecordStore(data_dir) as b:
            id = a.add_text("#abc")
            items = b.list(10, 0)
            assert [i.id for i in items] == [id]
            assert items[0].content_type is ContentVariant.COLOR


class TestLockTimeout:

    def test_lock_timeout_raises(self, data_dir):
        """Waiting longer than lock_timeout raises LockError."""
        with RecordStore(data_dir, lock_timeout=0.05) as s:
            s._lock.acquire()
            try:
                with pytest.raises(LockError):
                    s.count()
            finally:
                s._lock.release()
            assert s.count() == 0

    def test_closed_store_rejects_calls(self, data_dir):
        """Calls after close() raise instead of reopening."""
        s = RecordStore(data_dir)
        s.close()
        with pytest.raises(StorageInitError, match="closed"):
            s.add_text("late")
