# Overview: Pytest coverage for keyed locks, conflict mapping, and the compensation log.

import threading

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm.exc import StaleDataError

from shopledger.errors import ConcurrencyConflict, StorageError
from shopledger.services.compensation import CompensationLog
from shopledger.services.concurrency import KeyedLocks, storage_errors


class TestKeyedLocks:
    def test_same_key_is_exclusive(self):
        locks = KeyedLocks()
        entered = threading.Event()
        release = threading.Event()

        def holder():
            with locks.hold("bill", 1):
                entered.set()
                release.wait(2)

        t = threading.Thread(target=holder)
        t.start()
        try:
            assert entered.wait(2)
            with pytest.raises(ConcurrencyConflict) as exc:
                with locks.hold("bill", 1, timeout=0.05):
                    pass
            assert exc.value.details["key"] == 1
        finally:
            release.set()
            t.join()

        with locks.hold("bill", 1, timeout=0.05):
            pass

    def test_different_keys_do_not_block(self):
        locks = KeyedLocks()
        with locks.hold("bill", 1):
            with locks.hold("bill", 2, timeout=0.05):
                pass
            with locks.hold("product", 1, timeout=0.05):
                pass

    def test_entries_dropped_once_released(self):
        locks = KeyedLocks()
        for bill_id in range(50):
            with locks.hold("bill", bill_id):
                assert locks.active_count() == 1
        assert locks.active_count() == 0

    def test_timed_out_waiter_does_not_leak(self):
        locks = KeyedLocks()
        with locks.hold("bill", 1):
            with pytest.raises(ConcurrencyConflict):
                with locks.hold("bill", 1, timeout=0.01):
                    pass
            assert locks.active_count() == 1
        assert locks.active_count() == 0

    def test_released_on_error(self):
        locks = KeyedLocks()
        with pytest.raises(RuntimeError):
            with locks.hold("bill", 7):
                raise RuntimeError("boom")
        with locks.hold("bill", 7, timeout=0.05):
            pass

    def test_serializes_critical_section(self):
        locks = KeyedLocks()
        counter = {"value": 0}

        def bump():
            for _ in range(200):
                with locks.hold("counter", "n"):
                    current = counter["value"]
                    counter["value"] = current + 1

        threads = [threading.Thread(target=bump) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert counter["value"] == 800


class TestStorageErrors:
    def test_operational_error_is_conflict(self):
        with pytest.raises(ConcurrencyConflict):
            with storage_errors():
                raise OperationalError("UPDATE", {}, Exception("database is locked"))

    def test_stale_data_is_conflict(self):
        with pytest.raises(ConcurrencyConflict):
            with storage_errors():
                raise StaleDataError("version mismatch")

    def test_other_database_errors_are_storage_errors(self):
        with pytest.raises(StorageError) as exc:
            with storage_errors():
                raise IntegrityError("INSERT", {}, Exception("UNIQUE constraint failed"))
        assert exc.value.status_code == 500

    def test_domain_errors_pass_through(self):
        with pytest.raises(ConcurrencyConflict, match="retry later"):
            with storage_errors():
                raise ConcurrencyConflict("retry later")


class TestCompensationLog:
    def test_unwinds_in_reverse(self):
        calls = []
        log = CompensationLog()
        log.run("one", do=lambda: calls.append("do 1"), undo=lambda: calls.append("undo 1"))
        log.run("two", do=lambda: calls.append("do 2"), undo=lambda: calls.append("undo 2"))

        assert log.unwind() == ["two", "one"]
        assert calls == ["do 1", "do 2", "undo 2", "undo 1"]
        assert log.steps == []

    def test_failed_step_is_not_recorded(self):
        log = CompensationLog()

        def fail():
            raise ValueError("nope")

        with pytest.raises(ValueError):
            log.run("bad", do=fail, undo=lambda: None)
        assert log.unwind() == []

    def test_returns_do_result(self):
        log = CompensationLog()
        assert log.run("x", do=lambda: 42, undo=lambda: None) == 42

    def test_failing_undo_does_not_stop_the_rest(self):
        calls = []
        log = CompensationLog()

        def broken():
            raise RuntimeError("undo failed")

        log.run("first", do=lambda: None, undo=lambda: calls.append("first"))
        log.run("second", do=lambda: None, undo=broken)
        log.run("third", do=lambda: None, undo=lambda: calls.append("third"))

        with pytest.raises(RuntimeError, match="undo failed"):
            log.unwind()
        assert calls == ["third", "first"]

    def test_discard(self):
        log = CompensationLog()
        log.run("x", do=lambda: None, undo=lambda: pytest.fail("must not run"))
        log.discard()
        assert log.unwind() == []
