import threading
import time
import unittest

from sqlalchemy.exc import OperationalError

from courier.services.concurrency import KeyedLocks, run_with_retry


class KeyedLocksTests(unittest.TestCase):
    def setUp(self):
        self.locks = KeyedLocks()

    def test_same_key_is_exclusive(self):
        events = []

        def worker(name):
            with self.locks.hold("alice"):
                events.append(f"{name}-in")
                time.sleep(0.02)
                events.append(f"{name}-out")

        threads = [threading.Thread(target=worker, args=(n,)) for n in ("a", "b")]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        # Critical sections never interleave
        self.assertEqual(events[0][0], events[1][0])
        self.assertEqual(events[2][0], events[3][0])

    def test_opposite_pairs_do_not_deadlock(self):
        done = []

        def transfer(a, b):
            for _ in range(50):
                with self.locks.hold(a, b):
                    pass
            done.append((a, b))

        t1 = threading.Thread(target=transfer, args=("alice", "bob"))
        t2 = threading.Thread(target=transfer, args=("bob", "alice"))
        t1.start()
        t2.start()
        t1.join(timeout=5)
        t2.join(timeout=5)
        self.assertEqual(len(done), 2)

    def test_reentrant_and_deduplicated(self):
        with self.locks.hold("alice", "alice"):
            with self.locks.hold("alice"):
                self.assertEqual(len(self.locks), 1)
        self.assertEqual(len(self.locks), 0)

    def test_released_after_exception(self):
        with self.assertRaises(RuntimeError):
            with self.locks.hold(1, 2):
                raise RuntimeError("boom")
        self.assertEqual(len(self.locks), 0)

        acquired = []

        def worker():
            with self.locks.hold(1, 2):
                acquired.append(True)

        t = threading.Thread(target=worker)
        t.start()
        t.join(timeout=1)
        self.assertEqual(acquired, [True])

    def test_entries_dropped_when_unused(self):
        for item_id in range(1000):
            with self.locks.hold(item_id):
                pass
        self.assertEqual(len(self.locks), 0)

    def test_waiter_keeps_entry_alive(self):
        entered = threading.Event()
        release = threading.Event()
        order = []

        def holder():
            with self.locks.hold("alice"):
                entered.set()
                release.wait(timeout=1)
                order.append("holder")

        def waiter():
            entered.wait(timeout=1)
            with self.locks.hold("alice"):
                order.append("waiter")

        threads = [threading.Thread(target=holder), threading.Thread(target=waiter)]
        for t in threads:
            t.start()
        entered.wait(timeout=1)
        time.sleep(0.02)
        release.set()
        for t in threads:
            t.join(timeout=2)

        self.assertEqual(order, ["holder", "waiter"])
        self.assertEqual(len(self.locks), 0)


def test_run_with_retry_retries_operational_errors(app, db_session):
    calls = []

    def flaky():
        calls.append(1)
        if len(calls) < 3:
            raise OperationalError("UPDATE users", {}, Exception("database is locked"))
        return "ok"

    assert run_with_retry(flaky, backoff_base=0) == "ok"
    assert len(calls) == 3
