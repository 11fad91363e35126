import threading
import time
import unittest

from capture.config import CaptureConfig
from capture.errors import CapacityExceeded
from capture.governor import ConcurrencyGovernor


def wait_until(predicate, timeout=5.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.005)
    return False


class TestConcurrencyGovernor(unittest.TestCase):
    def test_admits_up_to_limit(self):
        governor = ConcurrencyGovernor(max_concurrency=2)
        governor.acquire()
        governor.acquire()
        self.assertEqual(governor.active, 2)
        governor.release()
        governor.release()
        self.assertEqual(governor.active, 0)

    def test_rejects_immediately_when_queue_full(self):
        governor = ConcurrencyGovernor(max_concurrency=1, max_queue=0, queue_timeout=5)
        governor.acquire()
        start = time.monotonic()
        with self.assertRaises(CapacityExceeded):
            governor.acquire()
        self.assertLess(time.monotonic() - start, 1.0)
        self.assertEqual(governor.queued, 0)

    def test_queue_timeout(self):
        governor = ConcurrencyGovernor(max_concurrency=1, max_queue=1, queue_timeout=0.05)
        governor.acquire()
        with self.assertRaises(CapacityExceeded):
            governor.acquire()
        # Timed-out waiter leaves the queue
        self.assertEqual(governor.queued, 0)
        self.assertEqual(governor.active, 1)

    def test_queued_waiter_is_served_after_release(self):
        governor = ConcurrencyGovernor(max_concurrency=1, max_queue=1, queue_timeout=5)
        governor.acquire()
        admitted = threading.Event()

        def waiter():
            with governor.admit():
                admitted.set()

        t = threading.Thread(target=waiter)
        t.start()
        self.assertTrue(wait_until(lambda: governor.queued == 1))
        self.assertFalse(admitted.is_set())
        governor.release()
        t.join(5)
        self.assertTrue(admitted.is_set())
        self.assertEqual(governor.active, 0)

    def test_fifo_order(self):
        governor = ConcurrencyGovernor(max_concurrency=1, max_queue=3, queue_timeout=5)
        governor.acquire()
        order = []
        threads = []
        for i in range(3):
            def waiter(n=i):
                with governor.admit():
                    order.append(n)
            t = threading.Thread(target=waiter)
            t.start()
            threads.append(t)
            # Make sure each waiter is queued before the next arrives
            self.assertTrue(wait_until(lambda expected=i + 1: governor.queued == expected))
        governor.release()
        for t in threads:
            t.join(5)
        self.assertEqual(order, [0, 1, 2])

    def test_newcomer_does_not_jump_queue(self):
        governor = ConcurrencyGovernor(max_concurrency=1, max_queue=1, queue_timeout=5)
        governor.acquire()
        t = threading.Thread(target=governor.acquire)
        t.start()
        self.assertTrue(wait_until(lambda: governor.queued == 1))
        # Queue is full, so a newcomer is refused even though a slot is about to free
        with self.assertRaises(CapacityExceeded):
            governor.acquire()
        governor.release()
        t.join(5)
        self.assertEqual(governor.active, 1)

    def test_release_without_acquire(self):
        governor = ConcurrencyGovernor(max_concurrency=1)
        with self.assertRaises(RuntimeError):
            governor.release()

    def test_admit_releases_on_error(self):
        governor = ConcurrencyGovernor(max_concurrency=1)
        with self.assertRaises(ValueError):
            with governor.admit():
                raise ValueError("boom")
        self.assertEqual(governor.active, 0)

    def test_from_config(self):
        config = CaptureConfig(max_concurrency=3, max_queue=7, queue_timeout=2.5)
        governor = ConcurrencyGovernor.from_config(config)
        self.assertEqual(governor.max_concurrency, 3)

    def test_invalid_bounds(self):
        with self.assertRaises(ValueError):
            ConcurrencyGovernor(max_concurrency=0)
        with self.assertRaises(ValueError):
            ConcurrencyGovernor(max_concurrency=1, max_queue=-1)


if __name__ == "__main__":
    unittest.main()
