import threading
import time
import unittest
from unittest.mock import MagicMock, patch

from redis import exceptions as redis_exceptions

from pbsnet.errors import Conflict, UpstreamFailure
from pbsnet.locks import InMemoryUserLocks, RedisUserLocks


class InMemoryUserLocksTests(unittest.TestCase):
    def test_busy_key_times_out_with_conflict(self):
        locks = InMemoryUserLocks(timeout=0.05)
        with locks.hold("profile:u1"):
            with self.assertRaises(Conflict):
                with locks.hold("profile:u1"):
                    pass

    def test_distinct_keys_do_not_block(self):
        locks = InMemoryUserLocks(timeout=0.05)
        with locks.hold("profile:u1"):
            with locks.hold("profile:u2"):
                pass

    def test_lock_released_after_error(self):
        locks = InMemoryUserLocks(timeout=0.05)
        with self.assertRaises(RuntimeError):
            with locks.hold("k"):
                raise RuntimeError("boom")
        with locks.hold("k"):
            pass

    def test_updates_are_serialized(self):
        locks = InMemoryUserLocks(timeout=5)
        state = {"value": 0}

        def bump():
            for _ in range(50):
                with locks.hold("counter"):
                    current = state["value"]
                    time.sleep(0)
                    state["value"] = current + 1

        threads = [threading.Thread(target=bump) for _ in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        self.assertEqual(state["value"], 200)
        self.assertEqual(locks._locks, {})

    def test_registry_drops_released_keys(self):
        locks = InMemoryUserLocks(timeout=0.05)
        for i in range(1000):
            with locks.hold(f"username:name_{i:04d}"):
                self.assertIn(f"username:name_{i:04d}", locks._locks)
        self.assertEqual(locks._locks, {})

    def test_registry_drops_key_after_timeout(self):
        locks = InMemoryUserLocks(timeout=0.05)
        with locks.hold("profile:u1"):
            with self.assertRaises(Conflict):
                with locks.hold("profile:u1"):
                    pass
            self.assertEqual(locks._locks["profile:u1"].users, 1)
        self.assertEqual(locks._locks, {})

    def test_waiter_keeps_entry_alive(self):
        locks = InMemoryUserLocks(timeout=5)
        holding = threading.Event()
        release = threading.Event()
        seen = []

        def first():
            with locks.hold("k"):
                holding.set()
                release.wait(5)

        def second():
            with locks.hold("k"):
                seen.append("second")

        t1 = threading.Thread(target=first)
        t1.start()
        holding.wait(5)
        t2 = threading.Thread(target=second)
        t2.start()
        while locks._locks["k"].users < 2:
            time.sleep(0.001)
        release.set()
        t1.join()
        t2.join()
        self.assertEqual(seen, ["second"])
        self.assertEqual(locks._locks, {})


class RedisUserLocksTests(unittest.TestCase):
    def setUp(self):
        patcher = patch("pbsnet.locks.redis.Redis.from_url")
        self.from_url = patcher.start()
        self.addCleanup(patcher.stop)
        self.redis = self.from_url.return_value
        self.lock = MagicMock()
        self.redis.lock.return_value = self.lock
        self.locks = RedisUserLocks(url="redis://localhost:6379/0", timeout=2)

    def test_hold_acquires_and_releases(self):
        self.lock.acquire.return_value = True
        with self.locks.hold("profile:u1"):
            self.lock.release.assert_not_called()
        self.lock.release.assert_called_once()
        self.redis.lock.assert_called_once_with(
            "pbsnet:lock:profile:u1", timeout=6, blocking_timeout=2
        )

    def test_busy_lock_is_conflict(self):
        self.lock.acquire.return_value = False
        with self.assertRaises(Conflict):
            with self.locks.hold("profile:u1"):
                self.fail("body must not run")
        self.lock.release.assert_not_called()

    def test_connection_error_is_upstream_failure(self):
        self.lock.acquire.side_effect = redis_exceptions.ConnectionError()
        with self.assertRaises(UpstreamFailure):
            with self.locks.hold("profile:u1"):
                pass

    def test_redis_timeout_is_upstream_failure(self):
        self.lock.acquire.side_effect = redis_exceptions.TimeoutError()
        with self.assertRaises(UpstreamFailure):
            with self.locks.hold("profile:u1"):
                pass

    def test_expired_lock_on_release_is_logged(self):
        self.lock.acquire.return_value = True
        self.lock.release.side_effect = redis_exceptions.LockError()
        with self.assertLogs("pbsnet.locks", level="WARNING"):
            with self.locks.hold("profile:u1"):
                pass


if __name__ == "__main__":
    unittest.main()
