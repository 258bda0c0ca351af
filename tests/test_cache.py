import threading
import unittest

from decision_ledger.cache import CountCache, total_key


class _Clock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


class CountCacheTests(unittest.TestCase):
    def setUp(self):
        self.clock = _Clock()
        self.cache = CountCache(ttl_seconds=10, clock=self.clock)
        self.key = total_key("payment_decision")

    def test_fresh_entries_skip_loader(self):
        calls = []

        def loader():
            calls.append(1)
            return 5

        self.assertEqual(self.cache.get(self.key, loader), 5)
        self.clock.now = 9.9
        self.assertEqual(self.cache.get(self.key, loader), 5)
        self.assertEqual(len(calls), 1)

        self.clock.now = 10.0
        self.cache.get(self.key, loader)
        self.assertEqual(len(calls), 2)
        self.assertEqual(self.cache.peek(self.key).fetched_at, 10.0)

    def test_count_never_decreases(self):
        self.cache.get(self.key, lambda: 7)
        self.clock.now = 20
        self.assertEqual(self.cache.get(self.key, lambda: 6), 7)

    def test_note_included_bumps_existing_entry_only(self):
        self.cache.note_included(self.key)
        self.assertIsNone(self.cache.peek(self.key))

        self.cache.get(self.key, lambda: 3)
        self.cache.note_included(self.key, 2)
        self.assertEqual(self.cache.get(self.key, lambda: 0), 5)

    def test_invalidate_forces_refresh(self):
        self.cache.get(self.key, lambda: 3)
        self.cache.invalidate(self.key)
        self.assertEqual(self.cache.get(self.key, lambda: 4), 4)
        self.cache.invalidate()
        self.assertIsNone(self.cache.peek(self.key))

    def test_loader_errors_propagate_and_do_not_poison(self):
        def failing():
            raise RuntimeError("ledger down")

        with self.assertRaises(RuntimeError):
            self.cache.get(self.key, failing)
        self.assertEqual(self.cache.get(self.key, lambda: 2), 2)

    def test_concurrent_callers_share_one_refresh(self):
        started = threading.Event()
        release = threading.Event()
        calls = []

        def slow_loader():
            calls.append(1)
            started.set()
            release.wait(5)
            return 11

        results = []
        errors = []

        def reader():
            try:
                results.append(self.cache.get(self.key, slow_loader))
            except Exception as exc:  # pragma: no cover - surfaced by assertion below
                errors.append(exc)

        leader = threading.Thread(target=reader)
        leader.start()
        self.assertTrue(started.wait(5))

        followers = [threading.Thread(target=reader) for _ in range(4)]
        for t in followers:
            t.start()
        release.set()
        for t in [leader, *followers]:
            t.join(5)

        self.assertEqual(errors, [])
        self.assertEqual(results, [11] * 5)
        self.assertEqual(len(calls), 1)


if __name__ == "__main__":
    unittest.main()
