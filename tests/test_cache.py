import unittest

from sweeps.draws.cache import TTLCache


class FakeClock:
    def __init__(self):
        self.now = 100.0

    def __call__(self):
        return self.now


class TestTTLCache(unittest.TestCase):
    def setUp(self):
        self.clock = FakeClock()

    def test_entries_expire(self):
        cache = TTLCache(10, clock=self.clock)
        cache.set("a", 1)
        self.clock.now += 9.9
        self.assertEqual(cache.get("a"), 1)
        self.clock.now += 0.1
        self.assertIsNone(cache.get("a"))
        self.assertEqual(len(cache), 0)

    def test_least_recently_used_is_evicted(self):
        cache = TTLCache(10, max_entries=2, clock=self.clock)
        cache.set("a", 1)
        cache.set("b", 2)
        cache.get("a")
        cache.set("c", 3)
        self.assertEqual(cache.get("a"), 1)
        self.assertIsNone(cache.get("b"))
        self.assertEqual(cache.get("c"), 3)

    def test_zero_ttl_disables_caching(self):
        cache = TTLCache(0, clock=self.clock)
        cache.set("a", 1)
        self.assertIsNone(cache.get("a"))

    def test_invalidate_and_clear(self):
        cache = TTLCache(10, clock=self.clock)
        cache.set("a", 1)
        cache.set("b", 2)
        cache.invalidate("a")
        cache.invalidate("missing")
        self.assertIsNone(cache.get("a"))
        cache.clear()
        self.assertEqual(len(cache), 0)

    def test_invalid_arguments(self):
        with self.assertRaises(ValueError):
            TTLCache(-1)
        with self.assertRaises(ValueError):
            TTLCache(1, max_entries=0)


if __name__ == "__main__":
    unittest.main()
