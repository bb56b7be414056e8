import unittest

from lib.extraction.models import ReadinessOutcome
from lib.extraction.readiness import ContentReadinessWaiter, content_ready_predicate

from tests.fakes import FakeClock, FakeDriver, FakeElement


def _waiter(clock: FakeClock, timeout_ms=1000) -> ContentReadinessWaiter:
    return ContentReadinessWaiter(
        timeout_ms=timeout_ms,
        poll_interval_ms=250,
        poll_ceiling_ms=2000,
        clock=clock,
        sleep=clock.sleep,
    )


class WaiterTests(unittest.TestCase):
    def test_ready_on_first_true_poll(self):
        clock = FakeClock()
        calls = {"n": 0}

        def predicate():
            calls["n"] += 1
            return calls["n"] >= 3

        outcome = _waiter(clock).wait_for("https://example/playlist", predicate)
        self.assertEqual(outcome, ReadinessOutcome.READY)
        self.assertEqual(clock.sleeps, [0.25, 0.5])

    def test_never_true_predicate_times_out_at_deadline(self):
        clock = FakeClock()
        with self.assertLogs("lib.extraction.readiness", level="WARNING"):
            outcome = _waiter(clock).wait_for("https://example/playlist", lambda: False)
        self.assertEqual(outcome, ReadinessOutcome.TIMED_OUT)
        # 0.25 + 0.5, then the last sleep is clipped to the remaining 0.25
        self.assertEqual(clock.sleeps, [0.25, 0.5, 0.25])
        self.assertAlmostEqual(clock.now, 1.0)

    def test_interval_is_capped_at_ceiling(self):
        clock = FakeClock()
        _waiter(clock, timeout_ms=10000).wait_for("x", lambda: False)
        self.assertLessEqual(max(clock.sleeps), 2.0)
        self.assertIn(2.0, clock.sleeps)
        self.assertAlmostEqual(sum(clock.sleeps), 10.0)

    def test_zero_timeout_polls_once(self):
        clock = FakeClock()
        outcome = _waiter(clock, timeout_ms=0).wait_for("x", lambda: True)
        self.assertEqual(outcome, ReadinessOutcome.READY)
        self.assertEqual(clock.sleeps, [])


class PredicateTests(unittest.TestCase):
    def test_rows_make_page_ready(self):
        driver = FakeDriver({"music-image-row": [FakeElement()]})
        self.assertTrue(content_ready_predicate(driver, ["music-image-row"], [".empty-state"])())

    def test_empty_state_counts_as_ready(self):
        driver = FakeDriver({".empty-state": [FakeElement(text="This playlist is empty")]})
        self.assertTrue(content_ready_predicate(driver, ["music-image-row"], [".empty-state"])())

    def test_nothing_rendered_is_not_ready(self):
        self.assertFalse(content_ready_predicate(FakeDriver(), ["music-image-row"], [".empty-state"])())

    def test_driver_errors_count_as_not_ready(self):
        class Exploding(FakeDriver):
            def query_all(self, selector):
                raise RuntimeError("Execution context was destroyed")

        self.assertFalse(content_ready_predicate(Exploding(), ["music-image-row"], [".empty-state"])())


if __name__ == "__main__":
    unittest.main()
