import unittest

from server.spycheck.sources.pagination import FetchState, PageFetchMachine


def _machine(max_retries: int = 2) -> PageFetchMachine:
    return PageFetchMachine(max_retries=max_retries, backoff_base=0.5, backoff_cap=4.0)


class TestPageFetchMachine(unittest.TestCase):
    def test_pages_until_terminal(self) -> None:
        m = _machine()
        self.assertIs(m.page_received("c1"), FetchState.fetching)
        self.assertEqual(m.cursor, "c1")
        self.assertIs(m.page_received(None), FetchState.done)
        self.assertEqual(m.pages, 2)
        self.assertIsNone(m.cursor)

    def test_backoff_grows_and_is_capped(self) -> None:
        m = PageFetchMachine(max_retries=10, backoff_base=0.5, backoff_cap=4.0)
        delays = []
        for _ in range(6):
            self.assertIs(m.transient_failure("HTTP 503"), FetchState.backoff)
            delays.append(m.delay)
            m.resume()
        self.assertEqual(delays, [0.5, 1.0, 2.0, 4.0, 4.0, 4.0])

    def test_retry_after_overrides_backoff(self) -> None:
        m = _machine()
        m.transient_failure("HTTP 429", retry_after=7.0)
        self.assertEqual(m.delay, 7.0)

    def test_retry_after_is_capped(self) -> None:
        m = PageFetchMachine(max_retries=2, backoff_base=0.5, backoff_cap=4.0, retry_after_cap=60.0)
        m.transient_failure("HTTP 429", retry_after=1e12)
        self.assertEqual(m.delay, 60.0)
        m.resume()
        m.transient_failure("HTTP 429", retry_after=float("inf"))
        self.assertEqual(m.delay, 60.0)

    def test_fails_after_retry_ceiling(self) -> None:
        m = _machine(max_retries=2)
        m.transient_failure("boom")
        m.resume()
        m.transient_failure("boom")
        m.resume()
        self.assertIs(m.transient_failure("boom"), FetchState.failed)
        self.assertEqual(m.failures, 3)
        self.assertEqual(m.failure_reason, "boom")

    def test_success_resets_retry_counter(self) -> None:
        m = _machine(max_retries=1)
        m.transient_failure("boom")
        m.resume()
        m.page_received("next")
        self.assertEqual(m.failures, 0)
        self.assertIs(m.transient_failure("boom"), FetchState.backoff)

    def test_zero_retries_fails_immediately(self) -> None:
        m = _machine(max_retries=0)
        self.assertIs(m.transient_failure("boom"), FetchState.failed)

    def test_fatal_failure_is_terminal(self) -> None:
        m = _machine()
        self.assertIs(m.fatal_failure("HTTP 404"), FetchState.failed)
        with self.assertRaises(RuntimeError):
            m.page_received(None)

    def test_resume_requires_backoff(self) -> None:
        with self.assertRaises(RuntimeError):
            _machine().resume()

    def test_tracks_seen_cursors(self) -> None:
        m = _machine()
        m.page_received("abc")
        self.assertTrue(m.has_seen("abc"))
        self.assertFalse(m.has_seen("def"))


if __name__ == "__main__":
    unittest.main()
