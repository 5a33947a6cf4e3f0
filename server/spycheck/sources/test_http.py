import datetime as dt
import unittest

from server.spycheck.sources.http import backoff_delay, is_transient_status, retry_after_seconds


class _StubResponse:
    def __init__(self, *, headers: dict | None = None, payload: object = None, json_ok: bool = True) -> None:
        self.headers = headers or {}
        self._payload = payload
        self._json_ok = json_ok

    def json(self):  # type: ignore[no-untyped-def]
        if not self._json_ok:
            raise ValueError("not JSON")
        return self._payload


class TestRetryAfter(unittest.TestCase):
    def test_header_seconds(self) -> None:
        self.assertEqual(retry_after_seconds(_StubResponse(headers={"Retry-After": " 12 "})), 12.0)  # type: ignore[arg-type]

    def test_header_http_date(self) -> None:
        now = dt.datetime(2024, 5, 1, 12, 0, 0, tzinfo=dt.timezone.utc)
        resp = _StubResponse(headers={"Retry-After": "Wed, 01 May 2024 12:00:30 GMT"})
        self.assertEqual(retry_after_seconds(resp, now=now), 30.0)  # type: ignore[arg-type]

    def test_past_date_clamps_to_zero(self) -> None:
        now = dt.datetime(2024, 5, 1, 12, 0, 0, tzinfo=dt.timezone.utc)
        resp = _StubResponse(headers={"Retry-After": "Wed, 01 May 2024 11:00:00 GMT"})
        self.assertEqual(retry_after_seconds(resp, now=now), 0.0)  # type: ignore[arg-type]

    def test_json_body_field(self) -> None:
        resp = _StubResponse(payload={"message": "You are being rate limited.", "retry_after": 1.5})
        self.assertEqual(retry_after_seconds(resp), 1.5)  # type: ignore[arg-type]

    def test_absent_or_unparseable(self) -> None:
        self.assertIsNone(retry_after_seconds(_StubResponse(json_ok=False)))  # type: ignore[arg-type]
        self.assertIsNone(retry_after_seconds(_StubResponse(payload={"retry_after": "soon"})))  # type: ignore[arg-type]
        self.assertIsNone(
            retry_after_seconds(_StubResponse(headers={"Retry-After": "whenever"}, json_ok=False))  # type: ignore[arg-type]
        )


class TestStatusAndBackoff(unittest.TestCase):
    def test_transient_statuses(self) -> None:
        for code in (408, 429, 500, 502, 503, 504):
            self.assertTrue(is_transient_status(code), code)
        for code in (200, 400, 401, 403, 404):
            self.assertFalse(is_transient_status(code), code)

    def test_backoff_delay(self) -> None:
        self.assertEqual([backoff_delay(n, base=1.0, cap=5.0) for n in range(4)], [1.0, 2.0, 4.0, 5.0])


if __name__ == "__main__":
    unittest.main()
