from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from server.spycheck.sources.http import backoff_delay


class FetchState(str, Enum):
    fetching = "fetching"
    backoff = "backoff"
    done = "done"
    failed = "failed"


@dataclass
class PageFetchMachine:
    """Retry and continuation bookkeeping for a paginated fetch.

    The client issues a request whenever the machine is ``fetching`` and feeds
    back one of three outcomes: a page (with or without a continuation cursor),
    a transient failure, or a fatal failure. ``backoff`` carries the delay to
    wait before calling :meth:`resume`. ``done`` and ``failed`` are terminal.

    Retries are counted per page: a successful page resets the counter, and the
    page fails once ``max_retries`` retries have been used up.
    A server-requested ``retry_after`` replaces the backoff delay but is held to
    ``retry_after_cap``.
    """

    max_retries: int
    backoff_base: float
    backoff_cap: float
    retry_after_cap: float = 300.0

    state: FetchState = FetchState.fetching
    cursor: str | None = None
    pages: int = 0
    failures: int = 0
    delay: float = 0.0
    failure_reason: str | None = None
    _seen_cursors: set[str] = field(default_factory=set, init=False, repr=False)

    def _require(self, *states: FetchState) -> None:
        if self.state not in states:
            allowed = ", ".join(s.value for s in states)
            raise RuntimeError(f"Invalid fetch transition from {self.state.value!r} (expected {allowed}).")

    def has_seen(self, cursor: str) -> bool:
        return cursor in self._seen_cursors

    def page_received(self, next_cursor: str | None) -> FetchState:
        self._require(FetchState.fetching)
        self.pages += 1
        self.failures = 0
        self.delay = 0.0
        if next_cursor is None:
            self.cursor = None
            self.state = FetchState.done
        else:
            self._seen_cursors.add(next_cursor)
            self.cursor = next_cursor
        return self.state

    def transient_failure(self, reason: str, *, retry_after: float | None = None) -> FetchState:
        self._require(FetchState.fetching)
        self.failures += 1
        if self.failures > self.max_retries:
            self.failure_reason = reason
            self.state = FetchState.failed
            return self.state
        if retry_after is not None:
            self.delay = min(max(0.0, float(retry_after)), self.retry_after_cap)
        else:
            self.delay = backoff_delay(self.failures - 1, base=self.backoff_base, cap=self.backoff_cap)
        self.failure_reason = reason
        self.state = FetchState.backoff
        return self.state

    def fatal_failure(self, reason: str) -> FetchState:
        self._require(FetchState.fetching)
        self.failures += 1
        self.failure_reason = reason
        self.state = FetchState.failed
        return self.state

    def resume(self) -> FetchState:
        self._require(FetchState.backoff)
        self.delay = 0.0
        self.state = FetchState.fetching
        return self.state
