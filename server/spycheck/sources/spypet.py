from __future__ import annotations

import logging
import threading
from collections.abc import Iterable
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field

import requests

from server.spycheck.config import Settings
from server.spycheck.errors import Cancelled, ProtocolError, RemoteUnavailable
from server.spycheck.membership.normalize import normalize_community_id
from server.spycheck.sources.http import is_transient_status, retry_after_seconds
from server.spycheck.sources.pagination import FetchState, PageFetchMachine

logger = logging.getLogger(__name__)

_ID_LIST_KEYS = ("ids", "servers", "items", "data")
_CURSOR_KEYS = ("next_cursor", "next", "cursor")


@dataclass(frozen=True)
class RemoteDatasetConfig:
    endpoint_url: str
    lookup_url: str = "https://api.spy.pet/servers/{id}"
    page_size: int = 1000
    max_retries: int = 5
    backoff_base: float = 0.5
    backoff_cap: float = 30.0
    retry_after_cap: float = 300.0
    timeout_seconds: float = 20.0
    token: str = ""
    user_agent: str = "spycheck/0.1"
    concurrency: int = 1

    @classmethod
    def from_settings(cls, settings: Settings) -> "RemoteDatasetConfig":
        return cls(
            endpoint_url=settings.endpoint_url,
            lookup_url=settings.lookup_url,
            page_size=settings.page_size,
            max_retries=settings.max_retries,
            backoff_base=settings.backoff_base,
            backoff_cap=settings.backoff_cap,
            retry_after_cap=settings.retry_after_cap,
            timeout_seconds=settings.api_timeout_seconds,
            token=settings.api_token,
            user_agent=settings.user_agent,
            concurrency=settings.concurrency,
        )


@dataclass(frozen=True)
class RemoteIndex:
    ids: frozenset[int]
    pages: int = 0
    # Raw API payloads per listed server (lookup mode only).
    details: dict[int, object] = field(default_factory=dict)
    # Every lookup answer, `false` included (lookup mode only).
    responses: dict[int, object] = field(default_factory=dict)


@dataclass(frozen=True)
class _Attempt:
    ok: bool
    payload: object = None
    transient: bool = False
    reason: str = ""
    retry_after: float | None = None


@dataclass
class SpyPetClient:
    """Client for the spy.pet server dataset.

    ``fetch_index`` walks the paginated server list; ``lookup`` asks about each
    server individually. Both retry transient failures (network errors, 408,
    429, 5xx) per request with exponential backoff, honouring ``Retry-After``,
    and either return a complete RemoteIndex or raise.

    Setting ``cancel`` stops the client at the next request or during a backoff
    wait; it then raises Cancelled.
    """

    config: RemoteDatasetConfig
    session: requests.Session | None = None
    cancel: threading.Event = field(default_factory=threading.Event)

    _session_local: threading.local = field(default_factory=threading.local, init=False, repr=False)

    def _client(self) -> requests.Session:
        if self.session is not None:
            return self.session
        session = getattr(self._session_local, "session", None)
        if session is None:
            session = requests.Session()
            self._session_local.session = session
        return session

    def _headers(self) -> dict[str, str]:
        headers: dict[str, str] = {"Accept": "application/json", "User-Agent": self.config.user_agent}
        if self.config.token:
            headers["Authorization"] = f"Bearer {self.config.token}"
        return headers

    def _new_machine(self) -> PageFetchMachine:
        return PageFetchMachine(
            max_retries=self.config.max_retries,
            backoff_base=self.config.backoff_base,
            backoff_cap=self.config.backoff_cap,
            retry_after_cap=self.config.retry_after_cap,
        )

    def _check_cancel(self) -> None:
        if self.cancel.is_set():
            raise Cancelled()

    def _wait(self, delay: float) -> None:
        if self.cancel.wait(delay):
            raise Cancelled()

    def fetch_index(self) -> RemoteIndex:
        url = self.config.endpoint_url
        machine = self._new_machine()
        collected: set[int] = set()

        while machine.state is not FetchState.done:
            params: dict[str, object] = {"limit": self.config.page_size}
            if machine.cursor:
                params["cursor"] = machine.cursor
            payload = self._get_with_retry(machine, url, params=params)
            ids, next_cursor = parse_index_page(url, payload)
            if next_cursor is not None and machine.has_seen(next_cursor):
                raise ProtocolError(url, f"continuation cursor {next_cursor!r} repeated")
            collected.update(ids)
            machine.page_received(next_cursor)
            logger.info("Fetched page %s from %s (%s ids, %s total)", machine.pages, url, len(ids), len(collected))

        return RemoteIndex(ids=frozenset(collected), pages=machine.pages)

    def lookup(self, community_ids: Iterable[int]) -> RemoteIndex:
        ids = sorted(set(community_ids))
        responses: dict[int, object] = {}
        if not ids:
            return RemoteIndex(ids=frozenset())

        workers = max(1, min(self.config.concurrency, len(ids)))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="spycheck-lookup") as pool:
            futures = {pool.submit(self._lookup_one, cid): cid for cid in ids}
            try:
                for future in as_completed(futures):
                    cid = futures[future]
                    responses[cid] = future.result()
                    logger.info("Server %s %s", cid, "not found" if responses[cid] is False else "found")
            except KeyboardInterrupt:
                self._abort(futures)
                raise Cancelled() from None
            except BaseException:
                self._abort(futures)
                raise

        listed = {cid: payload for cid, payload in responses.items() if payload is not False}
        return RemoteIndex(
            ids=frozenset(listed),
            details=listed,
            responses={cid: responses[cid] for cid in ids},
        )

    def _abort(self, futures: Iterable[Future]) -> None:
        # Queued lookups never start; running ones stop at their next request or backoff.
        self.cancel.set()
        for future in futures:
            future.cancel()

    def _lookup_one(self, community_id: int) -> object:
        url = self.config.lookup_url.format(id=community_id)
        logger.debug("Requesting %s", url)
        machine = self._new_machine()
        payload = self._get_with_retry(machine, url)
        machine.page_received(None)
        return payload

    def _get_with_retry(self, machine: PageFetchMachine, url: str, *, params: dict | None = None) -> object:
        while True:
            self._check_cancel()
            attempt = self._attempt(url, params=params)
            if attempt.ok:
                return attempt.payload

            if attempt.transient:
                state = machine.transient_failure(attempt.reason, retry_after=attempt.retry_after)
            else:
                state = machine.fatal_failure(attempt.reason)
            if state is FetchState.failed:
                raise RemoteUnavailable(url, machine.failure_reason or attempt.reason, attempts=machine.failures)

            logger.warning(
                "Request to %s failed (%s); retrying in %.1fs (retry %s/%s)",
                url,
                attempt.reason,
                machine.delay,
                machine.failures,
                machine.max_retries,
            )
            self._wait(machine.delay)
            machine.resume()

    def _attempt(self, url: str, *, params: dict | None = None) -> _Attempt:
        try:
            resp = self._client().get(
                url,
                params=params,
                headers=self._headers(),
                timeout=self.config.timeout_seconds,
            )
        except requests.RequestException as e:
            return _Attempt(ok=False, transient=True, reason=f"{type(e).__name__}: {e}")

        if is_transient_status(resp.status_code):
            return _Attempt(
                ok=False,
                transient=True,
                reason=f"HTTP {resp.status_code}",
                retry_after=retry_after_seconds(resp),
            )
        if resp.status_code >= 400:
            return _Attempt(ok=False, transient=False, reason=f"HTTP {resp.status_code}")

        try:
            payload = resp.json()
        except ValueError as e:
            raise ProtocolError(url, "response body is not JSON") from e
        return _Attempt(ok=True, payload=payload)


def parse_index_page(url: str, payload: object) -> tuple[list[int], str | None]:
    """Split one list page into its server ids and the next cursor (None when last)."""
    if isinstance(payload, list):
        return _parse_ids(url, payload), None
    if not isinstance(payload, dict):
        raise ProtocolError(url, f"expected a JSON object or array, got {type(payload).__name__}")

    items = next((payload[key] for key in _ID_LIST_KEYS if isinstance(payload.get(key), list)), None)
    if items is None:
        raise ProtocolError(url, f"page has no id list (expected one of {', '.join(_ID_LIST_KEYS)})")
    ids = _parse_ids(url, items)

    raw_cursor = next((payload[key] for key in _CURSOR_KEYS if key in payload), None)
    if isinstance(raw_cursor, bool) or (raw_cursor is not None and not isinstance(raw_cursor, (str, int))):
        raise ProtocolError(url, f"invalid continuation cursor {raw_cursor!r}")
    cursor = str(raw_cursor) if raw_cursor not in (None, "") else None

    if payload.get("has_more") is False or payload.get("done") is True:
        cursor = None
    elif payload.get("has_more") is True and cursor is None:
        raise ProtocolError(url, "page reports more results but has no continuation cursor")
    return ids, cursor


def _parse_ids(url: str, items: list) -> list[int]:
    ids: list[int] = []
    for item in items:
        raw = item.get("id") if isinstance(item, dict) else item
        cid = normalize_community_id(raw)
        if cid is None:
            raise ProtocolError(url, f"invalid server id {raw!r}")
        ids.append(cid)
    return ids
