from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass

from server.spycheck.config import Settings
from server.spycheck.errors import Cancelled, EmptyInput
from server.spycheck.match.match import MatchedCommunity, match_memberships
from server.spycheck.membership.data import MembershipData, empty_membership, load_membership_export
from server.spycheck.sources.spypet import RemoteDatasetConfig, RemoteIndex, SpyPetClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CheckOutcome:
    memberships: MembershipData
    remote: RemoteIndex
    matches: tuple[MatchedCommunity, ...]
    warnings: tuple[str, ...] = ()
    elapsed_seconds: float = 0.0


def build_client(settings: Settings, *, cancel: threading.Event | None = None) -> SpyPetClient:
    return SpyPetClient(
        config=RemoteDatasetConfig.from_settings(settings),
        cancel=cancel if cancel is not None else threading.Event(),
    )


def run_check(settings: Settings, *, client: SpyPetClient | None = None) -> CheckOutcome:
    """Load the export, query spy.pet and intersect the two.

    In list mode the remote list is downloaded on a worker thread while the
    export is parsed; lookup mode needs the parsed export first. Matching only
    starts once both sides are complete. A KeyboardInterrupt cancels the client
    and surfaces as Cancelled.
    """
    client = client or build_client(settings)
    started = time.monotonic()
    try:
        if settings.mode == "lookup":
            memberships, warnings = _load_memberships(settings)
            remote = client.lookup(memberships.ids)
        else:
            memberships, warnings, remote = _load_and_fetch(settings, client)
    except KeyboardInterrupt:
        client.cancel.set()
        raise Cancelled() from None

    matches = match_memberships(memberships, remote)
    elapsed = time.monotonic() - started
    logger.info(
        "processing took %.2fs (%s servers checked, %s listed remotely, %s matched)",
        elapsed,
        len(memberships.ids),
        len(remote.ids),
        len(matches),
    )
    return CheckOutcome(
        memberships=memberships,
        remote=remote,
        matches=matches,
        warnings=warnings,
        elapsed_seconds=elapsed,
    )


def _load_and_fetch(settings: Settings, client: SpyPetClient) -> tuple[MembershipData, tuple[str, ...], RemoteIndex]:
    with ThreadPoolExecutor(max_workers=1, thread_name_prefix="spycheck-fetch") as pool:
        future = pool.submit(client.fetch_index)
        try:
            memberships, warnings = _load_memberships(settings)
        except BaseException:
            client.cancel.set()
            raise

        if not memberships.ids:
            # Nothing can match; stop the download instead of waiting for it.
            client.cancel.set()
            return memberships, warnings, RemoteIndex(ids=frozenset())

        try:
            remote = future.result()
        except KeyboardInterrupt:
            client.cancel.set()
            raise
    return memberships, warnings, remote


def _load_memberships(settings: Settings) -> tuple[MembershipData, tuple[str, ...]]:
    path = settings.export_path
    try:
        memberships = load_membership_export(path, strict=settings.strict_export)
    except EmptyInput as e:
        logger.warning("%s", e)
        return empty_membership(path), (str(e),)

    logger.info("Loaded %s servers from %s", len(memberships.ids), path)
    warnings: list[str] = []
    if memberships.skipped:
        warnings.append(f"Skipped {memberships.skipped} malformed record(s) in {path}.")
    return memberships, tuple(warnings)
