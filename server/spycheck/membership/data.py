from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path

from server.spycheck.errors import EmptyInput, NotFound, ParseError
from server.spycheck.membership.normalize import normalize_community_id, normalize_community_name

logger = logging.getLogger(__name__)

_ID_KEYS = ("id", "guild_id", "server_id")
_NAME_KEYS = ("name", "guild_name", "server_name")
_WRAPPER_KEYS = ("servers", "guilds", "records")


@dataclass(frozen=True)
class MembershipRecord:
    community_id: int
    name: str | None = None


@dataclass(frozen=True)
class MembershipData:
    source: Path
    records: tuple[MembershipRecord, ...]
    ids: frozenset[int]
    names: dict[int, str]
    skipped: int = 0

    def name_for(self, community_id: int) -> str | None:
        return self.names.get(community_id)


def empty_membership(source: Path) -> MembershipData:
    return MembershipData(source=source, records=(), ids=frozenset(), names={}, skipped=0)


def load_membership_export(path: Path, *, strict: bool = False) -> MembershipData:
    """Parse a server membership export into a MembershipData.

    Accepts the data package ``servers/index.json`` mapping of id to name, a list
    of ``{"id": ..., "name": ...}`` records, or such a list wrapped under
    ``servers``/``guilds``/``records``. Malformed records are skipped and counted
    unless ``strict`` is set, in which case the first one raises ParseError.
    Raises EmptyInput when the export holds no records at all.
    """
    path = Path(path)
    if not path.is_file():
        raise NotFound(path)

    try:
        text = path.read_text(encoding="utf-8-sig")
    except UnicodeDecodeError as e:
        raise ParseError(path, f"not valid UTF-8 ({e.reason})") from e
    except OSError as e:
        raise ParseError(path, f"could not be read ({e.strerror or e})") from e
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as e:
        raise ParseError(path, f"invalid JSON at line {e.lineno} column {e.colno}") from e
    except ValueError as e:
        # e.g. an integer literal past the interpreter's digit limit
        raise ParseError(path, f"invalid JSON ({e})") from e

    raw_records = _raw_records(path, payload)
    if not raw_records:
        raise EmptyInput(path)

    records: list[MembershipRecord] = []
    skipped = 0
    for index, (raw_id, raw_name) in enumerate(raw_records):
        community_id = normalize_community_id(raw_id)
        if community_id is None:
            if strict:
                raise ParseError(path, f"record {index} has a missing or invalid server id: {raw_id!r}")
            skipped += 1
            continue
        records.append(MembershipRecord(community_id=community_id, name=normalize_community_name(raw_name)))

    if not records:
        raise ParseError(path, f"none of the {len(raw_records)} records has a valid server id")
    if skipped:
        logger.warning("Skipped %s malformed record(s) in %s", skipped, path)

    return _build_membership_data(path, records, skipped=skipped)


def _raw_records(path: Path, payload: object) -> list[tuple[object, object]]:
    if isinstance(payload, dict):
        for key in _WRAPPER_KEYS:
            wrapped = payload.get(key)
            if isinstance(wrapped, list):
                return _records_from_list(wrapped)
        # Data package layout: {"<id>": "<name>", ...}
        return [(key, value) for key, value in payload.items()]
    if isinstance(payload, list):
        return _records_from_list(payload)
    raise ParseError(path, f"expected a JSON object or array, got {type(payload).__name__}")


def _records_from_list(items: list) -> list[tuple[object, object]]:
    out: list[tuple[object, object]] = []
    for item in items:
        if isinstance(item, dict):
            raw_id = next((item[key] for key in _ID_KEYS if key in item), None)
            raw_name = next((item[key] for key in _NAME_KEYS if key in item), None)
            out.append((raw_id, raw_name))
        elif isinstance(item, (int, str)) and not isinstance(item, bool):
            out.append((item, None))
        else:
            out.append((None, None))
    return out


def _build_membership_data(path: Path, records: list[MembershipRecord], *, skipped: int) -> MembershipData:
    unique: dict[int, MembershipRecord] = {}
    for rec in records:
        existing = unique.get(rec.community_id)
        if existing is None or (existing.name is None and rec.name is not None):
            unique[rec.community_id] = rec

    names = {cid: rec.name for cid, rec in unique.items() if rec.name}
    return MembershipData(
        source=path,
        records=tuple(unique.values()),
        ids=frozenset(unique),
        names=names,
        skipped=skipped,
    )
