from __future__ import annotations

import json
import os
import sys
import tempfile
from collections.abc import Sequence
from pathlib import Path
from typing import TextIO

from server.spycheck.match.match import MatchedCommunity
from server.spycheck.pipeline import CheckOutcome

NO_MATCHES_LINE = "No servers matched, you may not be in the dataset"


def render_plain(matches: Sequence[MatchedCommunity]) -> str:
    if not matches:
        return NO_MATCHES_LINE + "\n"
    lines = []
    for match in matches:
        if match.name:
            lines.append(f"{match.name} (ID: {match.community_id}) is compromised!")
        else:
            lines.append(f"{match.display_name} is compromised!")
    return "\n".join(lines) + "\n"


def render_json(outcome: CheckOutcome) -> str:
    payload = {
        "matches": [m.as_dict() for m in outcome.matches],
        "checked": len(outcome.memberships.ids),
        "remote_size": len(outcome.remote.ids),
        "skipped_records": outcome.memberships.skipped,
        "warnings": list(outcome.warnings),
    }
    if outcome.remote.responses:
        payload["checked_servers"] = [
            {
                "guild_id": str(cid),
                "guild_name": outcome.memberships.name_for(cid),
                "api_response": response,
            }
            for cid, response in sorted(outcome.remote.responses.items())
        ]
    return json.dumps(payload, indent=2, ensure_ascii=False) + "\n"


def render(outcome: CheckOutcome, *, output_format: str) -> str:
    if output_format == "json":
        return render_json(outcome)
    return render_plain(outcome.matches)


def write_report(text: str, output: Path | None, *, export_path: Path | None = None, stream: TextIO | None = None) -> None:
    """Write the report to ``output`` (atomically) or to ``stream``/stdout."""
    if output is None:
        (stream or sys.stdout).write(text)
        return

    target = Path(output)
    if export_path is not None and target.exists() and export_path.exists() and target.samefile(export_path):
        raise ValueError(f"Refusing to overwrite the export file {export_path} with the report.")

    target.parent.mkdir(parents=True, exist_ok=True)
    with tempfile.NamedTemporaryFile("w", delete=False, dir=str(target.parent), prefix=".report.", suffix=".tmp", encoding="utf-8") as tmp:
        tmp_path = Path(tmp.name)
        tmp.write(text)
        tmp.flush()
        os.fsync(tmp.fileno())
    tmp_path.replace(target)
