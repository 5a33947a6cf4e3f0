from __future__ import annotations

from pathlib import Path


class CheckError(RuntimeError):
    """Base class for failures that end a check run with a user-facing message."""

    exit_code = 1


class ExportError(CheckError):
    pass


class NotFound(ExportError):
    def __init__(self, path: Path) -> None:
        super().__init__(f"Export file not found: {path}")
        self.path = path


class ParseError(ExportError):
    def __init__(self, path: Path, reason: str) -> None:
        super().__init__(f"Could not parse export file {path}: {reason}")
        self.path = path
        self.reason = reason


class EmptyInput(ExportError):
    # Soft failure: the pipeline records it as a warning and continues.
    def __init__(self, path: Path) -> None:
        super().__init__(f"Export file {path} contains no servers.")
        self.path = path


class RemoteError(CheckError):
    pass


class RemoteUnavailable(RemoteError):
    def __init__(self, url: str, reason: str, *, attempts: int = 0) -> None:
        detail = f" after {attempts} attempt(s)" if attempts else ""
        super().__init__(f"spy.pet API unavailable{detail} ({url}): {reason}")
        self.url = url
        self.reason = reason
        self.attempts = attempts


class ProtocolError(RemoteError):
    def __init__(self, url: str, reason: str) -> None:
        super().__init__(f"Unexpected spy.pet API response from {url}: {reason}")
        self.url = url
        self.reason = reason


class Cancelled(RemoteError):
    exit_code = 130

    def __init__(self, message: str = "Fetch cancelled before completion; no results reported.") -> None:
        super().__init__(message)
