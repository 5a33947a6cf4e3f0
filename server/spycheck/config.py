from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

_DEFAULT_EXPORT_CANDIDATES = (Path("index.json"), Path("servers") / "index.json")


def _env_str(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None:
        return default
    value = value.strip()
    return value if value else default


def _env_int(name: str, default: int, *, min_value: int | None = None, max_value: int | None = None) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        value = default
    else:
        try:
            value = int(raw)
        except Exception as e:
            raise ValueError(f"Invalid integer value for {name}: {raw!r}") from e
    if min_value is not None and value < min_value:
        raise ValueError(f"{name} must be >= {min_value} (got {value})")
    if max_value is not None and value > max_value:
        raise ValueError(f"{name} must be <= {max_value} (got {value})")
    return value


def _env_float(name: str, default: float, *, min_value: float | None = None, max_value: float | None = None) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        value = float(default)
    else:
        try:
            value = float(raw)
        except Exception as e:
            raise ValueError(f"Invalid float value for {name}: {raw!r}") from e
    if min_value is not None and value < min_value:
        raise ValueError(f"{name} must be >= {min_value} (got {value})")
    if max_value is not None and value > max_value:
        raise ValueError(f"{name} must be <= {max_value} (got {value})")
    return value


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    value = raw.strip().lower()
    if value in {"1", "true", "yes", "y", "on"}:
        return True
    if value in {"0", "false", "no", "n", "off"}:
        return False
    raise ValueError(f"Invalid boolean value for {name}: {raw!r}")


def resolve_export_path(raw: str, *, cwd: Path | None = None) -> Path:
    """Pick the export file to read.

    An explicit path is used as given. Otherwise the first existing default
    (``index.json``, then the data package layout ``servers/index.json``) under
    ``cwd`` wins; when neither exists the first default is returned so the
    loader reports it as missing.
    """
    if raw:
        return Path(raw).expanduser()
    base = cwd or Path.cwd()
    for candidate in _DEFAULT_EXPORT_CANDIDATES:
        path = base / candidate
        if path.is_file():
            return path
    return base / _DEFAULT_EXPORT_CANDIDATES[0]


@dataclass(frozen=True)
class Settings:
    export_path: Path
    strict_export: bool

    mode: str
    endpoint_url: str
    lookup_url: str
    api_token: str
    user_agent: str
    page_size: int
    max_retries: int
    backoff_base: float
    backoff_cap: float
    retry_after_cap: float
    api_timeout_seconds: float
    concurrency: int

    output_format: str
    output_path: Path | None

    log_level: str

    @classmethod
    def from_env(cls) -> "Settings":
        export_path = resolve_export_path(_env_str("SPYCHECK_EXPORT_PATH", ""))
        strict_export = _env_bool("SPYCHECK_STRICT_EXPORT", False)

        mode = _env_str("SPYCHECK_MODE", "list").lower()
        if mode not in {"list", "lookup"}:
            raise ValueError("SPYCHECK_MODE must be 'list' or 'lookup'.")
        endpoint_url = _env_str("SPYCHECK_ENDPOINT_URL", "https://api.spy.pet/servers")
        lookup_url = _env_str("SPYCHECK_LOOKUP_URL", "https://api.spy.pet/servers/{id}")
        if "{id}" not in lookup_url:
            raise ValueError("SPYCHECK_LOOKUP_URL must contain an '{id}' placeholder.")
        try:
            lookup_url.format(id=0)
        except (AttributeError, IndexError, KeyError, TypeError, ValueError) as e:
            raise ValueError(f"SPYCHECK_LOOKUP_URL has an unusable placeholder: {e!r}") from e
        api_token = _env_str("SPYCHECK_API_TOKEN", "")
        user_agent = _env_str("SPYCHECK_USER_AGENT", "spycheck/0.1")
        page_size = _env_int("SPYCHECK_PAGE_SIZE", 1000, min_value=1, max_value=10_000)
        max_retries = _env_int("SPYCHECK_MAX_RETRIES", 5, min_value=0, max_value=20)
        backoff_base = _env_float("SPYCHECK_BACKOFF_BASE", 0.5, min_value=0.0, max_value=60.0)
        backoff_cap = _env_float("SPYCHECK_BACKOFF_CAP", 30.0, min_value=0.0, max_value=3600.0)
        retry_after_cap = _env_float("SPYCHECK_RETRY_AFTER_CAP", 300.0, min_value=0.0, max_value=86_400.0)
        api_timeout_seconds = _env_float("SPYCHECK_API_TIMEOUT_SECONDS", 20.0, min_value=1.0, max_value=300.0)
        concurrency = _env_int("SPYCHECK_CONCURRENCY", 1, min_value=1, max_value=32)

        output_format = _env_str("SPYCHECK_OUTPUT_FORMAT", "plain").lower()
        if output_format not in {"plain", "json"}:
            raise ValueError("SPYCHECK_OUTPUT_FORMAT must be 'plain' or 'json'.")
        output_raw = _env_str("SPYCHECK_OUTPUT", "")
        output_path = Path(output_raw).expanduser() if output_raw else None

        log_level = _env_str("SPYCHECK_LOG_LEVEL", "INFO")

        return cls(
            export_path=export_path,
            strict_export=strict_export,
            mode=mode,
            endpoint_url=endpoint_url,
            lookup_url=lookup_url,
            api_token=api_token,
            user_agent=user_agent,
            page_size=page_size,
            max_retries=max_retries,
            backoff_base=backoff_base,
            backoff_cap=backoff_cap,
            retry_after_cap=retry_after_cap,
            api_timeout_seconds=api_timeout_seconds,
            concurrency=concurrency,
            output_format=output_format,
            output_path=output_path,
            log_level=log_level,
        )
