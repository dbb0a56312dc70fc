"""fhirbulk — ExportSettings and environment-based configuration loading.

All runtime configuration flows through ExportSettings. No module-level globals,
no hard-coded values. Server location and timing overrides come from environment
variables (optionally via a .env file).
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

from config.defaults import (
    DEFAULT_LOG_LEVEL,
    FHIR_BASE_URL,
    POLL_INTERVAL_SECONDS,
    PREVIEW_ROWS,
    REQUEST_TIMEOUT,
    STREAM_CHUNK_SIZE,
)

# Load .env file if present; silently skip if missing
load_dotenv()


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number, got {raw!r}") from exc


@dataclass
class ExportSettings:
    """Single configuration object shared by the FHIR client, controller and reader.

    All tuneable timings, sizes and the server base URL live here.
    Never use module-level globals or hard-coded values in client or controller code.
    """

    # ── FHIR server ────────────────────────────────────────────────────────────
    fhir_base: str = field(default_factory=lambda: os.getenv("FHIR_BASE", FHIR_BASE_URL))
    request_timeout: float = field(
        default_factory=lambda: _env_float("EXPORT_REQUEST_TIMEOUT", REQUEST_TIMEOUT)
    )

    # ── Status polling ─────────────────────────────────────────────────────────
    poll_interval: float = field(
        default_factory=lambda: _env_float("EXPORT_POLL_INTERVAL", POLL_INTERVAL_SECONDS)
    )

    # ── NDJSON consumption ────────────────────────────────────────────────────
    stream_chunk_size: int = STREAM_CHUNK_SIZE
    preview_rows: int = PREVIEW_ROWS

    # ── Logging ────────────────────────────────────────────────────────────────
    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", DEFAULT_LOG_LEVEL))

    def __post_init__(self) -> None:
        self.fhir_base = self.fhir_base.rstrip("/")
        if self.poll_interval <= 0:
            raise ValueError(f"poll_interval must be positive, got {self.poll_interval}")
        if self.request_timeout <= 0:
            raise ValueError(f"request_timeout must be positive, got {self.request_timeout}")
        if self.stream_chunk_size <= 0:
            raise ValueError(
                f"stream_chunk_size must be positive, got {self.stream_chunk_size}"
            )
        if self.preview_rows < 0:
            raise ValueError(f"preview_rows must be >= 0, got {self.preview_rows}")
