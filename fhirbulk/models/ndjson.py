"""NDJSON ingestion data models for fhirbulk.

Defines the per-line decode result, the preview snapshot shown for an output
file, and the summary returned after streaming a file.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, List, Optional


@dataclass(frozen=True)
class DecodeError:
    """A single NDJSON line that could not be parsed. Non-fatal."""

    line: str
    message: str
    line_number: Optional[int] = None


@dataclass(frozen=True)
class DecodeResult:
    """Either a decoded record or the error explaining why decoding failed."""

    record: Any = None
    error: Optional[DecodeError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class NdjsonPreview:
    """Bounded, read-only view of the first rows of an NDJSON output file."""

    source_locator: str
    total_row_count: int
    preview_rows: List[Any] = field(default_factory=list)
    raw_text: Optional[str] = None   # retained for fetched previews only, never for streams
    skipped: List[DecodeError] = field(default_factory=list)


@dataclass
class StreamSummary:
    """Result of consuming one NDJSON stream with stream_rows().

    stopped_early is True whenever the max_rows cap ended consumption, even
    when the capped row happened to be the last one: the rest of the stream
    is never read to find out, so it means "cap reached", not "rows remained".
    """

    rows_delivered: int = 0
    skipped: List[DecodeError] = field(default_factory=list)
    stopped_early: bool = False
