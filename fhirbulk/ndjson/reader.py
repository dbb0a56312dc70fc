"""NDJSON reader: row counting, bounded previews, full parses and streaming.

Three access patterns over the same splitter and decoder:

- first_n_rows / preview_ndjson: UI previews of text that is already fetched.
- parse_ndjson: full materialization for small exports.
- stream_rows: push-style consumption of files too large to hold in memory,
  with an optional row cap that actively closes the underlying stream.

Row counting is line counting: a line that is valid JSON but not a plausible
FHIR resource still counts, and a malformed line counts too. Decoding skips
malformed lines without counting them as returned rows.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Callable, Iterable, List, Optional

from config.defaults import PREVIEW_ROWS
from fhirbulk.models.ndjson import DecodeError, NdjsonPreview, StreamSummary
from fhirbulk.ndjson.decoder import decode_line
from fhirbulk.ndjson.line_splitter import Chunk, LineSplitter, split_lines

if TYPE_CHECKING:
    from fhirbulk.clients.base import TransportAdapter

logger = logging.getLogger(__name__)

RowCallback = Callable[[Any, int], Any]


def _check_limit(name: str, value: Optional[int]) -> None:
    if value is not None and value < 0:
        raise ValueError(f"{name} must be >= 0 or None, got {value}")


def count_rows(text: str) -> int:
    """Count non-blank lines without decoding them."""
    return len(split_lines(text))


def first_n_rows(
    text: str,
    n: Optional[int],
    errors: Optional[List[DecodeError]] = None,
) -> List[Any]:
    """Decode the first n decodable lines of already-fetched text.

    Malformed lines are skipped and do not count toward n.

    Args:
        text: Full NDJSON text.
        n: Maximum number of records to return; None for no limit.
        errors: Optional list collecting DecodeErrors for skipped lines.

    Returns:
        Decoded records in file order.
    """
    _check_limit("n", n)
    rows: List[Any] = []
    if n == 0:
        return rows
    for line_number, line in enumerate(split_lines(text), start=1):
        result = decode_line(line, line_number=line_number, errors=errors)
        if not result.ok:
            continue
        rows.append(result.record)
        if n is not None and len(rows) >= n:
            break
    return rows


def parse_ndjson(text: str, errors: Optional[List[DecodeError]] = None) -> List[Any]:
    """Decode every decodable line of already-fetched text."""
    return first_n_rows(text, None, errors=errors)


def preview_ndjson(
    transport: "TransportAdapter",
    locator: str,
    n: int = PREVIEW_ROWS,
) -> NdjsonPreview:
    """Fetch an output file in full and build a bounded preview of it.

    Intended for small files; large files should go through stream_rows.

    Raises:
        TransportError: If the file cannot be fetched.
    """
    text = transport.fetch_text(locator)
    skipped: List[DecodeError] = []
    preview = NdjsonPreview(
        source_locator=locator,
        total_row_count=count_rows(text),
        preview_rows=first_n_rows(text, n, errors=skipped),
        raw_text=text,
        skipped=skipped,
    )
    logger.info(
        "Previewed %s: %d of %d rows (%d malformed skipped)",
        locator,
        len(preview.preview_rows),
        preview.total_row_count,
        len(skipped),
    )
    return preview


class _StreamCursor:
    """Position within one stream: the pending partial line and the next row index.

    One cursor per stream consumption; there is no reset.
    """

    def __init__(self) -> None:
        self._splitter = LineSplitter()
        self.row_index = 0
        self.line_number = 0

    def lines(self, chunk: Chunk) -> List[str]:
        return self._splitter.feed(chunk)

    def remaining(self) -> List[str]:
        return self._splitter.finish()


def stream_rows(
    stream: Iterable[Chunk],
    on_row: RowCallback,
    max_rows: Optional[int] = None,
) -> StreamSummary:
    """Push decoded rows from a chunked stream to on_row, in file order.

    on_row(record, index) is called exactly once per decodable line with a
    0-based index that increases by one per delivered row. Malformed lines
    are skipped and collected in the returned summary.

    The stream is owned by this call and is closed on every exit path:
    exhaustion, the max_rows cutoff, and any exception raised by the
    stream or by on_row.

    Args:
        stream: Iterable of byte/text chunks; closed via its close() method if present.
        on_row: Callback receiving (record, index).
        max_rows: Stop after delivering this many rows; None for no limit.

    Returns:
        StreamSummary with the delivered row count and skipped lines.
        stopped_early reports that max_rows was reached; the stream is closed
        at that point without reading ahead to see whether more rows follow.
    """
    _check_limit("max_rows", max_rows)
    summary = StreamSummary()
    cursor = _StreamCursor()

    def deliver(lines: List[str]) -> bool:
        """Decode and deliver lines; False once max_rows has been reached."""
        for line in lines:
            cursor.line_number += 1
            result = decode_line(line, line_number=cursor.line_number, errors=summary.skipped)
            if not result.ok:
                continue
            on_row(result.record, cursor.row_index)
            cursor.row_index += 1
            summary.rows_delivered = cursor.row_index
            if max_rows is not None and cursor.row_index >= max_rows:
                return False
        return True

    try:
        if max_rows == 0:
            summary.stopped_early = True
            return summary
        for chunk in stream:
            if not deliver(cursor.lines(chunk)):
                summary.stopped_early = True
                return summary
        deliver(cursor.remaining())
        return summary
    finally:
        _close_stream(stream)
        logger.debug(
            "Stream closed after %d rows (%d malformed skipped, stopped_early=%s)",
            summary.rows_delivered,
            len(summary.skipped),
            summary.stopped_early,
        )


def _close_stream(stream: Any) -> None:
    close = getattr(stream, "close", None)
    if callable(close):
        close()
