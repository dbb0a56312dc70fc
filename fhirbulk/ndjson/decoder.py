"""Per-line record decoding for NDJSON.

decode_line() never raises for malformed input: a bad line becomes a
DecodeError carried in the result, logged as a warning, and the caller
decides whether to skip or collect it. One bad line must not abort an
export consumer.
"""

from __future__ import annotations

import json
import logging
from typing import List, Optional

from config.defaults import DECODE_WARNING_PREVIEW_CHARS
from fhirbulk.models.ndjson import DecodeError, DecodeResult

logger = logging.getLogger(__name__)


def decode_line(
    line: str,
    line_number: Optional[int] = None,
    errors: Optional[List[DecodeError]] = None,
) -> DecodeResult:
    """Parse one NDJSON line.

    Args:
        line: A single complete line (terminator already stripped).
        line_number: 1-based position of the line among non-blank lines, for diagnostics.
        errors: If given, a failed decode's DecodeError is appended here.

    Returns:
        DecodeResult with either the parsed record or a DecodeError.
    """
    try:
        return DecodeResult(record=json.loads(line))
    except (ValueError, RecursionError) as exc:
        error = DecodeError(line=line, message=str(exc), line_number=line_number)

    logger.warning(
        "Failed to parse NDJSON line %s (%s): %.*s",
        line_number if line_number is not None else "?",
        error.message,
        DECODE_WARNING_PREVIEW_CHARS,
        line,
    )
    if errors is not None:
        errors.append(error)
    return DecodeResult(error=error)
