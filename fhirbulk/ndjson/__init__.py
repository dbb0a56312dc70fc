"""fhirbulk NDJSON package.

Incremental line splitting, per-line decoding and the reader operations
built on them. No network calls in this layer; streams and fetched text
are supplied by a transport.
"""

from fhirbulk.ndjson.decoder import decode_line
from fhirbulk.ndjson.line_splitter import LineSplitter, iter_lines, split_lines
from fhirbulk.ndjson.reader import (
    count_rows,
    first_n_rows,
    parse_ndjson,
    preview_ndjson,
    stream_rows,
)

__all__ = [
    "LineSplitter",
    "iter_lines",
    "split_lines",
    "decode_line",
    "count_rows",
    "first_n_rows",
    "parse_ndjson",
    "preview_ndjson",
    "stream_rows",
]
