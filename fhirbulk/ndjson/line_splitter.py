"""Incremental line splitting for NDJSON streams.

Turns a sequence of byte or text chunks into complete, whitespace-stripped,
non-blank lines. An incomplete tail is held back until its terminator
arrives (or the stream ends), so a line cut by a chunk boundary is never
emitted in pieces. The output depends only on the concatenated input, not
on where the chunk boundaries fall.
"""

from __future__ import annotations

import codecs
from typing import Iterable, Iterator, List, Union

Chunk = Union[bytes, bytearray, str]

_TERMINATOR = "\n"


def _complete_lines(block: str) -> List[str]:
    """Split a block that ends at a terminator into non-blank stripped lines."""
    return [s for s in (line.strip() for line in block.split(_TERMINATOR)) if s]


class LineSplitter:
    """Stateful splitter for a single stream. Not reusable once finished.

    Byte chunks go through an incremental decoder so a multi-byte character
    split across two chunks is reassembled before line splitting.

    Args:
        encoding: Text encoding of byte chunks (default UTF-8).
    """

    def __init__(self, encoding: str = "utf-8") -> None:
        self._decoder = codecs.getincrementaldecoder(encoding)(errors="replace")
        self._buffer = ""
        self._finished = False

    @property
    def pending(self) -> str:
        """Text received after the last terminator (never contains one)."""
        return self._buffer

    def feed(self, chunk: Chunk) -> List[str]:
        """Append a chunk and return every line it completed."""
        if self._finished:
            raise RuntimeError("LineSplitter.feed() called after finish()")
        text = self._decoder.decode(bytes(chunk)) if isinstance(chunk, (bytes, bytearray)) else chunk
        if not text:
            return []
        if _TERMINATOR not in text:
            self._buffer += text
            return []
        head, _, tail = (self._buffer + text).rpartition(_TERMINATOR)
        self._buffer = tail
        return _complete_lines(head)

    def finish(self) -> List[str]:
        """Signal end of stream and return the unterminated tail, if any."""
        if self._finished:
            return []
        self._finished = True
        tail = self._buffer + self._decoder.decode(b"", final=True)
        self._buffer = ""
        return _complete_lines(tail)


def iter_lines(chunks: Iterable[Chunk], encoding: str = "utf-8") -> Iterator[str]:
    """Lazily yield complete lines from an iterable of chunks."""
    splitter = LineSplitter(encoding=encoding)
    for chunk in chunks:
        yield from splitter.feed(chunk)
    yield from splitter.finish()


def split_lines(text: str) -> List[str]:
    """Split already-fetched text into non-blank stripped lines."""
    return _complete_lines(text)
