"""TransportAdapter interface for fhirbulk.

The export controller and NDJSON reader depend only on this interface. A
transport issues the kick-off and status requests, opens output files as
chunk streams, and fetches whole files for previews. Network-level failures
are reported by raising TransportError.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Iterator, Optional, Union

from fhirbulk.models.export import ExportRequest, JobHandle
from fhirbulk.models.transport import ExportAck, PollStatus


class TransportError(Exception):
    """Raised when a request cannot be completed (timeout, connection error, non-2xx)."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class ChunkStream(ABC):
    """A byte/text stream read chunk by chunk, closable before exhaustion.

    Iterating yields chunks; iteration ending signals end of stream. close()
    releases the underlying connection and must be safe to call more than once.
    """

    @abstractmethod
    def __iter__(self) -> Iterator[Union[bytes, str]]:
        """Yield successive chunks."""

    @abstractmethod
    def close(self) -> None:
        """Release the stream's resources."""

    def __enter__(self) -> "ChunkStream":
        return self

    def __exit__(self, *args: object) -> None:
        self.close()


class TransportAdapter(ABC):
    """Abstract capability surface consumed by the controller and reader."""

    @abstractmethod
    def request_export(self, request: ExportRequest, prefer_async: bool = True) -> ExportAck:
        """Issue an export kick-off request.

        Args:
            request: Export parameters.
            prefer_async: Ask the server for asynchronous processing.

        Returns:
            ExportAck describing whether the job was accepted and its handle.

        Raises:
            TransportError: On timeout or connection failure.
        """

    @abstractmethod
    def poll_status(self, handle: JobHandle) -> PollStatus:
        """Poll the status endpoint of an accepted job once.

        Raises:
            TransportError: On timeout or connection failure.
        """

    @abstractmethod
    def open_stream(self, locator: str) -> ChunkStream:
        """Open an output file for incremental reading.

        Raises:
            TransportError: If the file cannot be opened.
        """

    @abstractmethod
    def fetch_text(self, locator: str) -> str:
        """Fetch an output file's full text (preview path only).

        Raises:
            TransportError: If the file cannot be fetched.
        """
