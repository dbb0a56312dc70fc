"""Transport result models for fhirbulk.

What a TransportAdapter reports back for a kick-off request and for a single
status poll. Adapters translate protocol details (status codes, headers,
manifest bodies) into these; the controller never inspects raw HTTP.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, List, Optional

from fhirbulk.models.export import JobHandle, OutputFile


@dataclass
class ExportAck:
    """Outcome of an $export kick-off request."""

    status_code: int
    accepted: bool = False
    job_handle: Optional[JobHandle] = None
    immediate_body: Optional[Any] = None   # body of a synchronous (non-accepted) reply


@dataclass
class PollStatus:
    """Outcome of one status-endpoint poll.

    done=True with no error_message means the export completed; error_message
    set means the job failed; otherwise the job is still running.
    """

    status_code: int
    done: bool = False
    outputs: List[OutputFile] = field(default_factory=list)
    transaction_time: Optional[str] = None
    error_message: Optional[str] = None
    progress: Optional[str] = None   # X-Progress header, informational only

    @property
    def failed(self) -> bool:
        return self.error_message is not None or not (200 <= self.status_code < 300)
