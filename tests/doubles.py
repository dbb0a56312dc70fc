"""Test doubles for fhirbulk tests: scripted transports, recording streams and
poll outcome builders. No HTTP anywhere in this module.
"""

from __future__ import annotations

import threading
from typing import Any, Dict, Iterable, Iterator, List, Optional, Union

from fhirbulk.clients.base import ChunkStream, TransportAdapter, TransportError
from fhirbulk.models.export import ExportRequest, JobHandle, OutputFile
from fhirbulk.models.transport import ExportAck, PollStatus


# ── Test doubles ─────────────────────────────────────────────────────────────────

class RecordingStream(ChunkStream):
    """In-memory ChunkStream that records how far it was read and whether it was closed."""

    def __init__(self, chunks: Iterable[Union[bytes, str]], fail_after: Optional[int] = None):
        self._chunks = list(chunks)
        self._fail_after = fail_after
        self.chunks_read = 0
        self.close_calls = 0

    @property
    def closed(self) -> bool:
        return self.close_calls > 0

    def __iter__(self) -> Iterator[Union[bytes, str]]:
        for chunk in self._chunks:
            if self.closed:
                return
            if self._fail_after is not None and self.chunks_read >= self._fail_after:
                raise TransportError("connection reset while streaming")
            self.chunks_read += 1
            yield chunk

    def close(self) -> None:
        self.close_calls += 1


class ScriptedTransport(TransportAdapter):
    """TransportAdapter that replays scripted outcomes.

    Each poll outcome is a PollStatus or an exception instance to raise.
    """

    def __init__(
        self,
        ack: Union[ExportAck, Exception],
        polls: Optional[List[Union[PollStatus, Exception]]] = None,
        files: Optional[Dict[str, str]] = None,
    ) -> None:
        self.ack = ack
        self.polls = list(polls or [])
        self.files = dict(files or {})
        self.export_requests: List[ExportRequest] = []
        self.prefer_async_flags: List[bool] = []
        self.poll_calls: List[JobHandle] = []
        self.opened_streams: List[RecordingStream] = []

    def request_export(self, request: ExportRequest, prefer_async: bool = True) -> ExportAck:
        self.export_requests.append(request)
        self.prefer_async_flags.append(prefer_async)
        if isinstance(self.ack, Exception):
            raise self.ack
        return self.ack

    def poll_status(self, handle: JobHandle) -> PollStatus:
        self.poll_calls.append(handle)
        if not self.polls:
            raise AssertionError("poll_status called more times than scripted")
        outcome = self.polls.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    def open_stream(self, locator: str) -> RecordingStream:
        if locator not in self.files:
            raise TransportError(f"Failed to open NDJSON file {locator}: HTTP 404", 404)
        text = self.files[locator]
        stream = RecordingStream([text[i:i + 7].encode("utf-8") for i in range(0, len(text), 7)])
        self.opened_streams.append(stream)
        return stream

    def fetch_text(self, locator: str) -> str:
        if locator not in self.files:
            raise TransportError(f"Failed to fetch NDJSON file {locator}: HTTP 404", 404)
        return self.files[locator]


class BlockingPollTransport(ScriptedTransport):
    """ScriptedTransport whose poll_status blocks until release() is called."""

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.poll_entered = threading.Event()
        self._release = threading.Event()

    def release(self) -> None:
        self._release.set()

    def poll_status(self, handle: JobHandle) -> PollStatus:
        self.poll_entered.set()
        if not self._release.wait(timeout=5):
            raise AssertionError("blocking poll was never released")
        return super().poll_status(handle)


# ── Poll outcome builders ────────────────────────────────────────────────────────

def accepted(job_id: str = "J1", endpoint: Optional[str] = None) -> ExportAck:
    endpoint = endpoint or f"https://fhir.example.org/fhir/$export-poll-status/{job_id}"
    return ExportAck(
        status_code=202, accepted=True, job_handle=JobHandle(job_id=job_id, status_endpoint=endpoint)
    )


def running(progress: Optional[str] = None) -> PollStatus:
    return PollStatus(status_code=202, done=False, progress=progress)


def completed(outputs: Optional[List[OutputFile]] = None, transaction_time: str = "T1") -> PollStatus:
    return PollStatus(
        status_code=200,
        done=True,
        outputs=list(outputs if outputs is not None else [OutputFile("Patient", "L1")]),
        transaction_time=transaction_time,
    )


def errored(status_code: int = 500, message: Optional[str] = None) -> PollStatus:
    return PollStatus(
        status_code=status_code,
        done=True,
        error_message=message or f"Status check failed with {status_code}",
    )


