"""fhirbulk data models package.

All request, job, transport and NDJSON schemas are defined here as typed dataclasses.
Never pass raw Dict between layers; use the typed models.
"""

from fhirbulk.models.export import (
    ControllerPhase,
    ExportJob,
    ExportRequest,
    ExportSnapshot,
    InvalidTransitionError,
    JobHandle,
    JobState,
    OutputFile,
)
from fhirbulk.models.ndjson import DecodeError, DecodeResult, NdjsonPreview, StreamSummary
from fhirbulk.models.transport import ExportAck, PollStatus

__all__ = [
    # export
    "ControllerPhase",
    "ExportJob",
    "ExportRequest",
    "ExportSnapshot",
    "InvalidTransitionError",
    "JobHandle",
    "JobState",
    "OutputFile",
    # transport
    "ExportAck",
    "PollStatus",
    # ndjson
    "DecodeError",
    "DecodeResult",
    "NdjsonPreview",
    "StreamSummary",
]
