"""Bulk export job data models for fhirbulk.

Defines the immutable export request, the job handle returned on kick-off,
the mutable ExportJob entity owned by the controller, and the read-only
ExportSnapshot handed to callers.
"""

from __future__ import annotations

import enum
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Tuple, Union

from fhirbulk.utils.date_utils import to_fhir_instant


class InvalidTransitionError(RuntimeError):
    """Raised when a terminal ExportJob is asked to change state again."""


class JobState(str, enum.Enum):
    """Lifecycle state of a server-side export job."""

    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self is not JobState.IN_PROGRESS


class ControllerPhase(str, enum.Enum):
    """Phase of the ExportJobController (adds the pre-job phases to JobState)."""

    IDLE = "idle"
    REQUESTING = "requesting"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class ExportRequest:
    """Parameters for one $export kick-off. Never mutated after construction.

    Args:
        group_reference: Group resource reference, e.g. "Group/switching-members-2024".
        resource_types: Resource type names for the _type filter. Empty means all types.
        since: Optional lower bound for the _since filter (ISO string or datetime).
    """

    group_reference: str
    resource_types: Tuple[str, ...] = ()
    since: Optional[Union[str, datetime]] = None

    def __post_init__(self) -> None:
        if not self.group_reference or not self.group_reference.strip():
            raise ValueError("group_reference must be a non-empty string")
        types = self.resource_types
        if isinstance(types, str):
            types = types.split(",")
        cleaned = tuple(t.strip() for t in types if t and t.strip())
        object.__setattr__(self, "group_reference", self.group_reference.strip().strip("/"))
        object.__setattr__(self, "resource_types", cleaned)
        if isinstance(self.since, str) and not self.since.strip():
            object.__setattr__(self, "since", None)
        if self.since is not None:
            # Raises ValueError for an unparseable timestamp
            to_fhir_instant(self.since)

    def to_query_params(self) -> Dict[str, str]:
        """Build the kick-off query parameters.

        A parameter is present only when its filter is set; absence means
        "all types" / "no lower bound", never an empty-string value.
        """
        params: Dict[str, str] = OrderedDict()
        if self.resource_types:
            params["_type"] = ",".join(self.resource_types)
        if self.since is not None:
            params["_since"] = to_fhir_instant(self.since)
        return params


@dataclass(frozen=True)
class OutputFile:
    """One file listed in a completed export's manifest."""

    resource_type: str
    locator: str


@dataclass(frozen=True)
class JobHandle:
    """Identifies an accepted export job and where to poll for its status."""

    job_id: str
    status_endpoint: str


@dataclass
class ExportJob:
    """A single in-flight export. Mutated only by the controller's poll loop.

    State transitions are monotonic: IN_PROGRESS -> COMPLETED | FAILED, and
    outputs are populated if and only if the job is COMPLETED.
    """

    job_id: Optional[str] = None
    status_endpoint: Optional[str] = None
    state: JobState = JobState.IN_PROGRESS
    outputs: List[OutputFile] = field(default_factory=list)
    transaction_time: Optional[str] = None
    error_detail: Optional[str] = None
    progress: Optional[str] = None   # last X-Progress value seen while running

    @classmethod
    def from_handle(cls, handle: JobHandle) -> "ExportJob":
        return cls(job_id=handle.job_id, status_endpoint=handle.status_endpoint)

    @property
    def handle(self) -> Optional[JobHandle]:
        if self.job_id is None or self.status_endpoint is None:
            return None
        return JobHandle(job_id=self.job_id, status_endpoint=self.status_endpoint)

    @property
    def is_terminal(self) -> bool:
        return self.state.is_terminal

    def _require_in_progress(self, target: JobState) -> None:
        if self.is_terminal:
            raise InvalidTransitionError(
                f"Export job {self.job_id!r} is already {self.state.value}; "
                f"cannot move to {target.value}"
            )

    def complete(self, outputs: List[OutputFile], transaction_time: Optional[str]) -> None:
        """Mark job as completed with its manifest outputs."""
        self._require_in_progress(JobState.COMPLETED)
        self.state = JobState.COMPLETED
        self.outputs = list(outputs)
        self.transaction_time = transaction_time

    def fail(self, error_detail: str) -> None:
        """Mark job as failed with a human-readable error message."""
        self._require_in_progress(JobState.FAILED)
        self.state = JobState.FAILED
        self.outputs = []
        self.error_detail = error_detail


@dataclass(frozen=True)
class ExportSnapshot:
    """Read-only view of the controller and its current job."""

    phase: ControllerPhase
    cancelled: bool = False
    request: Optional[ExportRequest] = None
    job_id: Optional[str] = None
    status_endpoint: Optional[str] = None
    state: Optional[JobState] = None
    outputs: Tuple[OutputFile, ...] = ()
    transaction_time: Optional[str] = None
    error_detail: Optional[str] = None
    progress: Optional[str] = None
    polls_issued: int = 0

    @classmethod
    def of(
        cls,
        phase: ControllerPhase,
        job: Optional[ExportJob],
        request: Optional[ExportRequest] = None,
        cancelled: bool = False,
        polls_issued: int = 0,
    ) -> "ExportSnapshot":
        if job is None:
            return cls(
                phase=phase, cancelled=cancelled, request=request, polls_issued=polls_issued
            )
        return cls(
            phase=phase,
            cancelled=cancelled,
            request=request,
            job_id=job.job_id,
            status_endpoint=job.status_endpoint,
            state=job.state,
            outputs=tuple(job.outputs),
            transaction_time=job.transaction_time,
            error_detail=job.error_detail,
            progress=job.progress,
            polls_issued=polls_issued,
        )

    def output_by_type(self, resource_type: str) -> List[OutputFile]:
        """Return all output files for the given resource type."""
        return [o for o in self.outputs if o.resource_type == resource_type]
