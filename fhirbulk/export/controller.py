"""Export job controller: the $export lifecycle as an explicit state machine.

Phases: IDLE -> REQUESTING -> IN_PROGRESS -> COMPLETED | FAILED, plus an
orthogonal cancelled flag. The controller never schedules anything itself;
whoever drives it calls tick() once per interval (a PollTimer thread, the
cooperative poll_until_done() loop, or an event loop of the caller's own).

Concurrency rules:
- At most one poll is outstanding. A tick() that arrives while a poll is in
  flight is skipped rather than queued.
- The state lock is never held across a transport call, so cancel() and
  get_snapshot() never block on the network.
- A poll result is applied only if the job it was issued for is still the
  current job and the controller has not been cancelled in the meantime.

Expected failures (protocol violations, transport errors, error responses)
become FAILED job state with an error_detail; they are never raised to the
caller and never retried here.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Optional

from fhirbulk.clients.base import TransportAdapter, TransportError
from fhirbulk.models.export import (
    ControllerPhase,
    ExportJob,
    ExportRequest,
    ExportSnapshot,
    JobState,
)
from fhirbulk.models.transport import ExportAck, PollStatus
from fhirbulk.utils.logging_utils import get_job_logger

logger = logging.getLogger(__name__)

_PHASE_FOR_STATE = {
    JobState.IN_PROGRESS: ControllerPhase.IN_PROGRESS,
    JobState.COMPLETED: ControllerPhase.COMPLETED,
    JobState.FAILED: ControllerPhase.FAILED,
}


class ControllerStateError(RuntimeError):
    """Raised on controller misuse, e.g. polling before any export was started."""


def _ack_failure(ack: ExportAck) -> str:
    """Describe why a kick-off acknowledgment cannot start a job."""
    if ack.accepted:
        return "Export accepted but no job handle (Content-Location) was returned"
    if ack.status_code == 200:
        return (
            "Server answered the export synchronously (HTTP 200) although "
            "asynchronous processing was requested"
        )
    return f"Export failed with status {ack.status_code}"


class ExportJobController:
    """Owns one export attempt at a time and the job it produces.

    Args:
        transport: Capability used for kick-off and status requests.
        poll_interval: Seconds between polls in poll_until_done() and PollTimer.
            Defaults to ExportSettings().poll_interval.
    """

    def __init__(
        self,
        transport: TransportAdapter,
        poll_interval: Optional[float] = None,
    ) -> None:
        if poll_interval is None:
            from config.settings import ExportSettings

            poll_interval = ExportSettings().poll_interval
        if poll_interval <= 0:
            raise ValueError(f"poll_interval must be positive, got {poll_interval}")

        self.transport = transport
        self.poll_interval = poll_interval

        self._lock = threading.Lock()
        self._phase = ControllerPhase.IDLE
        self._request: Optional[ExportRequest] = None
        self._job: Optional[ExportJob] = None
        self._cancelled = False
        self._poll_in_flight = False
        self._polls_issued = 0
        self._generation = 0

    # ── Read side ──────────────────────────────────────────────────────────────

    @property
    def phase(self) -> ControllerPhase:
        return self._phase

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def settled(self) -> bool:
        """True once no further polling will happen (terminal or cancelled)."""
        with self._lock:
            return self._settled_locked()

    def _settled_locked(self) -> bool:
        return self._cancelled or (self._job is not None and self._job.is_terminal)

    def get_snapshot(self) -> ExportSnapshot:
        """Return a read-only copy of the current phase and job fields."""
        with self._lock:
            return self._snapshot_locked()

    def _snapshot_locked(self) -> ExportSnapshot:
        return ExportSnapshot.of(
            self._phase,
            self._job,
            request=self._request,
            cancelled=self._cancelled,
            polls_issued=self._polls_issued,
        )

    # ── Transitions ────────────────────────────────────────────────────────────

    def start(self, request: ExportRequest) -> ExportSnapshot:
        """Kick off a new export, discarding any previous job.

        Returns:
            Snapshot after the kick-off: IN_PROGRESS if the job was accepted,
            FAILED otherwise.
        """
        with self._lock:
            self._generation += 1
            generation = self._generation
            self._phase = ControllerPhase.REQUESTING
            self._request = request
            self._job = None
            self._cancelled = False
            self._poll_in_flight = False
            self._polls_issued = 0

        logger.info("Starting export for %s", request.group_reference)
        try:
            ack = self.transport.request_export(request, prefer_async=True)
            failure = None if ack.accepted and ack.job_handle is not None else _ack_failure(ack)
        except TransportError as exc:
            ack = None
            failure = str(exc)
        except Exception:
            with self._lock:
                if generation == self._generation:
                    self._phase = ControllerPhase.IDLE
                    self._request = None
            raise

        with self._lock:
            if generation != self._generation or self._cancelled:
                logger.info("Discarding kick-off result for a cancelled or replaced export")
                return self._snapshot_locked()

            if failure is None:
                self._job = ExportJob.from_handle(ack.job_handle)
                self._phase = ControllerPhase.IN_PROGRESS
                get_job_logger(__name__, self._job.job_id).info(
                    "Export accepted; polling %s every %.1fs",
                    self._job.status_endpoint,
                    self.poll_interval,
                )
            else:
                self._job = ExportJob(state=JobState.IN_PROGRESS)
                self._job.fail(failure)
                self._phase = ControllerPhase.FAILED
                if ack is None:
                    logger.error("Export kick-off failed: %s", failure)
                else:
                    logger.warning("Export kick-off rejected: %s", failure)
            return self._snapshot_locked()

    def tick(self) -> bool:
        """Poll the status endpoint once, unless polling is not due.

        A tick is a no-op (returns False, no request issued) when the job is
        terminal, the controller is cancelled, or a previous poll is still
        outstanding.

        Returns:
            True if a poll was issued and its result applied to the job.

        Raises:
            ControllerStateError: If called before start(), or while the
                kick-off request is still outstanding.
        """
        with self._lock:
            if self._phase is ControllerPhase.IDLE:
                raise ControllerStateError("tick() called before start()")
            if self._phase is ControllerPhase.REQUESTING and not self._cancelled:
                raise ControllerStateError("tick() called while the kick-off is outstanding")
            if self._settled_locked():
                return False
            if self._poll_in_flight:
                logger.debug("Skipping tick: previous poll has not returned")
                return False
            self._poll_in_flight = True
            self._polls_issued += 1
            generation = self._generation
            handle = self._job.handle
            job_log = get_job_logger(__name__, self._job.job_id)

        error: Optional[str] = None
        status: Optional[PollStatus] = None
        try:
            status = self.transport.poll_status(handle)
        except TransportError as exc:
            error = str(exc)
        finally:
            with self._lock:
                if generation == self._generation:
                    self._poll_in_flight = False

        with self._lock:
            if generation != self._generation or self._cancelled:
                job_log.debug("Discarding poll result: export was cancelled or replaced")
                return False
            self._apply_poll(status, error, job_log)
            return True

    def _apply_poll(
        self,
        status: Optional[PollStatus],
        error: Optional[str],
        job_log: logging.LoggerAdapter,
    ) -> None:
        job = self._job
        if status is None:
            job.fail(error or "Status poll failed")
            job_log.error("Status poll failed: %s", job.error_detail)
        elif status.failed:
            job.fail(status.error_message or f"Status check failed with {status.status_code}")
            job_log.warning("Export failed: %s", job.error_detail)
        elif status.done:
            job.complete(status.outputs, status.transaction_time)
            job_log.info(
                "Export completed with %d output file(s), transactionTime=%s",
                len(job.outputs),
                job.transaction_time,
            )
        else:
            job.progress = status.progress
            job_log.debug("Export still running (progress=%s)", status.progress)
        self._phase = _PHASE_FOR_STATE[job.state]

    def cancel(self) -> None:
        """Stop all further polling. Never blocks on an outstanding request.

        The job's last known fields stay readable; a poll that is in flight
        completes but its result is discarded.
        """
        with self._lock:
            if self._cancelled:
                return
            self._cancelled = True
            job_id = self._job.job_id if self._job is not None else None
        get_job_logger(__name__, job_id).info("Export polling cancelled")

    # ── Cooperative driver ─────────────────────────────────────────────────────

    def poll_until_done(
        self,
        sleep: Callable[[float], None] = time.sleep,
        max_polls: Optional[int] = None,
    ) -> ExportSnapshot:
        """Tick every poll_interval seconds until the job settles.

        Args:
            sleep: Sleep function (injectable for tests).
            max_polls: Give up (without cancelling) after this many polls.

        Returns:
            The final snapshot.
        """
        polls = 0
        while not self.settled:
            if max_polls is not None and polls >= max_polls:
                logger.warning("Stopped waiting after %d polls; job still running", polls)
                break
            self.tick()
            polls += 1
            if self.settled:
                break
            sleep(self.poll_interval)
        return self.get_snapshot()
