"""Background poll timer for an ExportJobController.

Calls controller.tick() on a fixed interval from a daemon thread until the
controller settles (terminal job or cancelled) or the timer is stopped.
Ticks that land while a poll is still outstanding are skipped by the
controller itself.
"""

from __future__ import annotations

import logging
import threading
from typing import Optional

from fhirbulk.export.controller import ExportJobController

logger = logging.getLogger(__name__)


class PollTimer:
    """Drives an ExportJobController from a background thread.

    Args:
        controller: Controller whose job should be polled.
        interval: Seconds between ticks. Defaults to controller.poll_interval.
    """

    def __init__(self, controller: ExportJobController, interval: Optional[float] = None) -> None:
        self.controller = controller
        self.interval = controller.poll_interval if interval is None else interval
        self._stop = threading.Event()
        self._done = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.error: Optional[BaseException] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> "PollTimer":
        """Start ticking. The first poll happens one interval from now."""
        if self._thread is not None:
            raise RuntimeError("PollTimer can only be started once")
        self._thread = threading.Thread(
            target=self._run, name="fhirbulk-poll-timer", daemon=True
        )
        self._thread.start()
        return self

    def _run(self) -> None:
        try:
            while not self._stop.wait(self.interval):
                if self.controller.settled:
                    break
                self.controller.tick()
                if self.controller.settled:
                    break
        except Exception as exc:
            self.error = exc
            logger.exception("Poll timer stopped on unexpected error")
        finally:
            self._done.set()

    def stop(self) -> None:
        """Stop scheduling ticks. Does not wait for an outstanding poll."""
        self._stop.set()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until the timer has stopped ticking.

        Returns:
            True if the timer finished within the timeout.
        """
        return self._done.wait(timeout)

    def __enter__(self) -> "PollTimer":
        return self.start()

    def __exit__(self, *args: object) -> None:
        self.stop()
