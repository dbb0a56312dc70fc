"""fhirbulk export package.

Export job state machine and the timer that drives its polling.
"""

from fhirbulk.export.controller import ControllerStateError, ExportJobController
from fhirbulk.export.poller import PollTimer

__all__ = [
    "ControllerStateError",
    "ExportJobController",
    "PollTimer",
]
