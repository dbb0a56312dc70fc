"""fhirbulk — FHIR Bulk Data export tracking and NDJSON ingestion.

Public API surface:
    - ExportSettings: Runtime configuration
    - ExportRequest / ExportJobController: Start and poll an asynchronous $export
    - FHIRClient: requests-based transport for a FHIR server
    - count_rows / first_n_rows / parse_ndjson / stream_rows / preview_ndjson:
      NDJSON output-file consumption
"""

__version__ = "1.0.0"
__author__ = "fhirbulk Contributors"

from config.settings import ExportSettings
from fhirbulk.clients import FHIRClient, TransportAdapter, TransportError
from fhirbulk.export import ControllerStateError, ExportJobController, PollTimer
from fhirbulk.models import ControllerPhase, ExportRequest, ExportSnapshot, JobState
from fhirbulk.ndjson import count_rows, first_n_rows, parse_ndjson, preview_ndjson, stream_rows

__all__ = [
    "__version__",
    "ExportSettings",
    "FHIRClient",
    "TransportAdapter",
    "TransportError",
    "ControllerStateError",
    "ExportJobController",
    "PollTimer",
    "ControllerPhase",
    "ExportRequest",
    "ExportSnapshot",
    "JobState",
    "count_rows",
    "first_n_rows",
    "parse_ndjson",
    "preview_ndjson",
    "stream_rows",
]
