"""fhirbulk utilities package.

Stateless helpers with no external calls.
"""

from fhirbulk.utils.date_utils import parse_transaction_time, to_fhir_instant
from fhirbulk.utils.logging_utils import configure_logging, get_job_logger, get_logger

__all__ = [
    "to_fhir_instant",
    "parse_transaction_time",
    "configure_logging",
    "get_logger",
    "get_job_logger",
]
