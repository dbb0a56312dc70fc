"""fhirbulk clients package.

Transport layer only: no job state or NDJSON decoding in this layer.
"""

from fhirbulk.clients.base import ChunkStream, TransportAdapter, TransportError
from fhirbulk.clients.fhir_client import (
    FHIRClient,
    ResponseStream,
    build_curl_command,
    build_export_path,
    job_handle_from_location,
)

__all__ = [
    "ChunkStream",
    "TransportAdapter",
    "TransportError",
    "FHIRClient",
    "ResponseStream",
    "build_curl_command",
    "build_export_path",
    "job_handle_from_location",
]
