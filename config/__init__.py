"""fhirbulk configuration package."""

from config.defaults import (
    DEFAULT_GROUP_REFERENCE,
    DEFAULT_RESOURCE_TYPES,
    FHIR_BASE_URL,
    POLL_INTERVAL_SECONDS,
    PREVIEW_ROWS,
    REQUEST_TIMEOUT,
    STREAM_CHUNK_SIZE,
)
from config.settings import ExportSettings

__all__ = [
    "ExportSettings",
    "FHIR_BASE_URL",
    "POLL_INTERVAL_SECONDS",
    "PREVIEW_ROWS",
    "REQUEST_TIMEOUT",
    "STREAM_CHUNK_SIZE",
    "DEFAULT_GROUP_REFERENCE",
    "DEFAULT_RESOURCE_TYPES",
]
