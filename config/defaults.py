"""fhirbulk — All default values and configuration constants.

All tuneable values live here. Never hard-code magic numbers in source files.
Import constants from this module; override via ExportSettings at runtime.
"""

# ── FHIR server ────────────────────────────────────────────────────────────────
# Base URL of the FHIR server. Relative export/status/file locators are joined to it.
# Override via the FHIR_BASE environment variable.
FHIR_BASE_URL: str = "https://fpas-aks129s-projects.vercel.app/fhir"

# Media types sent in Accept headers
FHIR_JSON_MEDIA_TYPE: str = "application/fhir+json"
FHIR_NDJSON_MEDIA_TYPE: str = "application/fhir+ndjson"

# HTTP request timeout for kick-off, status and file requests (seconds)
REQUEST_TIMEOUT: int = 30

# ── Bulk export kick-off ───────────────────────────────────────────────────────
# Group whose members are exported when no group is given on the command line
DEFAULT_GROUP_REFERENCE: str = "Group/switching-members-2024"

# Resource types requested when no _type filter is given on the command line
DEFAULT_RESOURCE_TYPES: tuple = ("Patient", "Coverage", "Claim", "ClaimResponse")

# ── Status polling ─────────────────────────────────────────────────────────────
# Seconds between successive status polls of an in-progress export job
POLL_INTERVAL_SECONDS: float = 3.0

# ── NDJSON consumption ────────────────────────────────────────────────────────
# Bytes requested per read when streaming an output file
STREAM_CHUNK_SIZE: int = 64 * 1024

# Number of decoded rows shown in an output file preview
PREVIEW_ROWS: int = 10

# Characters of a malformed line echoed into the decode-failure warning
DECODE_WARNING_PREVIEW_CHARS: int = 200

# ── Logging ────────────────────────────────────────────────────────────────────
DEFAULT_LOG_LEVEL: str = "INFO"
