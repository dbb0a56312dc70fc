"""FHIR Bulk Data client for fhirbulk.

Handles all HTTP communication with the FHIR server: $export kick-off,
status polling, NDJSON file streaming and whole-file fetches. Translates
status codes and headers into ExportAck / PollStatus so that nothing above
this layer looks at raw HTTP.

No retries live here. A failed request raises TransportError and the
caller decides what to do about it.

Protocol notes:
- Kick-off: GET {base}/{group}/$export with "Prefer: respond-async".
  202 + Content-Location means accepted; 200 means the server answered
  synchronously.
- Status: 202 while running (optionally with X-Progress), 200 with the
  completion manifest, anything else is an error (OperationOutcome body).
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterator, List, Optional
from urllib.parse import urlencode, urlsplit

import requests
from requests import Session
from requests.adapters import HTTPAdapter

from config.defaults import FHIR_JSON_MEDIA_TYPE, FHIR_NDJSON_MEDIA_TYPE
from config.settings import ExportSettings
from fhirbulk.clients.base import ChunkStream, TransportAdapter, TransportError
from fhirbulk.models.export import ExportRequest, JobHandle, OutputFile
from fhirbulk.models.transport import ExportAck, PollStatus

logger = logging.getLogger(__name__)


def build_export_path(request: ExportRequest) -> str:
    """Build the relative kick-off path, e.g. "/Group/G1/$export?_type=Patient"."""
    path = f"/{request.group_reference}/$export"
    params = request.to_query_params()
    if params:
        path += f"?{urlencode(params)}"
    return path


def job_handle_from_location(location: str) -> JobHandle:
    """Derive a JobHandle from a kick-off Content-Location value.

    The job id is the last path segment of the status URL.
    """
    segments = [s for s in urlsplit(location).path.split("/") if s]
    job_id = segments[-1] if segments else "unknown"
    return JobHandle(job_id=job_id, status_endpoint=location)


def build_curl_command(
    url: str,
    method: str = "GET",
    headers: Optional[Dict[str, str]] = None,
    body: Optional[str] = None,
) -> str:
    """Render a request as a cURL command line for debugging.

    Args:
        url: Absolute request URL.
        method: HTTP method.
        headers: Extra headers; Accept/Content-Type for FHIR JSON are always included.
        body: Optional request body.

    Returns:
        Multi-line cURL command string.
    """
    all_headers = {"Accept": FHIR_JSON_MEDIA_TYPE, "Content-Type": FHIR_JSON_MEDIA_TYPE}
    all_headers.update(headers or {})

    curl = f"curl -X {method} '{url}'"
    for name, value in all_headers.items():
        curl += f" \\\n  -H '{name}: {value}'"
    if body:
        curl += f" \\\n  -d '{body}'"
    return curl


def _safe_json(resp: requests.Response) -> Optional[Any]:
    """Parse a response body as JSON, returning None when it is empty or invalid."""
    if not resp.content:
        return None
    try:
        return resp.json()
    except ValueError:
        logger.warning("FHIR server returned a non-JSON body (HTTP %d)", resp.status_code)
        return None


def _outcome_diagnostics(body: Any) -> Optional[str]:
    """Join the diagnostics of an OperationOutcome body, if there are any."""
    if not isinstance(body, dict) or body.get("resourceType") != "OperationOutcome":
        return None
    issues = body.get("issue")
    messages: List[str] = []
    for issue in issues if isinstance(issues, list) else []:
        if not isinstance(issue, dict):
            continue
        details = issue.get("details")
        text = details.get("text") if isinstance(details, dict) else None
        message = issue.get("diagnostics") or text
        if message and isinstance(message, str):
            messages.append(message)
    return "; ".join(messages) or None


def _parse_manifest_outputs(body: Any) -> List[OutputFile]:
    if not isinstance(body, dict):
        return []
    outputs: List[OutputFile] = []
    entries = body.get("output")
    for entry in entries if isinstance(entries, list) else []:
        if not isinstance(entry, dict) or not entry.get("url"):
            logger.warning("Skipping manifest output entry without url: %r", entry)
            continue
        outputs.append(OutputFile(resource_type=entry.get("type", ""), locator=entry["url"]))
    return outputs


class ResponseStream(ChunkStream):
    """ChunkStream over a streaming requests.Response."""

    def __init__(self, response: requests.Response, chunk_size: int) -> None:
        self._response = response
        self._chunk_size = chunk_size
        self.closed = False

    def __iter__(self) -> Iterator[bytes]:
        try:
            for chunk in self._response.iter_content(chunk_size=self._chunk_size):
                if chunk:
                    yield chunk
        except requests.exceptions.RequestException as exc:
            raise TransportError(f"Stream read failed: {exc}") from exc

    def close(self) -> None:
        if not self.closed:
            self.closed = True
            self._response.close()


class FHIRClient(TransportAdapter):
    """Client for the FHIR Bulk Data export endpoints.

    Args:
        settings: Runtime settings (base URL, timeout, chunk size).
            Defaults to ExportSettings() built from the environment.
    """

    def __init__(self, settings: Optional[ExportSettings] = None) -> None:
        self.settings = settings or ExportSettings()
        self.base_url = self.settings.fhir_base
        self.request_timeout = self.settings.request_timeout

        self._session = Session()
        adapter = HTTPAdapter(max_retries=0)
        self._session.mount("https://", adapter)
        self._session.mount("http://", adapter)
        self._session.headers.update({"Accept": FHIR_JSON_MEDIA_TYPE})

    def resolve_url(self, locator: str) -> str:
        """Join a relative locator to the base URL; absolute URLs pass through."""
        if locator.startswith(("http://", "https://")):
            return locator
        return f"{self.base_url}/{locator.lstrip('/')}"

    def _get(self, url: str, **kwargs: Any) -> requests.Response:
        try:
            return self._session.get(url, timeout=self.request_timeout, **kwargs)
        except requests.exceptions.Timeout as exc:
            logger.error("FHIR request timed out after %ss: %s", self.request_timeout, url)
            raise TransportError(f"Request timed out: {url}") from exc
        except requests.exceptions.RequestException as exc:
            logger.error("FHIR request failed: %s (%s)", url, exc)
            raise TransportError(f"Request failed: {exc}") from exc

    def export_url(self, request: ExportRequest) -> str:
        return self.resolve_url(build_export_path(request))

    def request_export(self, request: ExportRequest, prefer_async: bool = True) -> ExportAck:
        url = self.export_url(request)
        headers = {"Prefer": "respond-async"} if prefer_async else {}
        logger.debug("FHIR $export kick-off: %s", url)

        resp = self._get(url, headers=headers)

        if resp.status_code == 202:
            location = resp.headers.get("Content-Location")
            if not location:
                logger.warning("Export accepted (202) without a Content-Location header")
                return ExportAck(status_code=202, accepted=True)
            return ExportAck(
                status_code=202, accepted=True, job_handle=job_handle_from_location(location)
            )

        body = _safe_json(resp)
        if resp.status_code != 200:
            logger.warning("Export kick-off returned HTTP %d", resp.status_code)
        return ExportAck(status_code=resp.status_code, accepted=False, immediate_body=body)

    def poll_status(self, handle: JobHandle) -> PollStatus:
        resp = self._get(self.resolve_url(handle.status_endpoint))

        if resp.status_code == 202:
            return PollStatus(
                status_code=202, done=False, progress=resp.headers.get("X-Progress")
            )

        body = _safe_json(resp)
        if resp.status_code == 200:
            return PollStatus(
                status_code=200,
                done=True,
                outputs=_parse_manifest_outputs(body),
                transaction_time=body.get("transactionTime") if isinstance(body, dict) else None,
            )

        message = f"Status check failed with {resp.status_code}"
        diagnostics = _outcome_diagnostics(body)
        if diagnostics:
            message += f": {diagnostics}"
        return PollStatus(status_code=resp.status_code, done=True, error_message=message)

    def open_stream(self, locator: str) -> ResponseStream:
        url = self.resolve_url(locator)
        resp = self._get(url, stream=True, headers={"Accept": FHIR_NDJSON_MEDIA_TYPE})
        if not resp.ok:
            resp.close()
            raise TransportError(
                f"Failed to open NDJSON file {url}: HTTP {resp.status_code}",
                status_code=resp.status_code,
            )
        return ResponseStream(resp, chunk_size=self.settings.stream_chunk_size)

    def fetch_text(self, locator: str) -> str:
        url = self.resolve_url(locator)
        resp = self._get(url, headers={"Accept": FHIR_NDJSON_MEDIA_TYPE})
        if not resp.ok:
            raise TransportError(
                f"Failed to fetch NDJSON file {url}: HTTP {resp.status_code}",
                status_code=resp.status_code,
            )
        return resp.text

    def close(self) -> None:
        """Close the underlying HTTP session."""
        self._session.close()

    def __enter__(self) -> "FHIRClient":
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()
