"""Shared pytest fixtures for fhirbulk tests.

Conventions:
- Fixture data lives in tests/fixtures/ as static NDJSON/JSON files
- Test doubles (ScriptedTransport, RecordingStream) live in tests/doubles.py
- FHIRClient tests mock HTTP calls at the requests.Session level
- No real external HTTP calls are made in any test
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict

import pytest

from fhirbulk.models.export import ExportRequest, OutputFile
from tests.doubles import ScriptedTransport, accepted, completed, running

_FIXTURES_DIR = Path(__file__).parent / "fixtures"


# ── Raw fixture data loaders ─────────────────────────────────────────────────────

@pytest.fixture(scope="session")
def patients_ndjson() -> str:
    """Patient NDJSON: 6 non-blank lines plus one blank; pat-004 is truncated (malformed)."""
    return (_FIXTURES_DIR / "sample_patients.ndjson").read_text(encoding="utf-8")


@pytest.fixture(scope="session")
def manifest_raw() -> Dict[str, Any]:
    """Completion manifest listing Patient and Coverage output files."""
    with open(_FIXTURES_DIR / "sample_manifest.json", encoding="utf-8") as f:
        return json.load(f)


# ── Model object fixtures ────────────────────────────────────────────────────────

@pytest.fixture
def export_request() -> ExportRequest:
    return ExportRequest(group_reference="G1")


@pytest.fixture
def scenario_transport() -> ScriptedTransport:
    """Accepted as J1, running twice, then completed with one Patient file."""
    return ScriptedTransport(
        ack=accepted("J1"),
        polls=[running(), running(), completed([OutputFile("Patient", "L1")], "T1")],
    )
