#!/usr/bin/env python3
"""fhirbulk CLI — run a FHIR bulk export and inspect its NDJSON outputs.

Usage:
    python scripts/run_export.py --group Group/switching-members-2024
    python scripts/run_export.py --group Group/G1 --types Patient Coverage --since 2024-01-01
    python scripts/run_export.py --group Group/G1 --stream --max-rows 1000
    python scripts/run_export.py --group Group/G1 --print-curl
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, List, Optional

# Ensure project root is on sys.path for consistent import resolution
_ROOT = Path(__file__).resolve().parent.parent
if str(_ROOT) not in sys.path:
    sys.path.insert(0, str(_ROOT))

from config.defaults import (  # noqa: E402
    DEFAULT_GROUP_REFERENCE,
    DEFAULT_LOG_LEVEL,
    DEFAULT_RESOURCE_TYPES,
    PREVIEW_ROWS,
)
from config.settings import ExportSettings  # noqa: E402
from fhirbulk.clients.base import TransportError  # noqa: E402
from fhirbulk.clients.fhir_client import FHIRClient, build_curl_command  # noqa: E402
from fhirbulk.export.controller import ExportJobController  # noqa: E402
from fhirbulk.models.export import ExportRequest, ExportSnapshot, JobState  # noqa: E402
from fhirbulk.ndjson.reader import preview_ndjson, stream_rows  # noqa: E402
from fhirbulk.utils.date_utils import parse_transaction_time  # noqa: E402
from fhirbulk.utils.logging_utils import configure_logging  # noqa: E402

logger = logging.getLogger("fhirbulk.run_export")


def build_arg_parser() -> argparse.ArgumentParser:
    """Build the argparse argument parser."""
    parser = argparse.ArgumentParser(
        prog="run_export",
        description="fhirbulk — FHIR Bulk Data export runner and NDJSON previewer",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )

    # ── Export parameters ───────────────────────────────────────────────────────
    parser.add_argument(
        "--group",
        type=str,
        default=DEFAULT_GROUP_REFERENCE,
        help="Group resource whose members are exported",
    )
    parser.add_argument(
        "--types",
        type=str,
        nargs="*",
        default=list(DEFAULT_RESOURCE_TYPES),
        metavar="TYPE",
        help="Resource types for the _type filter (pass no values to export all types)",
    )
    parser.add_argument(
        "--since",
        type=str,
        default=None,
        help="Only include resources modified after this timestamp (_since)",
    )

    # ── Server and polling ──────────────────────────────────────────────────────
    parser.add_argument(
        "--fhir-base",
        type=str,
        default=None,
        help="FHIR server base URL (defaults to $FHIR_BASE or the built-in server)",
    )
    parser.add_argument(
        "--poll-interval",
        type=float,
        default=None,
        help="Seconds between status polls (defaults to $EXPORT_POLL_INTERVAL or 3.0)",
    )
    parser.add_argument(
        "--max-polls",
        type=int,
        default=None,
        help="Give up waiting after this many status polls",
    )

    # ── Output consumption ──────────────────────────────────────────────────────
    parser.add_argument(
        "--preview-rows",
        type=int,
        default=PREVIEW_ROWS,
        help="Rows shown per output file in preview mode",
    )
    parser.add_argument(
        "--stream",
        action="store_true",
        default=False,
        help="Stream each output file instead of fetching it whole",
    )
    parser.add_argument(
        "--max-rows",
        type=int,
        default=None,
        help="Stop streaming each file after this many rows",
    )

    # ── Debugging and logging ───────────────────────────────────────────────────
    parser.add_argument(
        "--print-curl",
        action="store_true",
        default=False,
        help="Print the kick-off request as a cURL command and exit",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default=DEFAULT_LOG_LEVEL,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging verbosity level",
    )
    parser.add_argument(
        "--log-file",
        type=str,
        default=None,
        help="Also write log records to this file",
    )

    return parser


def args_to_settings(args: argparse.Namespace) -> ExportSettings:
    """Build ExportSettings, letting CLI flags override the environment."""
    settings = ExportSettings(log_level=args.log_level)
    if args.fhir_base:
        settings.fhir_base = args.fhir_base.rstrip("/")
    if args.poll_interval is not None:
        if args.poll_interval <= 0:
            raise ValueError("--poll-interval must be positive")
        settings.poll_interval = args.poll_interval
    return settings


def args_to_request(args: argparse.Namespace) -> ExportRequest:
    return ExportRequest(
        group_reference=args.group,
        resource_types=tuple(args.types or ()),
        since=args.since,
    )


def _print_snapshot(snapshot: ExportSnapshot) -> None:
    print(f"Job ID:           {snapshot.job_id or '-'}")
    print(f"Status URL:       {snapshot.status_endpoint or '-'}")
    print(f"State:            {snapshot.state.value if snapshot.state else snapshot.phase.value}")
    if snapshot.transaction_time:
        when = parse_transaction_time(snapshot.transaction_time)
        shown = when.strftime("%Y-%m-%d %H:%M:%S %Z") if when else snapshot.transaction_time
        print(f"Transaction time: {shown}")
    if snapshot.error_detail:
        print(f"Error:            {snapshot.error_detail}")
    for output in snapshot.outputs:
        print(f"  {output.resource_type:<20} {output.locator}")


def _consume_outputs(client: FHIRClient, snapshot: ExportSnapshot, args: argparse.Namespace) -> None:
    for output in snapshot.outputs:
        print(f"\n== {output.resource_type}: {output.locator}")
        try:
            if args.stream:
                shown: List[Any] = []

                def on_row(row: Any, index: int) -> None:
                    if index < args.preview_rows:
                        shown.append(row)

                summary = stream_rows(
                    client.open_stream(output.locator), on_row, max_rows=args.max_rows
                )
                print(
                    f"Streamed {summary.rows_delivered} rows "
                    f"({len(summary.skipped)} malformed skipped"
                    f"{', stopped at --max-rows' if summary.stopped_early else ''})"
                )
                rows = shown
            else:
                preview = preview_ndjson(client, output.locator, n=args.preview_rows)
                print(
                    f"Total rows: {preview.total_row_count} | "
                    f"Showing first {len(preview.preview_rows)}"
                )
                rows = preview.preview_rows
        except TransportError as exc:
            logger.error("Could not read %s: %s", output.locator, exc)
            continue

        for index, row in enumerate(rows, start=1):
            label = ""
            if isinstance(row, dict):
                label = f" - {row.get('resourceType', '')} ({row.get('id', '')})"
            print(f"Row {index}{label}")
            print(json.dumps(row, indent=2, ensure_ascii=False))


def run(args: argparse.Namespace, client: Optional[FHIRClient] = None) -> int:
    """Run one export end to end. Returns the process exit code."""
    settings = args_to_settings(args)
    request = args_to_request(args)
    client = client or FHIRClient(settings)

    with client:
        if args.print_curl:
            print(build_curl_command(client.export_url(request), headers={"Prefer": "respond-async"}))
            return 0

        controller = ExportJobController(client, poll_interval=settings.poll_interval)
        snapshot = controller.start(request)
        if snapshot.state is JobState.IN_PROGRESS:
            snapshot = controller.poll_until_done(max_polls=args.max_polls)

        _print_snapshot(snapshot)
        if snapshot.state is not JobState.COMPLETED:
            return 1

        _consume_outputs(client, snapshot, args)
    return 0


def main() -> None:
    """CLI entrypoint."""
    parser = build_arg_parser()
    args = parser.parse_args()

    configure_logging(log_level=args.log_level, log_file=args.log_file)

    try:
        sys.exit(run(args))
    except ValueError as exc:
        parser.error(str(exc))
    except KeyboardInterrupt:
        logger.info("Export interrupted by user")
        sys.exit(130)


if __name__ == "__main__":
    main()
