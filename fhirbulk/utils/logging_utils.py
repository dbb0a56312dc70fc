"""Logging utilities for fhirbulk.

Provides structured logging with job_id context injection and YAML-based
configuration loading. All loggers are namespaced under 'fhirbulk'.
"""

from __future__ import annotations

import logging
import logging.config
import os
from pathlib import Path
from typing import Any, MutableMapping, Optional

import yaml


def configure_logging(
    config_path: Optional[str] = None,
    log_level: Optional[str] = None,
    log_file: Optional[str] = None,
) -> None:
    """Configure logging from the YAML configuration file.

    Falls back to basicConfig if the YAML file is not found.

    Args:
        config_path: Path to logging.yaml (defaults to config/logging.yaml).
        log_level: Override log level (e.g., "DEBUG", "INFO", "WARNING").
        log_file: Append log records to this file in addition to the console.
    """
    if config_path is None:
        config_path = str(Path(__file__).parent.parent.parent / "config" / "logging.yaml")

    if os.path.exists(config_path):
        with open(config_path, "r", encoding="utf-8") as f:
            cfg = yaml.safe_load(f)

        if log_file:
            file_handler = {
                "class": "logging.FileHandler",
                "level": "DEBUG",
                "filename": log_file,
                "encoding": "utf-8",
            }
            if "standard" in cfg.get("formatters", {}):
                file_handler["formatter"] = "standard"
            cfg.setdefault("handlers", {})["file"] = file_handler
            for logger_cfg in cfg.get("loggers", {}).values():
                logger_cfg.setdefault("handlers", []).append("file")

        if log_level and "loggers" in cfg:
            for logger_cfg in cfg["loggers"].values():
                logger_cfg["level"] = log_level.upper()

        logging.config.dictConfig(cfg)
    else:
        logging.basicConfig(
            level=getattr(logging, (log_level or "INFO").upper(), logging.INFO),
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            filename=log_file,
        )


def get_logger(name: str) -> logging.Logger:
    """Get a namespaced logger under 'fhirbulk'.

    Args:
        name: Module or component name (e.g., "export.controller").

    Returns:
        Logger instance with full 'fhirbulk.<name>' namespace.
    """
    if name.startswith("fhirbulk"):
        return logging.getLogger(name)
    return logging.getLogger(f"fhirbulk.{name}")


class JobContextAdapter(logging.LoggerAdapter):
    """Logger adapter that injects the export job_id into all log records.

    Usage:
        logger = get_job_logger("export.controller", job_id="J1")
        logger.info("Export completed")
        # Output: [INFO] fhirbulk.export.controller: [J1] Export completed
    """

    def process(
        self, msg: str, kwargs: MutableMapping[str, Any]
    ) -> tuple[str, MutableMapping[str, Any]]:
        job_id = self.extra.get("job_id") or "no-job"
        return f"[{job_id}] {msg}", kwargs


def get_job_logger(name: str, job_id: Optional[str]) -> JobContextAdapter:
    """Get a job-context-aware logger adapter.

    Args:
        name: Module or component name.
        job_id: Export job identifier, or None before a job has been accepted.

    Returns:
        LoggerAdapter that prefixes all messages with [job_id].
    """
    return JobContextAdapter(get_logger(name), {"job_id": job_id})
