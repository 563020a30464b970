"""
Configuration Loader (``studio_config.loader``).

Responsibility
--------------
Loads a YAML configuration file and parses it into the typed
``studio_config.schema`` dataclasses.  Runtime callers use
``studio_config.get_active_config()`` instead of calling this directly.

Invariants enforced
-------------------
* Parse errors raise ``ValueError`` or ``KeyError`` with descriptive
  messages; optional sections fall back to schema defaults.
* Every parsed object is a frozen dataclass from ``schema.py``.
* ``compute_checksum`` produces a deterministic SHA-256 hash for
  configuration identity and change detection.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing ``config_id`` / ``version``  -> ``KeyError`` propagates.
* Invalid date, log level or version  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
import logging
from datetime import date
from pathlib import Path
from typing import Any

import yaml

from studio_config.schema import (
    ClockDef,
    DatabaseDef,
    LedgerPolicyDef,
    LoggingDef,
    StudioConfig,
)

_LOG_LEVELS = frozenset(logging.getLevelNamesMapping())


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_date(value: Any) -> date:
    """
    Parse a date from YAML (string or date object).

    Raises:
        ValueError: if ``value`` is not a valid date representation.
    """
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return date.fromisoformat(value)
    raise ValueError(f"Cannot parse date from {value!r}")


def parse_flag(value: Any, name: str) -> bool:
    """
    Read a YAML boolean.

    Raises:
        ValueError: for anything but true/false, including the quoted
            string "false".
    """
    if isinstance(value, bool):
        return value
    raise ValueError(f"{name} must be true or false, got {value!r}")


def parse_ledger(data: dict[str, Any]) -> LedgerPolicyDef:
    """Parse the ``ledger`` section."""
    defaults = LedgerPolicyDef()
    open_end = data.get("open_window_end")
    return LedgerPolicyDef(
        open_window_end=parse_date(open_end) if open_end else defaults.open_window_end,
        auto_consume_unmarked=parse_flag(
            data.get("auto_consume_unmarked", defaults.auto_consume_unmarked),
            "ledger.auto_consume_unmarked",
        ),
    )


def parse_clock(data: dict[str, Any]) -> ClockDef:
    return ClockDef(timezone=str(data.get("timezone", ClockDef().timezone)))


def parse_logging(data: dict[str, Any]) -> LoggingDef:
    level = str(data.get("level", LoggingDef().level)).upper()
    if level not in _LOG_LEVELS:
        raise ValueError(f"Unknown log level {level!r}")
    return LoggingDef(level=level)


def parse_database(data: dict[str, Any]) -> DatabaseDef:
    defaults = DatabaseDef()
    return DatabaseDef(
        url=str(data.get("url", defaults.url)),
        echo=parse_flag(data.get("echo", defaults.echo), "database.echo"),
    )


def parse_config(data: dict[str, Any]) -> StudioConfig:
    """
    Parse a complete ``StudioConfig`` from a dict.

    Raises:
        KeyError: if ``config_id`` or ``version`` is missing.
        ValueError: if ``version`` is not a positive integer or a section
            is invalid.
    """
    version = int(data["version"])
    if version < 1:
        raise ValueError(f"Configuration version must be positive, got {version}")

    return StudioConfig(
        config_id=str(data["config_id"]),
        version=version,
        ledger=parse_ledger(data.get("ledger") or {}),
        clock=parse_clock(data.get("clock") or {}),
        logging=parse_logging(data.get("logging") or {}),
        database=parse_database(data.get("database") or {}),
        checksum=compute_checksum(data),
    )


def compute_checksum(data: dict[str, Any]) -> str:
    """Deterministic SHA-256 of the canonical JSON form of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str, separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def load_config(path: Path) -> StudioConfig:
    """Load and parse one configuration file."""
    return parse_config(load_yaml_file(path))
