"""
StudioConfig schema.

The human-authored, reviewable configuration of a studio deployment.  YAML
files are parsed into these frozen types by the loader; bridges turn them
into kernel inputs (LedgerPolicy, Clock, logging setup).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date


@dataclass(frozen=True)
class LedgerPolicyDef:
    """Rules handed to the balance and revenue engines."""

    open_window_end: date = date.max
    auto_consume_unmarked: bool = True


@dataclass(frozen=True)
class ClockDef:
    """Timezone that defines the studio's calendar day."""

    timezone: str = "UTC"


@dataclass(frozen=True)
class LoggingDef:
    level: str = "INFO"


@dataclass(frozen=True)
class DatabaseDef:
    url: str = "sqlite:///studio.db"
    echo: bool = False


@dataclass(frozen=True)
class StudioConfig:
    """Complete configuration of one studio deployment."""

    config_id: str
    version: int
    ledger: LedgerPolicyDef = field(default_factory=LedgerPolicyDef)
    clock: ClockDef = field(default_factory=ClockDef)
    logging: LoggingDef = field(default_factory=LoggingDef)
    database: DatabaseDef = field(default_factory=DatabaseDef)
    checksum: str = ""
