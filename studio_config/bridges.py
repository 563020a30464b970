"""
Config -> Kernel Bridges.

Functions that convert a StudioConfig into kernel inputs.  They live in
studio_config (the producer) because the kernel must NEVER import
studio_config.

Usage:
    from studio_config.bridges import build_clock, build_ledger_policy

    config = get_active_config()
    service = LedgerService(session, build_clock(config), build_ledger_policy(config))
"""

from __future__ import annotations

from studio_config.schema import StudioConfig
from studio_kernel.db.engine import init_engine_from_url
from studio_kernel.domain.clock import SystemClock
from studio_kernel.domain.policy import LedgerPolicy
from studio_kernel.logging_config import configure_logging


def build_ledger_policy(config: StudioConfig) -> LedgerPolicy:
    return LedgerPolicy(
        open_window_end=config.ledger.open_window_end,
        auto_consume_unmarked=config.ledger.auto_consume_unmarked,
    )


def build_clock(config: StudioConfig) -> SystemClock:
    return SystemClock(config.clock.timezone)


def apply_logging(config: StudioConfig) -> None:
    """Configure the studio_kernel logger hierarchy (idempotent)."""
    configure_logging(level=config.logging.level)


def init_database(config: StudioConfig):
    """Initialise the process-wide engine from the database section."""
    return init_engine_from_url(config.database.url, echo=config.database.echo)
