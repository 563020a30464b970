"""
LedgerPolicy -- Tunable rules for the balance and revenue engines.

The kernel never reads configuration.  ``studio_config.bridges`` translates
the loaded YAML into this frozen value and services hand it to the engines.
The defaults reproduce the studio's established behaviour, so engines built
without a policy behave exactly like engines built from the default config.
"""

from dataclasses import dataclass
from datetime import date


@dataclass(frozen=True, slots=True)
class LedgerPolicy:
    """
    Contract:
        Immutable; safe to share across threads and engine instances.
    Guarantees:
        - ``open_window_end`` is the end used for passes without an expiry
          date (and without a later pass truncating the window).
        - ``auto_consume_unmarked`` enables counting unmarked past lessons
          inside a consecutive pass window as attended.
    """

    open_window_end: date = date.max
    auto_consume_unmarked: bool = True


DEFAULT_LEDGER_POLICY = LedgerPolicy()
