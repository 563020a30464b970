"""Selectors for the studio kernel (read side)."""

from studio_kernel.selectors.ledger_selector import LedgerSelector, LedgerSnapshot

__all__ = [
    "LedgerSelector",
    "LedgerSnapshot",
]
