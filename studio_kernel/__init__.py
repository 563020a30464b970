"""
Studio Kernel

Shared core of the tutoring studio ledger:
- Immutable domain records for lessons, passes and attendance marks
- Injectable clock (no ambient "today" inside calculations)
- Typed exceptions with machine-readable codes
- Structured JSON logging
- SQLAlchemy persistence and read-only selectors
"""

__version__ = "0.1.0"
