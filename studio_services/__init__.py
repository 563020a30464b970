"""
studio_services -- Package init and public API.

Responsibility:
    Stateful orchestration that composes the pure engines (studio_engines/)
    with database sessions and the injected clock.  This is the only layer
    that may hold a database session or ask what day it is.

Architecture position:
    Services -- stateful orchestration over engines + kernel.

        studio_services/ -> studio_engines/  (allowed)
        studio_services/ -> studio_kernel/   (allowed)
        studio_engines/  -> studio_services/ (FORBIDDEN)
        studio_kernel/   -> studio_services/ (FORBIDDEN)
"""

from studio_kernel.logging_config import get_logger

logger = get_logger("services")

from studio_services.ledger_service import LedgerService

__all__ = [
    "LedgerService",
]
