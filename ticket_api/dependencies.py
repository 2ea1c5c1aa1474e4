"""
Dependency wiring for the FastAPI app.
"""

from __future__ import annotations

import logging

from ticket_api.config import get_settings
from ticket_api.db import InMemoryTicketStore, SqlAlchemyTicketStore, TicketStore
from ticket_api.service import TicketService

logger = logging.getLogger(__name__)

_ticket_store: TicketStore | None = None


def get_ticket_store() -> TicketStore:
    """
    Return a singleton store so tickets persist across requests.
    """
    global _ticket_store
    if _ticket_store:
        return _ticket_store

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.database_url:
        logger.info("Using in-memory ticket store")
        _ticket_store = InMemoryTicketStore()
    else:
        _ticket_store = SqlAlchemyTicketStore(settings.database_url)
    return _ticket_store


def get_ticket_service() -> TicketService:
    settings = get_settings()
    return TicketService(
        get_ticket_store(), default_page_size=settings.default_page_size
    )
