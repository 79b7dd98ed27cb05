"""Database module for Folio.

Provides engine creation, session management, transaction helpers, and ORM models.
"""

from folio.db.engine import create_db_engine, get_engine
from folio.db.models import (
    GLOBAL_SCOPE_ID,
    Base,
    Document,
    Publication,
    PublicationDocument,
    PublicationSlot,
    PublicationTheme,
    PublicationTombstone,
    SlugReservation,
    SlugScope,
    Space,
)
from folio.db.session import get_db, transaction

__all__ = [
    # Engine and session
    "create_db_engine",
    "get_engine",
    "get_db",
    "transaction",
    # Base
    "Base",
    # Enums
    "SlugScope",
    "PublicationTheme",
    "GLOBAL_SCOPE_ID",
    # Models
    "Space",
    "Document",
    "SlugReservation",
    "PublicationSlot",
    "Publication",
    "PublicationDocument",
    "PublicationTombstone",
]
