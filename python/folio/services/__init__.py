"""Business logic services.

This package holds the domain core: the document store, slug registry,
tree resolver, publication service, public access gateway and the autosave
queue. Services are called by route handlers and own all database access.
"""

from folio.services.autosave import AutosaveQueue, DraftStatus
from folio.services.documents import DeletePolicy
from folio.services.locks import PublishLockRegistry, publish_locks

__all__ = [
    "AutosaveQueue",
    "DraftStatus",
    "DeletePolicy",
    "PublishLockRegistry",
    "publish_locks",
]
