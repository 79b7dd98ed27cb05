"""Coalesced autosave queue.

Editors stage partial edits as often as they like; successive patches of one
document merge latest-wins per field. Nothing touches the database until an
explicit flush, which applies the merged patch through the document store as
one update. The dirty flag is reported explicitly instead of being inferred
from timers.

The queue is process-local and guarded by a single lock. One instance lives
on the application state.
"""

import threading
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from folio.db.models import utcnow
from folio.errors import ApiError, ApiErrorCode, ConflictError, InvalidRequestError, NotFoundError
from folio.logging import get_logger
from folio.schemas.document import DocumentOut
from folio.services import documents

logger = get_logger(__name__)


@dataclass
class _Draft:
    changes: dict[str, Any]
    expected_revision: int | None
    staged_at: datetime


@dataclass(frozen=True)
class DraftStatus:
    """Snapshot of a document's autosave state."""

    document_id: UUID
    dirty: bool
    pending_fields: list[str] = field(default_factory=list)
    staged_at: datetime | None = None
    document: DocumentOut | None = None


class AutosaveQueue:
    """Latest-wins write coalescing per document."""

    def __init__(self, max_pending: int = 1000):
        self.max_pending = max_pending
        self._lock = threading.Lock()
        self._drafts: dict[UUID, _Draft] = {}

    def stage(
        self,
        db: Session,
        document_id: UUID,
        changes: Mapping[str, Any],
        expected_revision: int | None = None,
    ) -> DraftStatus:
        """Merge a patch into the pending draft of a document.

        Only live documents can be staged. The first expected_revision staged
        since the last flush is the one checked on flush; later ones are
        ignored.

        Raises:
            InvalidRequestError: If the patch names a non-editable field.
            NotFoundError: If the document is missing or deleted.
            ConflictError: If max_pending documents already hold drafts.
        """
        unknown = set(changes) - documents.EDITABLE_FIELDS
        if unknown:
            raise InvalidRequestError(
                ApiErrorCode.E_INVALID_REQUEST, f"Unknown fields: {', '.join(sorted(unknown))}"
            )
        documents.get_live_document_or_404(db, document_id)

        with self._lock:
            draft = self._drafts.get(document_id)
            if draft is None:
                if len(self._drafts) >= self.max_pending:
                    raise ConflictError(
                        ApiErrorCode.E_AUTOSAVE_FULL, "Too many documents with unsaved drafts"
                    )
                draft = _Draft(changes={}, expected_revision=expected_revision, staged_at=utcnow())
                self._drafts[document_id] = draft
            draft.changes.update(changes)
            draft.staged_at = utcnow()
            return self._status(document_id, draft)

    def status(self, document_id: UUID) -> DraftStatus:
        """Report whether a document has unsaved changes."""
        with self._lock:
            return self._status(document_id, self._drafts.get(document_id))

    def discard(self, document_id: UUID) -> bool:
        """Drop a pending draft. Returns True if one existed."""
        with self._lock:
            return self._drafts.pop(document_id, None) is not None

    def flush(self, db: Session, document_id: UUID) -> DraftStatus:
        """Write the pending draft of a document.

        Flushing a clean document changes nothing and returns the current
        document. If the write fails the draft is put back (merged under any
        edits staged meanwhile) and the error propagates; a draft for a
        missing document is dropped.
        """
        with self._lock:
            draft = self._drafts.pop(document_id, None)

        if draft is None:
            return DraftStatus(
                document_id=document_id,
                dirty=False,
                document=documents.get_document(db, document_id),
            )

        try:
            saved = documents.update_document(
                db, document_id, draft.changes, expected_revision=draft.expected_revision
            )
        except NotFoundError:
            raise
        except ApiError:
            with self._lock:
                newer = self._drafts.get(document_id)
                if newer is None:
                    self._drafts[document_id] = draft
                else:
                    newer.changes = {**draft.changes, **newer.changes}
                    newer.expected_revision = draft.expected_revision
            raise

        logger.info(
            "draft_flushed",
            document_id=str(document_id),
            fields=sorted(draft.changes),
            revision=saved.revision,
        )
        with self._lock:
            return self._status(document_id, self._drafts.get(document_id), document=saved)

    def __len__(self) -> int:
        with self._lock:
            return len(self._drafts)

    @staticmethod
    def _status(
        document_id: UUID, draft: _Draft | None, document: DocumentOut | None = None
    ) -> DraftStatus:
        if draft is None:
            return DraftStatus(document_id=document_id, dirty=False, document=document)
        return DraftStatus(
            document_id=document_id,
            dirty=True,
            pending_fields=sorted(draft.changes),
            staged_at=draft.staged_at,
            document=document,
        )
