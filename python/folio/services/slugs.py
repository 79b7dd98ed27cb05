"""Slug registry.

Enforces uniqueness of human-readable identifiers within a scope:
- space: live documents of one space (scope_id = space id)
- publication: snapshot documents of one publication (scope_id = publication id)
- global: public publication slugs (scope_id = GLOBAL_SCOPE_ID, owner = space id)

Slugs are canonicalized to lowercase before storage, so uniqueness is
case-insensitive. Reservation is an INSERT against a unique constraint inside
a SAVEPOINT: of two concurrent reservations of the same slug exactly one
commits and the other gets ConflictError. All functions run inside the
caller's transaction and never commit.
"""

import re
from collections.abc import Iterable
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from folio.db.models import SlugReservation, SlugScope
from folio.errors import ApiErrorCode, ConflictError, InvalidRequestError
from folio.logging import get_logger

logger = get_logger(__name__)

SLUG_PATTERN = re.compile(r"^[a-z0-9]+(-[a-z0-9]+)*$")
SLUG_MIN_LENGTH = 3
SLUG_MAX_LENGTH = 50

# Numbered suffixes tried when suggesting an alternative slug.
MAX_SUGGESTION_ATTEMPTS = 100


def normalize_slug(candidate: str) -> str:
    """Validate a slug candidate and return its canonical form.

    Args:
        candidate: Raw slug (surrounding whitespace and case are ignored).

    Returns:
        The lowercase slug.

    Raises:
        InvalidRequestError: If the slug is not 3-50 characters of lowercase
            letters and digits separated by single hyphens.
    """
    slug = (candidate or "").strip().lower()
    if not SLUG_MIN_LENGTH <= len(slug) <= SLUG_MAX_LENGTH:
        raise InvalidRequestError(
            ApiErrorCode.E_SLUG_INVALID,
            f"Slug must be {SLUG_MIN_LENGTH}-{SLUG_MAX_LENGTH} characters",
        )
    if not SLUG_PATTERN.match(slug):
        raise InvalidRequestError(
            ApiErrorCode.E_SLUG_INVALID,
            "Slug may only contain lowercase letters, digits and single hyphens",
        )
    return slug


def is_available(db: Session, scope: SlugScope, scope_id: UUID, slug: str) -> bool:
    """Check whether a slug is free in the scope (case-insensitive)."""
    existing = db.scalar(
        select(SlugReservation.id).where(
            SlugReservation.scope == scope.value,
            SlugReservation.scope_id == scope_id,
            SlugReservation.slug == slug.strip().lower(),
        )
    )
    return existing is None


def get_owner(db: Session, scope: SlugScope, scope_id: UUID, slug: str) -> UUID | None:
    """Return the owner id recorded for a reserved slug, if any."""
    return db.scalar(
        select(SlugReservation.owner_id).where(
            SlugReservation.scope == scope.value,
            SlugReservation.scope_id == scope_id,
            SlugReservation.slug == slug,
        )
    )


def suggest_slug(db: Session, scope: SlugScope, scope_id: UUID, slug: str) -> str | None:
    """Suggest a free variant of a taken slug by appending -2, -3, ...

    Returns None if no variant is free within MAX_SUGGESTION_ATTEMPTS.
    """
    taken = set(
        db.scalars(
            select(SlugReservation.slug).where(
                SlugReservation.scope == scope.value,
                SlugReservation.scope_id == scope_id,
                SlugReservation.slug.startswith(slug[: SLUG_MAX_LENGTH - 4]),
            )
        )
    )
    for n in range(2, MAX_SUGGESTION_ATTEMPTS + 2):
        suffix = f"-{n}"
        base = slug[: SLUG_MAX_LENGTH - len(suffix)].rstrip("-")
        candidate = base + suffix
        if candidate not in taken:
            return candidate
    return None


def reserve(
    db: Session,
    scope: SlugScope,
    scope_id: UUID,
    candidate: str,
    owner_id: UUID | None = None,
) -> str:
    """Atomically check and reserve a slug in a scope.

    Args:
        db: Database session (inside the caller's transaction).
        scope: Uniqueness scope.
        scope_id: Scope instance (space id, publication id, or GLOBAL_SCOPE_ID).
        candidate: Slug candidate.
        owner_id: Entity that holds the slug.

    Returns:
        The canonical slug that was reserved.

    Raises:
        InvalidRequestError: If the candidate is malformed.
        ConflictError: If the slug is already held in the scope. The error
            carries a suggested alternative when one is free.
    """
    slug = normalize_slug(candidate)

    try:
        with db.begin_nested():
            db.add(
                SlugReservation(scope=scope.value, scope_id=scope_id, slug=slug, owner_id=owner_id)
            )
    except IntegrityError as exc:
        logger.info("slug_conflict", scope=scope.value, scope_id=str(scope_id), slug=slug)
        raise ConflictError(
            ApiErrorCode.E_SLUG_TAKEN,
            f"Slug '{slug}' is already taken",
            suggestion=suggest_slug(db, scope, scope_id, slug),
        ) from exc

    return slug


def reserve_many(
    db: Session,
    scope: SlugScope,
    scope_id: UUID,
    entries: Iterable[tuple[str, UUID]],
) -> None:
    """Reserve a batch of (slug, owner_id) pairs all-or-nothing.

    Raises:
        ConflictError: If any slug in the batch is already held or repeated.
    """
    rows = [
        SlugReservation(scope=scope.value, scope_id=scope_id, slug=normalize_slug(slug), owner_id=owner)
        for slug, owner in entries
    ]
    if not rows:
        return

    try:
        with db.begin_nested():
            db.add_all(rows)
    except IntegrityError as exc:
        logger.info("slug_batch_conflict", scope=scope.value, scope_id=str(scope_id), size=len(rows))
        raise ConflictError(ApiErrorCode.E_SLUG_TAKEN, "Duplicate slug in batch") from exc


def release(db: Session, scope: SlugScope, scope_id: UUID, slug: str) -> bool:
    """Release a slug in a scope.

    Returns:
        True if a reservation was removed.
    """
    result = db.execute(
        delete(SlugReservation).where(
            SlugReservation.scope == scope.value,
            SlugReservation.scope_id == scope_id,
            SlugReservation.slug == slug.strip().lower(),
        )
    )
    return result.rowcount > 0


def release_owned(db: Session, scope: SlugScope, scope_id: UUID, owner_ids: Iterable[UUID]) -> int:
    """Release every slug in a scope held by the given owners."""
    owner_ids = list(owner_ids)
    if not owner_ids:
        return 0
    result = db.execute(
        delete(SlugReservation).where(
            SlugReservation.scope == scope.value,
            SlugReservation.scope_id == scope_id,
            SlugReservation.owner_id.in_(owner_ids),
        )
    )
    return result.rowcount


def release_scope(db: Session, scope: SlugScope, scope_id: UUID) -> int:
    """Release every slug of one scope instance."""
    result = db.execute(
        delete(SlugReservation).where(
            SlugReservation.scope == scope.value,
            SlugReservation.scope_id == scope_id,
        )
    )
    return result.rowcount
