"""Space service layer.

Spaces are the top-level owners of a document tree. Authorization lives
outside this core; every caller reaching these functions is trusted.
"""

from collections.abc import Mapping
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from folio.db.models import Space, utcnow
from folio.db.session import transaction
from folio.errors import ApiErrorCode, ConflictError, InvalidRequestError, NotFoundError
from folio.logging import get_logger
from folio.schemas.space import SlugAvailabilityOut, SpaceOut
from folio.services.slugs import MAX_SUGGESTION_ATTEMPTS, SLUG_MAX_LENGTH, normalize_slug

logger = get_logger(__name__)

MAX_NAME_LENGTH = 100
DEFAULT_LIMIT = 50
MAX_LIMIT = 200

# Fields an update may change.
EDITABLE_FIELDS = frozenset({"name", "slug", "description", "is_public"})


def get_space_or_404(db: Session, space_id: UUID, *, for_update: bool = False) -> Space:
    """Load a space or raise NotFoundError.

    With for_update the row is locked for the rest of the transaction; tree
    mutations take this lock to serialize sibling reindexing per space.
    """
    stmt = select(Space).where(Space.id == space_id)
    if for_update:
        stmt = stmt.with_for_update()
    space = db.scalar(stmt)
    if space is None:
        raise NotFoundError(ApiErrorCode.E_SPACE_NOT_FOUND, "Space not found")
    return space


def _validate_name(name: str | None) -> str:
    name = (name or "").strip()
    if not name or len(name) > MAX_NAME_LENGTH:
        raise InvalidRequestError(
            ApiErrorCode.E_INVALID_REQUEST, f"Name must be 1-{MAX_NAME_LENGTH} characters"
        )
    return name


def create_space(
    db: Session,
    name: str,
    slug: str,
    description: str | None = None,
    is_public: bool = False,
) -> SpaceOut:
    """Create a space.

    Raises:
        InvalidRequestError: If the name or slug is malformed.
        ConflictError: If another space already uses the slug.
    """
    name = _validate_name(name)
    slug = normalize_slug(slug)

    space = Space(name=name, slug=slug, description=description, is_public=is_public)
    try:
        with transaction(db):
            db.add(space)
            db.flush()
    except IntegrityError as exc:
        raise ConflictError(ApiErrorCode.E_SLUG_TAKEN, f"Space slug '{slug}' is already taken") from exc

    logger.info("space_created", space_id=str(space.id), slug=slug)
    return SpaceOut.model_validate(space)


def get_space(db: Session, space_id: UUID) -> SpaceOut:
    """Get a space by id."""
    return SpaceOut.model_validate(get_space_or_404(db, space_id))


def get_space_by_slug(db: Session, slug: str) -> SpaceOut:
    """Get a space by its slug (case-insensitive)."""
    space = db.scalar(select(Space).where(Space.slug == slug.strip().lower()))
    if space is None:
        raise NotFoundError(ApiErrorCode.E_SPACE_NOT_FOUND, "Space not found")
    return SpaceOut.model_validate(space)


def list_spaces(db: Session, limit: int = DEFAULT_LIMIT) -> list[SpaceOut]:
    """List spaces, newest first.

    limit is clamped to [1, MAX_LIMIT].
    """
    limit = max(1, min(limit, MAX_LIMIT))
    spaces = db.scalars(
        select(Space).order_by(Space.created_at.desc(), Space.id.desc()).limit(limit)
    )
    return [SpaceOut.model_validate(space) for space in spaces]


def update_space(db: Session, space_id: UUID, changes: Mapping[str, Any]) -> SpaceOut:
    """Apply a partial update to a space.

    Args:
        db: Database session.
        space_id: Space to update.
        changes: Subset of name, slug, description, is_public.

    Raises:
        InvalidRequestError: For unknown fields or a malformed name/slug.
        NotFoundError: If the space does not exist.
        ConflictError: If another space already uses the new slug.
    """
    unknown = set(changes) - EDITABLE_FIELDS
    if unknown:
        raise InvalidRequestError(
            ApiErrorCode.E_INVALID_REQUEST, f"Unknown fields: {', '.join(sorted(unknown))}"
        )
    changes = dict(changes)
    if "name" in changes:
        changes["name"] = _validate_name(changes["name"])
    if "slug" in changes:
        changes["slug"] = normalize_slug(changes["slug"])
    if "is_public" in changes and changes["is_public"] is None:
        raise InvalidRequestError(ApiErrorCode.E_INVALID_REQUEST, "is_public cannot be null")

    try:
        with transaction(db):
            space = get_space_or_404(db, space_id, for_update=True)
            if not changes:
                return SpaceOut.model_validate(space)
            for field, value in changes.items():
                setattr(space, field, value)
            space.updated_at = utcnow()
            db.flush()
    except IntegrityError as exc:
        raise ConflictError(
            ApiErrorCode.E_SLUG_TAKEN, f"Space slug '{changes['slug']}' is already taken"
        ) from exc

    logger.info("space_updated", space_id=str(space_id), fields=sorted(changes))
    return SpaceOut.model_validate(space)


def check_slug_availability(db: Session, slug: str) -> SlugAvailabilityOut:
    """Report whether a space slug is free, suggesting a numbered variant if not.

    Raises:
        InvalidRequestError: If the slug is malformed.
    """
    slug = normalize_slug(slug)
    taken = set(
        db.scalars(select(Space.slug).where(Space.slug.startswith(slug[: SLUG_MAX_LENGTH - 4])))
    )
    if slug not in taken:
        return SlugAvailabilityOut(slug=slug, available=True)

    suggestion = None
    for n in range(2, MAX_SUGGESTION_ATTEMPTS + 2):
        suffix = f"-{n}"
        candidate = slug[: SLUG_MAX_LENGTH - len(suffix)].rstrip("-") + suffix
        if candidate not in taken:
            suggestion = candidate
            break
    return SlugAvailabilityOut(slug=slug, available=False, suggestion=suggestion)
