"""Tests for the slug registry.

Verifies:
- Slug validation and canonical lowercase form
- Reservation is unique per (scope, scope_id) and case-insensitive
- Collisions carry a numbered suggestion
- Batch reservation is all-or-nothing
- Release frees a slug for reuse
"""

from uuid import uuid4

import pytest
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from folio.db.models import SlugReservation, SlugScope
from folio.errors import ApiErrorCode, ConflictError, InvalidRequestError
from folio.services import slugs


class TestNormalizeSlug:
    """Tests for slug validation."""

    @pytest.mark.parametrize(
        "candidate,expected",
        [
            ("intro", "intro"),
            ("  Getting-Started ", "getting-started"),
            ("v2-release-notes", "v2-release-notes"),
            ("abc", "abc"),
            ("a" * 50, "a" * 50),
        ],
    )
    def test_valid_slugs(self, candidate, expected):
        assert slugs.normalize_slug(candidate) == expected

    @pytest.mark.parametrize(
        "candidate",
        ["", "ab", "a" * 51, "has space", "double--hyphen", "-leading", "trailing-", "under_score", "é-accent"],
    )
    def test_invalid_slugs(self, candidate):
        with pytest.raises(InvalidRequestError) as exc_info:
            slugs.normalize_slug(candidate)
        assert exc_info.value.code == ApiErrorCode.E_SLUG_INVALID


class TestReserve:
    """Tests for atomic check-and-reserve."""

    def test_reserve_returns_canonical_slug(self, db_session: Session):
        scope_id = uuid4()
        assert slugs.reserve(db_session, SlugScope.space, scope_id, "Intro") == "intro"
        assert not slugs.is_available(db_session, SlugScope.space, scope_id, "intro")

    def test_reserve_collision_is_case_insensitive(self, db_session: Session):
        scope_id = uuid4()
        slugs.reserve(db_session, SlugScope.space, scope_id, "intro")

        with pytest.raises(ConflictError) as exc_info:
            slugs.reserve(db_session, SlugScope.space, scope_id, "INTRO")

        assert exc_info.value.code == ApiErrorCode.E_SLUG_TAKEN
        assert exc_info.value.suggestion == "intro-2"

    def test_suggestion_skips_taken_variants(self, db_session: Session):
        scope_id = uuid4()
        for slug in ("intro", "intro-2", "intro-3"):
            slugs.reserve(db_session, SlugScope.space, scope_id, slug)

        with pytest.raises(ConflictError) as exc_info:
            slugs.reserve(db_session, SlugScope.space, scope_id, "intro")

        assert exc_info.value.suggestion == "intro-4"

    def test_suggestion_fits_max_length(self, db_session: Session):
        scope_id = uuid4()
        long_slug = "a" * slugs.SLUG_MAX_LENGTH

        assert slugs.suggest_slug(db_session, SlugScope.space, scope_id, long_slug) == "a" * 48 + "-2"

    def test_same_slug_in_different_scopes(self, db_session: Session):
        space_a, space_b = uuid4(), uuid4()
        slugs.reserve(db_session, SlugScope.space, space_a, "intro")
        slugs.reserve(db_session, SlugScope.space, space_b, "intro")
        slugs.reserve(db_session, SlugScope.publication, space_a, "intro")

        assert not slugs.is_available(db_session, SlugScope.space, space_b, "intro")

    def test_failed_reserve_keeps_session_usable(self, db_session: Session):
        """A collision rolls back only its savepoint."""
        scope_id = uuid4()
        slugs.reserve(db_session, SlugScope.space, scope_id, "intro")

        with pytest.raises(ConflictError):
            slugs.reserve(db_session, SlugScope.space, scope_id, "intro")

        slugs.reserve(db_session, SlugScope.space, scope_id, "intro-2")
        count = db_session.scalar(
            select(func.count()).select_from(SlugReservation).where(SlugReservation.scope_id == scope_id)
        )
        assert count == 2

    def test_owner_recorded(self, db_session: Session):
        scope_id, owner_id = uuid4(), uuid4()
        slugs.reserve(db_session, SlugScope.global_, scope_id, "guide", owner_id=owner_id)

        assert slugs.get_owner(db_session, SlugScope.global_, scope_id, "guide") == owner_id
        assert slugs.get_owner(db_session, SlugScope.global_, scope_id, "other") is None


class TestReserveMany:
    """Tests for batch reservation."""

    def test_batch_reserves_all(self, db_session: Session):
        scope_id = uuid4()
        slugs.reserve_many(
            db_session, SlugScope.publication, scope_id, [("one", uuid4()), ("two", uuid4())]
        )

        assert not slugs.is_available(db_session, SlugScope.publication, scope_id, "one")
        assert not slugs.is_available(db_session, SlugScope.publication, scope_id, "two")

    def test_duplicate_in_batch_reserves_nothing(self, db_session: Session):
        scope_id = uuid4()

        with pytest.raises(ConflictError):
            slugs.reserve_many(
                db_session,
                SlugScope.publication,
                scope_id,
                [("one", uuid4()), ("two", uuid4()), ("one", uuid4())],
            )

        assert slugs.is_available(db_session, SlugScope.publication, scope_id, "one")
        assert slugs.is_available(db_session, SlugScope.publication, scope_id, "two")

    def test_empty_batch_is_noop(self, db_session: Session):
        slugs.reserve_many(db_session, SlugScope.publication, uuid4(), [])


class TestRelease:
    """Tests for releasing reservations."""

    def test_release_frees_slug(self, db_session: Session):
        scope_id = uuid4()
        slugs.reserve(db_session, SlugScope.space, scope_id, "intro")

        assert slugs.release(db_session, SlugScope.space, scope_id, "INTRO") is True
        assert slugs.is_available(db_session, SlugScope.space, scope_id, "intro")
        assert slugs.release(db_session, SlugScope.space, scope_id, "intro") is False

        slugs.reserve(db_session, SlugScope.space, scope_id, "intro")

    def test_release_owned(self, db_session: Session):
        scope_id = uuid4()
        keep, drop_a, drop_b = uuid4(), uuid4(), uuid4()
        slugs.reserve(db_session, SlugScope.space, scope_id, "keep", owner_id=keep)
        slugs.reserve(db_session, SlugScope.space, scope_id, "drop-a", owner_id=drop_a)
        slugs.reserve(db_session, SlugScope.space, scope_id, "drop-b", owner_id=drop_b)

        assert slugs.release_owned(db_session, SlugScope.space, scope_id, [drop_a, drop_b]) == 2
        assert slugs.release_owned(db_session, SlugScope.space, scope_id, []) == 0
        assert not slugs.is_available(db_session, SlugScope.space, scope_id, "keep")

    def test_release_scope(self, db_session: Session):
        scope_id, other_id = uuid4(), uuid4()
        slugs.reserve(db_session, SlugScope.publication, scope_id, "one")
        slugs.reserve(db_session, SlugScope.publication, scope_id, "two")
        slugs.reserve(db_session, SlugScope.publication, other_id, "one")

        assert slugs.release_scope(db_session, SlugScope.publication, scope_id) == 2
        assert not slugs.is_available(db_session, SlugScope.publication, other_id, "one")
