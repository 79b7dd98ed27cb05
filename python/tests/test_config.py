"""Tests for application configuration."""

import pytest
from pydantic import ValidationError

from folio.config import Environment, Settings


def _make_settings(**overrides) -> Settings:
    """Build a Settings instance with test defaults + overrides."""
    defaults = {
        "DATABASE_URL": "postgresql+psycopg://localhost/test",
        "FOLIO_ENV": "test",
    }
    defaults.update(overrides)
    return Settings(**defaults)


class TestSettingsDefaults:
    """Defaults for content, autosave and publishing settings."""

    def test_defaults(self):
        s = _make_settings()
        assert s.folio_env == Environment.TEST
        assert s.excerpt_length == 200
        assert s.reading_chars_per_minute == 300
        assert s.autosave_max_pending == 1000
        assert s.publish_lock_timeout_s == 30.0

    def test_overrides_accepted(self):
        s = _make_settings(
            EXCERPT_LENGTH=80,
            READING_CHARS_PER_MINUTE=500,
            AUTOSAVE_MAX_PENDING=10,
            PUBLISH_LOCK_TIMEOUT_S=2.5,
        )
        assert s.excerpt_length == 80
        assert s.reading_chars_per_minute == 500
        assert s.autosave_max_pending == 10
        assert s.publish_lock_timeout_s == 2.5

    def test_zero_excerpt_length_rejected(self):
        with pytest.raises(ValidationError, match="EXCERPT_LENGTH"):
            _make_settings(EXCERPT_LENGTH=0)

    def test_non_positive_lock_timeout_rejected(self):
        with pytest.raises(ValidationError, match="PUBLISH_LOCK_TIMEOUT_S"):
            _make_settings(PUBLISH_LOCK_TIMEOUT_S=0)


class TestEnvironmentValidation:
    """FOLIO_INTERNAL_SECRET requirements per environment."""

    @pytest.mark.parametrize("env", ["staging", "prod"])
    def test_secret_required_in_deployed_envs(self, env):
        with pytest.raises(ValidationError, match="FOLIO_INTERNAL_SECRET"):
            _make_settings(FOLIO_ENV=env, FOLIO_INTERNAL_SECRET=None)

    def test_deployed_env_requires_internal_header(self):
        s = _make_settings(FOLIO_ENV="prod", FOLIO_INTERNAL_SECRET="s3cret")
        assert s.requires_internal_header is True

    @pytest.mark.parametrize("env", ["local", "test"])
    def test_local_envs_skip_internal_header(self, env):
        s = _make_settings(FOLIO_ENV=env)
        assert s.requires_internal_header is False
