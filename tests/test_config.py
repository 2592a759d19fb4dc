"""Tests for configuration coercion and production environment validation"""

import pytest

from config import ProductionConfig, TestingConfig
from config.base import _coerce_bool, _coerce_float, _coerce_int
from config.validation import validate_and_exit, validate_environment

PRODUCTION_VARS = (
    "SECRET_KEY",
    "DATABASE_URL",
    "RANKER_BACKEND",
    "RANKER_URL",
    "NOTIFICATIONS_TRANSPORT",
    "NOTIFICATIONS_ENABLED",
    "NOTIFICATIONS_WORKER_ENABLED",
    "CELERY_BROKER_URL",
    "MAIL_SERVER",
    "MAIL_USERNAME",
    "MAIL_PASSWORD",
)


@pytest.fixture
def production_env(monkeypatch):
    for name in PRODUCTION_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("SECRET_KEY", "a" * 64)
    monkeypatch.setenv("DATABASE_URL", "postgresql://hub@db/hub")
    return monkeypatch


class TestCoercion:
    @pytest.mark.parametrize("raw", ["1", "true", "YES", " on "])
    def test_truthy(self, raw):
        assert _coerce_bool(raw) is True

    @pytest.mark.parametrize("raw", ["0", "false", "No", "off"])
    def test_falsey(self, raw):
        assert _coerce_bool(raw, default=True) is False

    def test_unknown_bool_uses_default(self):
        assert _coerce_bool("maybe", default=True) is True
        assert _coerce_bool(None) is False

    def test_int_bounds(self):
        assert _coerce_int("25", 50, minimum=1, maximum=200) == 25
        assert _coerce_int("0", 50, minimum=1) == 1
        assert _coerce_int("900", 50, maximum=200) == 200
        assert _coerce_int("abc", 50) == 50

    def test_float(self):
        assert _coerce_float("2.5", 30.0) == 2.5
        assert _coerce_float("", 30.0) == 30.0


class TestConfigClasses:
    def test_testing_config_is_isolated(self):
        assert TestingConfig.SQLALCHEMY_DATABASE_URI == "sqlite:///:memory:"
        assert TestingConfig.RANKER_BACKEND == "heuristic"
        assert TestingConfig.NOTIFICATIONS_TRANSPORT == "log"
        assert TestingConfig.NOTIFICATIONS_WORKER_ENABLED is False

    def test_history_page_size_within_cap(self):
        assert 1 <= TestingConfig.MATCH_HISTORY_PAGE_SIZE <= TestingConfig.MATCH_HISTORY_MAX_PAGE_SIZE

    def test_production_cookies_are_secure(self):
        assert ProductionConfig.SESSION_COOKIE_SECURE is True


class TestValidateEnvironment:
    def test_non_production_is_always_valid(self, monkeypatch):
        monkeypatch.delenv("SECRET_KEY", raising=False)
        assert validate_environment("development") == (True, [])

    def test_minimal_production_env(self, production_env):
        assert validate_environment("production") == (True, [])

    def test_default_secret_is_rejected(self, production_env):
        production_env.setenv("SECRET_KEY", "your-secret-key")
        is_valid, errors = validate_environment("production")
        assert not is_valid
        assert any("SECRET_KEY" in error for error in errors)

    def test_http_ranker_needs_url(self, production_env):
        production_env.setenv("RANKER_BACKEND", "http")
        is_valid, errors = validate_environment("production")
        assert not is_valid
        assert errors == ["RANKER_URL is required when RANKER_BACKEND=http"]

    def test_smtp_needs_credentials(self, production_env):
        production_env.setenv("NOTIFICATIONS_TRANSPORT", "smtp")
        production_env.setenv("MAIL_SERVER", "smtp.example.com")
        _, errors = validate_environment("production")
        assert len(errors) == 2

    def test_smtp_not_checked_when_notifications_disabled(self, production_env):
        production_env.setenv("NOTIFICATIONS_TRANSPORT", "smtp")
        production_env.setenv("NOTIFICATIONS_ENABLED", "false")
        assert validate_environment("production") == (True, [])

    def test_worker_needs_broker(self, production_env):
        production_env.setenv("NOTIFICATIONS_WORKER_ENABLED", "true")
        is_valid, errors = validate_environment("production")
        assert not is_valid
        assert "CELERY_BROKER_URL" in errors[0]

    def test_validate_and_exit(self, production_env):
        production_env.delenv("DATABASE_URL")
        with pytest.raises(SystemExit):
            validate_and_exit("production")
