# config/base.py
import os
from datetime import timedelta


def _coerce_bool(value, default=False):
    """Convert environment-style truthy/falsey values to bool."""
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    value_str = str(value).strip().lower()
    if value_str in {"1", "true", "yes", "on"}:
        return True
    if value_str in {"0", "false", "no", "off"}:
        return False
    return default


def _coerce_int(value, default, *, minimum=None, maximum=None):
    """Parse an integer setting, falling back to ``default`` and clamping to bounds."""
    try:
        number = int(value) if value is not None else default
    except (TypeError, ValueError):
        number = default
    if minimum is not None:
        number = max(minimum, number)
    if maximum is not None:
        number = min(maximum, number)
    return number


def _coerce_float(value, default):
    try:
        return float(value) if value is not None else default
    except (TypeError, ValueError):
        return default


class Config:
    # SECRET_KEY must be set via environment variable in production.
    # Generate with: python -c "import secrets; print(secrets.token_hex(32))"
    _flask_env = os.environ.get("FLASK_ENV", "development")
    _is_testing = _flask_env == "testing"
    _is_production = _flask_env == "production"

    SECRET_KEY = os.environ.get("SECRET_KEY")

    if not SECRET_KEY and _is_production:
        raise ValueError(
            "SECRET_KEY environment variable is required in production. "
            'Generate with: python -c "import secrets; print(secrets.token_hex(32))"'
        )

    if not SECRET_KEY and not _is_testing:
        import warnings

        warnings.warn(
            "SECRET_KEY not set. Using default for development only. "
            "Set SECRET_KEY environment variable before deploying.",
            UserWarning,
        )
        SECRET_KEY = "dev-secret-key-change-in-production"

    # Set a default for testing (will be overridden by TestingConfig)
    if not SECRET_KEY:
        SECRET_KEY = "test-secret-key-placeholder"

    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {}

    # Candidate ranker
    RANKER_BACKEND = os.environ.get("RANKER_BACKEND", "heuristic").strip().lower()
    RANKER_URL = os.environ.get("RANKER_URL")
    RANKER_API_KEY = os.environ.get("RANKER_API_KEY")
    RANKER_TIMEOUT_SECONDS = _coerce_float(os.environ.get("RANKER_TIMEOUT_SECONDS"), 30.0)

    if RANKER_BACKEND not in {"heuristic", "http"}:
        raise ValueError(f"RANKER_BACKEND must be 'heuristic' or 'http', got '{RANKER_BACKEND}'.")

    # Review queue
    MATCH_HISTORY_MAX_PAGE_SIZE = _coerce_int(os.environ.get("MATCH_HISTORY_MAX_PAGE_SIZE"), 200, minimum=1)
    MATCH_HISTORY_PAGE_SIZE = _coerce_int(
        os.environ.get("MATCH_HISTORY_PAGE_SIZE"), 50, minimum=1, maximum=MATCH_HISTORY_MAX_PAGE_SIZE
    )
    MATCHING_REQUIRE_INDEPENDENT_APPROVER = _coerce_bool(
        os.environ.get("MATCHING_REQUIRE_INDEPENDENT_APPROVER"), default=True
    )

    # Notifications
    NOTIFICATIONS_ENABLED = _coerce_bool(os.environ.get("NOTIFICATIONS_ENABLED"), default=True)
    NOTIFICATIONS_TRANSPORT = os.environ.get("NOTIFICATIONS_TRANSPORT", "log").strip().lower()
    NOTIFICATIONS_WORKER_ENABLED = _coerce_bool(os.environ.get("NOTIFICATIONS_WORKER_ENABLED"), default=False)
    CELERY_BROKER_URL = os.environ.get("CELERY_BROKER_URL")
    CELERY_RESULT_BACKEND = os.environ.get("CELERY_RESULT_BACKEND")
    CELERY_SQLITE_PATH = os.environ.get("CELERY_SQLITE_PATH")
    CELERY_CONFIG = os.environ.get("CELERY_CONFIG")

    MAIL_SERVER = os.environ.get("MAIL_SERVER")
    MAIL_PORT = _coerce_int(os.environ.get("MAIL_PORT"), 587)
    MAIL_USE_TLS = _coerce_bool(os.environ.get("MAIL_USE_TLS"), default=True)
    MAIL_USERNAME = os.environ.get("MAIL_USERNAME")
    MAIL_PASSWORD = os.environ.get("MAIL_PASSWORD")
    MAIL_DEFAULT_SENDER = os.environ.get("MAIL_DEFAULT_SENDER", MAIL_USERNAME)

    # Logging
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
    LOG_FORMAT = os.environ.get("LOG_FORMAT", "text")
    LOG_DIR = os.environ.get("LOG_DIR")
    ENABLE_FILE_LOGGING = _coerce_bool(os.environ.get("ENABLE_FILE_LOGGING"), default=False)
    ENABLE_CONSOLE_LOGGING = _coerce_bool(os.environ.get("ENABLE_CONSOLE_LOGGING"), default=True)

    # Session configuration
    PERMANENT_SESSION_LIFETIME = timedelta(days=7)
    SESSION_COOKIE_SECURE = False  # Set to True in production with HTTPS
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = "Lax"


class DevelopmentConfig(Config):
    DEBUG = True
    # Keep the SQLite database in the project's instance folder
    _config_dir = os.path.dirname(os.path.abspath(__file__))
    _project_root = os.path.dirname(_config_dir)
    instance_path = os.path.join(_project_root, "instance")

    if not os.path.exists(instance_path):
        os.makedirs(instance_path, exist_ok=True)

    # SQLite URIs need forward slashes, also on Windows
    db_path_normalized = os.path.join(instance_path, "beneficiary_hub_dev.db").replace("\\", "/")
    db_uri = f"sqlite:///{db_path_normalized}"

    SQLALCHEMY_DATABASE_URI = os.environ.get("DATABASE_URL", db_uri)
    SQLALCHEMY_ECHO = _coerce_bool(os.environ.get("SQLALCHEMY_ECHO"), default=False)
    if SQLALCHEMY_DATABASE_URI.startswith("sqlite"):
        SQLALCHEMY_ENGINE_OPTIONS = {
            "connect_args": {
                "check_same_thread": False,
                "timeout": 5,
            }
        }
    else:
        SQLALCHEMY_ENGINE_OPTIONS = {}


class TestingConfig(Config):
    TESTING = True
    SECRET_KEY = os.environ.get("SECRET_KEY", "test-secret-key-for-testing-only")
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"  # In-memory database for testing
    SQLALCHEMY_ECHO = False
    SQLALCHEMY_ENGINE_OPTIONS = {
        "connect_args": {
            "check_same_thread": False,
            "timeout": 5,
        }
    }
    RANKER_BACKEND = "heuristic"
    NOTIFICATIONS_TRANSPORT = "log"
    NOTIFICATIONS_WORKER_ENABLED = False
    ENABLE_FILE_LOGGING = False


class ProductionConfig(Config):
    DEBUG = False
    uri = os.environ.get("DATABASE_URL")
    if uri and uri.startswith("postgres://"):
        uri = uri.replace("postgres://", "postgresql://", 1)
    SQLALCHEMY_DATABASE_URI = uri
    SQLALCHEMY_ECHO = False
    SESSION_COOKIE_SECURE = True  # Secure cookies in production
