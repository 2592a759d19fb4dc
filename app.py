# app.py

import os

from dotenv import load_dotenv
from flask import Flask, current_app, jsonify
from flask_login import LoginManager

# Load environment variables from .env file first
load_dotenv()

# Module imports after load_dotenv() - E402 is intentional
from beneficiary_hub.matching import init_matching  # noqa: E402
from beneficiary_hub.models import User, db  # noqa: E402
from beneficiary_hub.models.base import configure_sqlite  # noqa: E402
from beneficiary_hub.routes import init_routes  # noqa: E402
from beneficiary_hub.utils.logging_config import setup_logging  # noqa: E402
from config import DevelopmentConfig, ProductionConfig, TestingConfig  # noqa: E402
from config.validation import validate_and_exit  # noqa: E402

CONFIG_BY_ENV = {
    "production": ProductionConfig,
    "testing": TestingConfig,
    "development": DevelopmentConfig,
}


def _error(code, message, status):
    return jsonify({"success": False, "error": {"code": code, "message": message}}), status


flask_env = os.environ.get("FLASK_ENV", "development")
if flask_env == "production":
    validate_and_exit(flask_env)

app = Flask(__name__)
app.config.from_object(CONFIG_BY_ENV.get(flask_env, DevelopmentConfig))

db.init_app(app)
login_manager = LoginManager()
login_manager.init_app(app)
app.extensions["login_manager"] = login_manager

setup_logging(app)

with app.app_context():
    # foreign keys are not enforced under TESTING
    configure_sqlite(db.engine, enforce_foreign_keys=not app.config.get("TESTING", False))
    if not app.config.get("TESTING", False):
        db.create_all()


@login_manager.user_loader
def load_user(user_id):
    try:
        return db.session.get(User, int(user_id))
    except (ValueError, TypeError):
        return None
    except Exception as e:
        current_app.logger.error(f"Error loading user {user_id}: {str(e)}")
        return None


@login_manager.unauthorized_handler
def unauthorized():
    return _error("unauthenticated", "Login required.", 401)


init_matching(app)
init_routes(app)


@app.errorhandler(404)
def not_found_error(error):
    return _error("not_found", "Resource not found.", 404)


@app.errorhandler(500)
def internal_error(error):
    db.session.rollback()
    return _error("internal_error", "Internal server error.", 500)


if __name__ == "__main__":
    port = int(os.environ.get("PORT", 5000))
    app.run(host="0.0.0.0", port=port)
