# beneficiary_hub/routes/__init__.py
"""
Application routes package
"""

from .matching import matching_blueprint


def init_routes(app):
    """Initialize all application routes"""
    if matching_blueprint.name not in app.blueprints:
        app.register_blueprint(matching_blueprint)

    @app.route("/health", methods=["GET"])
    def health():
        return {"status": "ok"}
