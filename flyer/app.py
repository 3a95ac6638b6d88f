"""Flask app serving the flyer builder API.

Run locally with ``python -m flyer.app``.
"""

from typing import Optional

from flask import Flask, Response, jsonify

from flyer.api import api
from flyer.config import FLASK_DEBUG, FLASK_HOST, FLASK_PORT, HIERARCHY_PATH
from flyer.logging_config import setup_logging
from flyer.models import FlyerDocument
from flyer.persistence import PersistenceCoordinator

__all__ = ["app", "create_app"]


def create_app(
    coordinator: Optional[PersistenceCoordinator] = None,
    template: Optional[FlyerDocument] = None,
) -> Flask:
    """Build the Flask app.

    Args:
        coordinator: Persistence coordinator to use (default: one over the
            configured storage backend, created on first request)
        template: Hierarchy template (default: loaded from HIERARCHY_PATH
            on first use)
    """
    flask_app = Flask(__name__)
    flask_app.json.ensure_ascii = False
    flask_app.config["HIERARCHY_PATH"] = HIERARCHY_PATH
    flask_app.config["FLYER_COORDINATOR"] = coordinator
    flask_app.config["FLYER_TEMPLATE"] = template

    flask_app.register_blueprint(api)

    @flask_app.route("/health", methods=["GET"])
    def health() -> Response:
        return jsonify({"status": "ok"})

    return flask_app


app = create_app()


if __name__ == "__main__":
    setup_logging()
    app.run(host=FLASK_HOST, port=FLASK_PORT, debug=FLASK_DEBUG)
