"""
app.py - Application factory for the preview servers.

One Flask app per mode serves files from an ordered list of directories:
the first directory holding the requested path wins, directories answer
with their index.html.
Usage:
    python app.py [dir ...]
"""

import os
import re
import sys

from flask import Flask, request
from flask_compress import Compress

from config import config_for, BuildMode
from api.middleware.error_handler import register_error_handlers
from api.routes.health import health_bp
from api.routes.preview import preview_bp

# <sha1>.<ext>: content-addressed production output
HASHED_NAME_RE = re.compile(r"^[0-9a-f]{40}\.[A-Za-z0-9]+$")


def create_app(name="development", dirs=None, dynamic_dirs=None):
    """Flask application factory."""
    app = Flask(__name__, static_folder=None)

    # ── Configuration ──
    mode_config = config_for(name)
    app.config.from_object(mode_config)
    app.config["PREVIEW_NAME"] = BuildMode(name).value
    app.config["PREVIEW_DIRS"] = [os.path.abspath(d) for d in (dirs or [])]
    app.config["DYNAMIC_DIRS"] = [d.strip("/") for d in (dynamic_dirs or mode_config.DYNAMIC_DIRS)]

    # ── Extensions ──
    Compress(app)
    register_error_handlers(app)

    # ── Blueprints ──
    app.register_blueprint(health_bp)
    app.register_blueprint(preview_bp)

    # Cache headers
    @app.after_request
    def add_cache_headers(response):
        path = request.path.lstrip("/")
        first = path.split("/", 1)[0]
        if first in app.config["DYNAMIC_DIRS"]:
            response.headers["Cache-Control"] = "no-store"
        elif HASHED_NAME_RE.match(os.path.basename(path)):
            response.headers["Cache-Control"] = "public, max-age=31536000, immutable"
        else:
            response.headers["Cache-Control"] = "no-cache"
        return response

    return app


if __name__ == "__main__":
    serve_dirs = sys.argv[1:] or [os.getcwd()]
    create_app("development", serve_dirs).run(host="127.0.0.1", port=10000)
