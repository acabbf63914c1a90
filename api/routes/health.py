"""
health.py - /api/health liveness probe used by the server manager.
"""
import os
import logging
from flask import Blueprint, current_app, jsonify
from datetime import datetime, timezone

logger = logging.getLogger("tobuild")

health_bp = Blueprint("health", __name__, url_prefix="/api")


@health_bp.route("/health")
def health():
    """Health check / liveness probe."""
    dirs = current_app.config.get("PREVIEW_DIRS", [])
    checks = {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        "name": current_app.config.get("PREVIEW_NAME"),
        "dirs": dirs,
        "missing_dirs": [d for d in dirs if not os.path.isdir(d)],
    }
    return jsonify(checks), 200
