"""
preview.py - Serves build output (or the source tree) from ordered directories.
"""
import os
import logging
from flask import Blueprint, abort, current_app, send_from_directory
from werkzeug.security import safe_join

logger = logging.getLogger("tobuild")

preview_bp = Blueprint("preview", __name__)


def find_file(dirs, filename):
    """Return ``(directory, relative_path)`` for the first match, else None."""
    for directory in dirs:
        candidate = safe_join(directory, filename) if filename else directory
        if candidate is None:
            continue
        if os.path.isdir(candidate):
            candidate = os.path.join(candidate, "index.html")
        if os.path.isfile(candidate):
            return directory, os.path.relpath(candidate, directory)
    return None


@preview_bp.route("/", defaults={"filename": ""})
@preview_bp.route("/<path:filename>")
def serve(filename):
    found = find_file(current_app.config["PREVIEW_DIRS"], filename)
    if found is None:
        logger.debug(f"[{current_app.config['PREVIEW_NAME']}] 404 /{filename}")
        abort(404)
    directory, relative = found
    return send_from_directory(directory, relative.replace(os.sep, "/"), max_age=0)
