"""
error_handler.py - JSON error responses for the preview servers.
"""
import logging
import traceback
from flask import current_app, jsonify, request

logger = logging.getLogger("tobuild")


def _body(error, message):
    return {
        "error": error,
        "message": message,
        "server": current_app.config.get("PREVIEW_NAME"),
    }


def register_error_handlers(app):
    """Attach the preview error handlers to ``app``."""

    @app.errorhandler(400)
    def bad_request(e):
        return jsonify(_body("Bad Request", e.description)), 400

    @app.errorhandler(404)
    def not_found(e):
        path = request.path.lstrip("/")
        return jsonify(_body("Not Found", f"/{path} is not in any served directory")), 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return jsonify(_body("Method Not Allowed", f"{request.method} is not supported")), 405

    @app.errorhandler(500)
    def internal_error(e):
        logger.error(f"[{current_app.config.get('PREVIEW_NAME')}] failed to serve "
                     f"{request.path}: {e}\n{traceback.format_exc()}")
        return jsonify(_body("Internal Server Error", f"Could not serve {request.path}")), 500
