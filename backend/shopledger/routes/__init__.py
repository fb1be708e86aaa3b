from __future__ import annotations

from flask import current_app, jsonify

from ..errors import ShopledgerError


def json_error(exc: ShopledgerError):
    """Domain error -> ({"error", "details"}, status)."""
    return jsonify(exc.to_dict()), exc.status_code


def internal_error(message: str):
    current_app.logger.exception(message)
    return jsonify({"error": "Internal server error"}), 500
