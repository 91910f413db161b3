# Overview: Shared helpers for the JSON API blueprints.

from flask import current_app, jsonify, request

from ..errors import ReconciliationError, ValidationError
from ..extensions import db


def json_body() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def error_response(exc: ReconciliationError):
    """Roll back and render a typed core error with its HTTP status."""
    db.session.rollback()
    return jsonify(exc.to_dict()), exc.http_status


def internal_error(message: str):
    db.session.rollback()
    current_app.logger.exception(message)
    return jsonify({"error": "Internal server error"}), 500
