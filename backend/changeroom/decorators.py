# Overview: Request decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

from .errors import ReconciliationError
from .identity import resolve_actor


def require_actor(f):
    """
    Establish the acting identity for the request.

    Sets g.actor (ActorContext) from the X-Actor-Id, X-Store-Id and optional
    X-Actor-Role headers. Returns 401 if the headers are missing or do not
    name an active team member of that store.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        actor_id = request.headers.get("X-Actor-Id")
        store_id = request.headers.get("X-Store-Id")

        if not actor_id or not store_id:
            return jsonify({"error": "Actor identity required"}), 401

        try:
            g.actor = resolve_actor(actor_id, store_id, request.headers.get("X-Actor-Role"))
        except ReconciliationError as e:
            return jsonify({"error": "Invalid actor identity", "message": e.message}), 401

        return f(*args, **kwargs)

    return decorated_function
