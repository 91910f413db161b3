# backend/changeroom/routes/system.py
"""
System endpoints: health check and read-only store and team member listings.
"""

import time
from flask import Blueprint, current_app, jsonify, request
from sqlalchemy import text

from ..decorators import require_actor
from ..errors import ReconciliationError, ValidationError
from ..extensions import db
from ..services import tenancy_service
from ..time_utils import to_utc_z, utcnow
from . import error_response, internal_error

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    """Round-trip a trivial query and report latency."""
    start_time = time.time()
    try:
        db.session.execute(text("SELECT 1"))
        elapsed_ms = (time.time() - start_time) * 1000
        return {"status": "healthy", "latency_ms": round(elapsed_ms, 2)}
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error",
        }


@system_bp.get("/api/health")
def health():
    database = check_database_health()
    healthy = database["status"] == "healthy"
    return jsonify({
        "status": "ok" if healthy else "degraded",
        "checked_at": to_utc_z(utcnow()),
        "database": database,
    }), 200 if healthy else 503


@system_bp.get("/api/system/stores")
@require_actor
def list_stores_route():
    try:
        stores = []
        for store, member_count in tenancy_service.list_stores():
            data = store.to_dict()
            data["team_member_count"] = member_count
            stores.append(data)
        return jsonify({"stores": stores}), 200

    except Exception:
        return internal_error("Failed to list stores")


@system_bp.get("/api/system/team-members")
@require_actor
def list_team_members_route():
    """
    List team members by name.

    Query parameters:
        store_id: restrict to one store (default: all stores)
        active: "true" to hide deactivated members
    """
    try:
        raw_store = request.args.get("store_id")
        try:
            store_id = int(raw_store) if raw_store else None
        except ValueError:
            raise ValidationError("store_id must be an integer", attempted="list")
        active_only = (request.args.get("active") or "").lower() == "true"

        members = tenancy_service.list_team_members(store_id=store_id, active_only=active_only)
        payload = []
        for member in members:
            data = member.to_dict()
            data["store_name"] = member.store.name
            payload.append(data)
        return jsonify({"team_members": payload}), 200

    except ReconciliationError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to list team members")
