# Overview: Flask API routes for the session ledger (entry side); parses input and returns JSON.

"""
Session API Routes

DESIGN:
- Entry flow: open a session for a tag, scan items in, undo accidental scans
- Read-only listing for dashboards, filterable by status and entry time
- Explicit deletion of cancelled/erroneous sessions

All mutating routes require an acting identity (see decorators.require_actor).
"""

from flask import Blueprint, request, jsonify, g

from ..errors import ReconciliationError, ValidationError
from ..extensions import db
from ..decorators import require_actor
from ..services import audit_service, item_service, session_service
from ..services.reconciliation_service import exit_state
from ..time_utils import parse_iso_datetime
from . import error_response, internal_error, json_body


sessions_bp = Blueprint("sessions", __name__, url_prefix="/api/sessions")


def _session_payload(session, include_items: bool = False) -> dict:
    data = session.to_dict()
    data["exit_state"] = exit_state(session)
    if include_items:
        data["items"] = [item.to_dict() for item in item_service.list_items(session.id)]
    return data


@sessions_bp.post("")
@require_actor
def open_session_route():
    """
    Open a session for a tag scanned at entry.

    Request body:
    {
        "tag": "042"
    }

    Returns 409 if the tag already has an open session.
    """
    try:
        data = json_body()
        session = session_service.open_session(g.actor, data.get("tag"))
        db.session.commit()
        return jsonify({"session": _session_payload(session)}), 201

    except ReconciliationError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to open session")


@sessions_bp.get("")
@require_actor
def list_sessions_route():
    """
    List sessions of the actor's store.

    Query parameters:
        status: comma separated statuses (in_progress, exiting, complete, flagged)
        date_from, date_to: ISO-8601 bounds on entry_time
        limit: max results (default 100)
    """
    try:
        statuses = [s for s in (request.args.get("status") or "").split(",") if s]
        try:
            date_from = parse_iso_datetime(request.args.get("date_from"))
            date_to = parse_iso_datetime(request.args.get("date_to"))
            limit = int(request.args.get("limit", 100))
        except ValueError as e:
            raise ValidationError(f"Invalid filter: {e}")

        sessions = session_service.list_sessions(
            g.actor.store_id,
            statuses=statuses or None,
            date_from=date_from,
            date_to=date_to,
            limit=limit,
        )
        return jsonify({"sessions": [s.to_dict() for s in sessions]}), 200

    except ReconciliationError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to list sessions")


@sessions_bp.get("/by-tag/<tag>")
@require_actor
def lookup_by_tag_route(tag: str):
    try:
        session = session_service.lookup_open_by_tag(g.actor.store_id, tag)
        if session is None:
            return jsonify({"error": f"No active session for tag {tag}"}), 404
        return jsonify({"session": _session_payload(session, include_items=True)}), 200

    except ReconciliationError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to look up tag")


@sessions_bp.get("/<int:session_id>")
@require_actor
def get_session_route(session_id: int):
    try:
        session = session_service.get_session(session_id, store_id=g.actor.store_id)
        return jsonify({"session": _session_payload(session, include_items=True)}), 200

    except ReconciliationError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to load session")


@sessions_bp.get("/<int:session_id>/events")
@require_actor
def session_events_route(session_id: int):
    """Audit trail of a session, oldest first."""
    try:
        session = session_service.get_session(session_id, store_id=g.actor.store_id)
        events = audit_service.list_events(g.actor.store_id, session_id=session.id)
        return jsonify({"events": [e.to_dict() for e in events]}), 200

    except ReconciliationError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to load session events")


@sessions_bp.delete("/<int:session_id>")
@require_actor
def delete_session_route(session_id: int):
    """Delete a cancelled or erroneous session with its items."""
    try:
        session_service.delete_session(g.actor, session_id)
        db.session.commit()
        return jsonify({"deleted": session_id}), 200

    except ReconciliationError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to delete session")


@sessions_bp.post("/<int:session_id>/items")
@require_actor
def add_item_route(session_id: int):
    """
    Scan an item into an in_progress session.

    Request body:
    {
        "barcode": "SKU1"
    }
    """
    try:
        data = json_body()
        item = session_service.record_entry_item(g.actor, session_id, data.get("barcode"))
        db.session.commit()
        return jsonify({"item": item.to_dict()}), 201

    except ReconciliationError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to add session item")


@sessions_bp.delete("/<int:session_id>/items/<int:item_id>")
@require_actor
def remove_item_route(session_id: int, item_id: int):
    """Undo an accidental scan before exit begins."""
    try:
        session_service.remove_entry_item(g.actor, session_id, item_id)
        db.session.commit()
        return jsonify({"removed": item_id}), 200

    except ReconciliationError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to remove session item")
