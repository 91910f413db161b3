# Overview: Flask API routes for exit reconciliation and the discrepancy sub-flow.

"""
Exit API Routes

FLOW:
1. POST /start with the tag -> session moves to exiting (resumable)
2. POST /<sid>/match with each scanned barcode -> oldest unresolved instance
3. POST /<sid>/resolve with the operator's decision (purchased / restocked)
4. POST /<sid>/finish -> closed, or has_discrepancy with the unresolved items
5. Discrepancy: late-scan or mark lost per item until the session closes

Warnings (duplicate barcodes, late-scan mismatch) come back in 200
responses; only typed core errors produce 4xx.
"""

from flask import Blueprint, jsonify, g

from ..errors import ReconciliationError
from ..extensions import db
from ..decorators import require_actor
from ..services import discrepancy_service, reconciliation_service
from ..validation import parse_int
from . import error_response, internal_error, json_body


exits_bp = Blueprint("exits", __name__, url_prefix="/api/exits")


@exits_bp.post("/start")
@require_actor
def start_exit_route():
    """
    Request body:
    {
        "tag": "042"
    }

    Returns 404 if no active session exists for the tag.
    """
    try:
        data = json_body()
        progress = reconciliation_service.start_exit(g.actor, data.get("tag"))
        db.session.commit()
        return jsonify(progress.to_dict()), 200

    except ReconciliationError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to start exit")


@exits_bp.post("/<int:session_id>/match")
@require_actor
def match_route(session_id: int):
    try:
        data = json_body()
        match = reconciliation_service.match_scan(g.actor, session_id, data.get("barcode"))
        return jsonify(match.to_dict()), 200

    except ReconciliationError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to match exit scan")


@exits_bp.post("/<int:session_id>/resolve")
@require_actor
def resolve_route(session_id: int):
    """
    Request body:
    {
        "item_id": 12,
        "outcome": "purchased"   // or "restocked"
    }
    """
    try:
        data = json_body()
        resolution = reconciliation_service.resolve_match(
            g.actor,
            session_id,
            parse_int(data.get("item_id"), field="item_id"),
            data.get("outcome"),
        )
        db.session.commit()
        return jsonify(resolution.to_dict()), 200

    except ReconciliationError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to resolve exit item")


@exits_bp.post("/<int:session_id>/scan")
@require_actor
def scan_route(session_id: int):
    """Match and resolve in one call: {"barcode": ..., "outcome": ...}."""
    try:
        data = json_body()
        resolution = reconciliation_service.scan_and_resolve(
            g.actor,
            session_id,
            data.get("barcode"),
            data.get("outcome"),
        )
        db.session.commit()
        return jsonify(resolution.to_dict()), 200

    except ReconciliationError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to process exit scan")


@exits_bp.post("/<int:session_id>/finish")
@require_actor
def finish_route(session_id: int):
    try:
        progress = reconciliation_service.finish_exit(g.actor, session_id)
        db.session.commit()
        return jsonify(progress.to_dict()), 200

    except ReconciliationError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to finish exit")


@exits_bp.get("/<int:session_id>/discrepancies")
@require_actor
def list_discrepancies_route(session_id: int):
    try:
        items = discrepancy_service.list_discrepancies(g.actor, session_id)
        return jsonify({"items": [item.to_dict() for item in items]}), 200

    except ReconciliationError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to list discrepancies")


@exits_bp.post("/<int:session_id>/discrepancies/<int:item_id>/late-scan")
@require_actor
def late_scan_route(session_id: int, item_id: int):
    """
    Request body:
    {
        "barcode": "SKU2",
        "outcome": "restocked"
    }

    A barcode mismatch returns 200 with matched=false and a warning.
    """
    try:
        data = json_body()
        step = discrepancy_service.resolve_via_late_scan(
            g.actor,
            session_id,
            item_id,
            data.get("barcode"),
            data.get("outcome"),
        )
        db.session.commit()
        return jsonify(step.to_dict()), 200

    except ReconciliationError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to resolve late scan")


@exits_bp.post("/<int:session_id>/discrepancies/<int:item_id>/lost")
@require_actor
def mark_lost_route(session_id: int, item_id: int):
    try:
        data = json_body()
        step = discrepancy_service.mark_lost(g.actor, session_id, item_id, data.get("notes"))
        db.session.commit()
        return jsonify(step.to_dict()), 200

    except ReconciliationError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to mark item lost")


@exits_bp.post("/<int:session_id>/discrepancies/lost-all")
@require_actor
def mark_all_lost_route(session_id: int):
    try:
        data = json_body()
        step = discrepancy_service.mark_all_lost(g.actor, session_id, data.get("notes"))
        db.session.commit()
        return jsonify(step.to_dict()), 200

    except ReconciliationError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to mark items lost")


@exits_bp.post("/<int:session_id>/discrepancies/close")
@require_actor
def close_discrepancy_route(session_id: int):
    try:
        session = discrepancy_service.close_discrepancy(g.actor, session_id)
        db.session.commit()
        return jsonify({"session": session.to_dict()}), 200

    except ReconciliationError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to close discrepancy")
