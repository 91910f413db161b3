# Overview: Flask API routes for the shrinkage log.

from flask import Blueprint, request, jsonify, g

from ..errors import ReconciliationError, ValidationError
from ..extensions import db
from ..decorators import require_actor
from ..services import shrinkage_service
from ..time_utils import parse_iso_datetime
from . import error_response, internal_error


shrinkage_bp = Blueprint("shrinkage", __name__, url_prefix="/api/shrinkage")


@shrinkage_bp.get("")
@require_actor
def list_shrinkage_route():
    """
    Query parameters:
        status: lost or recovered
        date_from, date_to: ISO-8601 bounds on lost_at
    """
    try:
        try:
            date_from = parse_iso_datetime(request.args.get("date_from"))
            date_to = parse_iso_datetime(request.args.get("date_to"))
        except ValueError as e:
            raise ValidationError(f"Invalid filter: {e}")

        entries = shrinkage_service.list_entries(
            g.actor.store_id,
            status=request.args.get("status"),
            date_from=date_from,
            date_to=date_to,
        )
        return jsonify({
            "entries": [e.to_dict() for e in entries],
            "lost_count": shrinkage_service.count_lost(
                g.actor.store_id, date_from=date_from, date_to=date_to
            ),
        }), 200

    except ReconciliationError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to list shrinkage entries")


@shrinkage_bp.get("/lookup/<barcode>")
@require_actor
def lookup_lost_route(barcode: str):
    try:
        entry = shrinkage_service.find_lost_by_barcode(g.actor.store_id, barcode)
        if entry is None:
            return jsonify({"error": f"No lost entry for barcode {barcode}"}), 404
        return jsonify({"entry": entry.to_dict()}), 200

    except ReconciliationError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to look up lost item")


@shrinkage_bp.post("/<int:entry_id>/recover")
@require_actor
def recover_route(entry_id: int):
    try:
        entry = shrinkage_service.recover(g.actor, entry_id)
        db.session.commit()
        return jsonify({"entry": entry.to_dict()}), 200

    except ReconciliationError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to recover item")
