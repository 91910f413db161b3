# Overview: Flask API routes for the back-of-house restock queue.

from flask import Blueprint, request, jsonify, g

from ..errors import ReconciliationError, ValidationError
from ..extensions import db
from ..decorators import require_actor
from ..models.dispositions import BOH_AWAITING_RETURN, BOH_RETURNED
from ..services import back_of_house_service
from ..time_utils import utcnow
from ..validation import require_choice
from . import error_response, internal_error


back_of_house_bp = Blueprint("back_of_house", __name__, url_prefix="/api/back-of-house")


@back_of_house_bp.get("")
@require_actor
def list_queue_route():
    """
    Query parameters:
        status: awaiting_return (default) or returned
        min_wait_minutes: only entries waiting at least this long
    """
    try:
        status = require_choice(
            request.args.get("status", BOH_AWAITING_RETURN),
            (BOH_AWAITING_RETURN, BOH_RETURNED),
            field="status",
        )
        min_wait = request.args.get("min_wait_minutes")
        try:
            min_wait = int(min_wait) if min_wait else None
        except ValueError:
            raise ValidationError("min_wait_minutes must be an integer")

        now = utcnow()
        entries = back_of_house_service.list_queue(
            g.actor.store_id,
            status=status,
            min_wait_minutes=min_wait,
            now=now,
        )
        return jsonify({
            "entries": [back_of_house_service.entry_to_dict(e, now) for e in entries],
            "awaiting_count": back_of_house_service.count_awaiting(g.actor.store_id),
        }), 200

    except ReconciliationError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to list back-of-house queue")


@back_of_house_bp.post("/<int:entry_id>/returned")
@require_actor
def mark_returned_route(entry_id: int):
    try:
        entry = back_of_house_service.mark_returned(g.actor, entry_id)
        db.session.commit()
        return jsonify({"entry": entry.to_dict()}), 200

    except ReconciliationError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to mark item returned")
