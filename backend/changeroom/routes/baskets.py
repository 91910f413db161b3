# Overview: Flask API routes for baskets awaiting checkout.

from flask import Blueprint, jsonify, g

from ..errors import ReconciliationError
from ..extensions import db
from ..decorators import require_actor
from ..services import basket_service
from . import error_response, internal_error, json_body


baskets_bp = Blueprint("baskets", __name__, url_prefix="/api/baskets")


@baskets_bp.get("")
@require_actor
def list_baskets_route():
    """Active baskets of the actor's store, newest number first, with items."""
    try:
        baskets = basket_service.list_active_baskets(g.actor.store_id)
        return jsonify({"baskets": [b.to_dict(include_items=True) for b in baskets]}), 200

    except Exception:
        return internal_error("Failed to list baskets")


@baskets_bp.get("/<int:basket_id>")
@require_actor
def get_basket_route(basket_id: int):
    try:
        basket = basket_service.get_basket(basket_id, store_id=g.actor.store_id)
        return jsonify({"basket": basket.to_dict(include_items=True)}), 200

    except ReconciliationError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to load basket")


@baskets_bp.post("/<int:basket_id>/disposition")
@require_actor
def set_disposition_route(basket_id: int):
    """
    Request body:
    {
        "status": "transferred"   // or "abandoned"
    }
    """
    try:
        data = json_body()
        basket = basket_service.set_disposition(g.actor, basket_id, data.get("status"))
        db.session.commit()
        return jsonify({"basket": basket.to_dict()}), 200

    except ReconciliationError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to update basket")


@baskets_bp.delete("/<int:basket_id>")
@require_actor
def delete_basket_route(basket_id: int):
    try:
        basket_service.delete_basket(g.actor, basket_id)
        db.session.commit()
        return jsonify({"deleted": basket_id}), 200

    except ReconciliationError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to delete basket")
