# backend/changeroom/services/basket_service.py
"""
Basket aggregator: numbered grouping of a session's purchased items.

LIFECYCLE:
1. active: created lazily on the first purchase of a session
2. abandoned | transferred: terminal; the basket drops out of active views

Items attach one by one as they resolve, so a basket grows during exit.
Disposition and deletion never touch item status or session counters.
"""
from __future__ import annotations

from datetime import timedelta

from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..errors import ConflictError, NotFoundError, StateError
from ..extensions import db
from ..identity import ActorContext
from ..models import Basket, FittingSession, SessionItem
from ..models.baskets import BASKET_ACTIVE, BASKET_DISPOSITIONS, BASKET_TRANSFERRED
from ..models.sessions import ITEM_PURCHASED
from ..time_utils import utcnow
from ..validation import require_choice
from . import audit_service, sequence_service


def get_basket(basket_id: int, *, store_id: int | None = None) -> Basket:
    basket = db.session.get(Basket, basket_id)
    if not basket or (store_id is not None and basket.store_id != store_id):
        raise NotFoundError(
            f"Basket {basket_id} not found",
            entity_type="basket",
            entity_id=basket_id,
            attempted="lookup",
        )
    return basket


def find_for_session(session_id: int) -> Basket | None:
    return db.session.query(Basket).filter_by(session_id=session_id).first()


def get_or_create(actor: ActorContext, session: FittingSession) -> Basket:
    """
    Find the session's basket or create it with the next store basket number.

    The number is allocated inside the same SAVEPOINT as the insert; if a
    concurrent caller created the session's basket first, the savepoint
    (including the allocation) rolls back and the existing basket wins.
    """
    existing = find_for_session(session.id)
    if existing:
        return existing

    try:
        with db.session.begin_nested():
            number = sequence_service.next_value(
                store_id=session.store_id,
                name=sequence_service.BASKET_SEQUENCE,
            )
            basket = Basket(
                store_id=session.store_id,
                basket_number=number,
                session_id=session.id,
                status=BASKET_ACTIVE,
            )
            db.session.add(basket)
    except IntegrityError:
        existing = find_for_session(session.id)
        if existing:
            return existing
        raise ConflictError(
            f"Could not allocate a basket number for session {session.id}",
            entity_type="basket",
            attempted="create",
        )

    audit_service.record_event(
        actor,
        event_type="basket.created",
        entity_type="basket",
        entity_id=basket.id,
        session_id=session.id,
        note=f"Basket #{basket.basket_number}",
    )
    current_app.logger.info("Created basket %s for session %s", basket.basket_number, session.id)
    return basket


def attach(actor: ActorContext, item: SessionItem, basket: Basket) -> SessionItem:
    """Link a purchased item to its session's active basket."""
    if item.status != ITEM_PURCHASED:
        raise StateError(
            f"Item {item.id} is {item.status}; only purchased items join a basket",
            entity_type="item",
            entity_id=item.id,
            attempted="attach",
        )
    if item.session_id != basket.session_id:
        raise ConflictError(
            f"Item {item.id} does not belong to basket {basket.id}'s session",
            entity_type="item",
            entity_id=item.id,
            attempted="attach",
        )
    if basket.status != BASKET_ACTIVE:
        raise StateError(
            f"Basket {basket.id} is {basket.status}",
            entity_type="basket",
            entity_id=basket.id,
            attempted="attach",
        )
    if item.basket_id == basket.id:
        return item

    result = db.session.execute(
        update(SessionItem)
        .where(SessionItem.id == item.id, SessionItem.basket_id.is_(None))
        .values(basket_id=basket.id)
        .execution_options(synchronize_session=False)
    )
    db.session.refresh(item)
    if not result.rowcount:
        raise ConflictError(
            f"Item {item.id} is already in basket {item.basket_id}",
            entity_type="item",
            entity_id=item.id,
            attempted="attach",
        )

    audit_service.record_event(
        actor,
        event_type="basket.item_attached",
        entity_type="item",
        entity_id=item.id,
        session_id=basket.session_id,
        note=f"Basket #{basket.basket_number}",
    )
    return item


def set_disposition(actor: ActorContext, basket_id: int, status: str) -> Basket:
    """
    Mark an active basket abandoned or transferred (terminal).

    Raises:
        ValidationError: status is not abandoned/transferred
        StateError: basket already has a disposition
    """
    status = require_choice(status, BASKET_DISPOSITIONS, field="status")
    basket = get_basket(basket_id, store_id=actor.store_id)

    result = db.session.execute(
        update(Basket)
        .where(Basket.id == basket.id, Basket.status == BASKET_ACTIVE)
        .values(status=status, resolved_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    db.session.refresh(basket)
    if not result.rowcount:
        raise StateError(
            f"Basket {basket.id} is already {basket.status}",
            entity_type="basket",
            entity_id=basket.id,
            attempted=f"{basket.status}->{status}",
        )

    audit_service.record_event(
        actor,
        event_type=f"basket.{status}",
        entity_type="basket",
        entity_id=basket.id,
        session_id=basket.session_id,
    )
    return basket


def _delete(basket: Basket) -> None:
    db.session.execute(
        update(SessionItem)
        .where(SessionItem.basket_id == basket.id)
        .values(basket_id=None)
        .execution_options(synchronize_session=False)
    )
    db.session.expire(basket, ["items"])
    db.session.delete(basket)


def delete_basket(actor: ActorContext, basket_id: int) -> None:
    """
    Remove a basket's grouping row once it has left the changing room.

    Items keep their purchased status; only the link is cleared.
    """
    basket = get_basket(basket_id, store_id=actor.store_id)
    if basket.status == BASKET_ACTIVE:
        raise StateError(
            f"Basket {basket.id} is still active",
            entity_type="basket",
            entity_id=basket.id,
            attempted="delete",
        )

    session_id = basket.session_id
    with db.session.begin_nested():
        _delete(basket)

    audit_service.record_event(
        actor,
        event_type="basket.deleted",
        entity_type="basket",
        entity_id=basket_id,
        session_id=session_id,
    )


def purge_transferred_baskets(grace_seconds: int, *, now=None) -> int:
    """Delete transferred baskets whose display grace period has passed."""
    cutoff = (now or utcnow()) - timedelta(seconds=grace_seconds)
    stale = (
        db.session.query(Basket)
        .filter(Basket.status == BASKET_TRANSFERRED, Basket.resolved_at <= cutoff)
        .all()
    )
    for basket in stale:
        _delete(basket)
    db.session.flush()
    if stale:
        current_app.logger.info("Purged %d transferred basket(s)", len(stale))
    return len(stale)


def list_active_baskets(store_id: int) -> list[Basket]:
    return (
        db.session.query(Basket)
        .filter_by(store_id=store_id, status=BASKET_ACTIVE)
        .order_by(Basket.basket_number.desc())
        .all()
    )
