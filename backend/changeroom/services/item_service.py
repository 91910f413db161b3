# backend/changeroom/services/item_service.py
"""
Item ledger: lifecycle of a single garment inside one session.

LIFECYCLE:
in_room -> purchased | restocked | lost   (terminal)

Resolution is a conditional UPDATE guarded by status = in_room, so two
near-simultaneous scans of the same item yield one success and one
StateError. The loser re-fetches find_unresolved_by_barcode to get the
next instance.
"""
from __future__ import annotations

from sqlalchemy import func, update

from ..errors import NotFoundError, StateError
from ..extensions import db
from ..models import SessionItem
from ..models.sessions import ITEM_IN_ROOM, ITEM_OUTCOMES
from ..time_utils import utcnow
from ..validation import normalize_barcode, require_choice


def get_item(item_id: int, *, session_id: int | None = None) -> SessionItem:
    item = db.session.get(SessionItem, item_id)
    if not item or (session_id is not None and item.session_id != session_id):
        raise NotFoundError(
            f"Item {item_id} not found in this session",
            entity_type="item",
            entity_id=item_id,
            attempted="lookup",
        )
    return item


def resolve_item(item_id: int, outcome: str) -> SessionItem:
    """
    Move an in_room item to its terminal outcome and stamp resolved_at.

    Raises:
        ValidationError: outcome is not purchased, restocked or lost
        NotFoundError: item does not exist
        StateError: item already resolved
    """
    outcome = require_choice(outcome, ITEM_OUTCOMES, field="outcome")

    stmt = (
        update(SessionItem)
        .where(SessionItem.id == item_id, SessionItem.status == ITEM_IN_ROOM)
        .values(status=outcome, resolved_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    result = db.session.execute(stmt)

    item = db.session.get(SessionItem, item_id)
    if item is None:
        raise NotFoundError(
            f"Item {item_id} not found",
            entity_type="item",
            entity_id=item_id,
            attempted=f"resolve:{outcome}",
        )
    db.session.refresh(item)

    if not result.rowcount:
        raise StateError(
            f"Item {item_id} is already {item.status}",
            entity_type="item",
            entity_id=item_id,
            attempted=f"{item.status}->{outcome}",
        )
    return item


def _unresolved_query(session_id: int):
    return db.session.query(SessionItem).filter(
        SessionItem.session_id == session_id,
        SessionItem.status == ITEM_IN_ROOM,
    )


def find_unresolved_by_barcode(session_id: int, barcode: str) -> SessionItem | None:
    """Earliest-scanned still-open instance of barcode in the session (FIFO)."""
    barcode = normalize_barcode(barcode)
    return (
        _unresolved_query(session_id)
        .filter(SessionItem.item_barcode == barcode)
        .order_by(SessionItem.scanned_in_at.asc(), SessionItem.id.asc())
        .first()
    )


def count_unresolved_by_barcode(session_id: int, barcode: str) -> int:
    return (
        _unresolved_query(session_id)
        .filter(SessionItem.item_barcode == barcode)
        .count()
    )


def list_unresolved(session_id: int) -> list[SessionItem]:
    """All in_room items in scan order; drives the discrepancy workflow."""
    return (
        _unresolved_query(session_id)
        .order_by(SessionItem.scanned_in_at.asc(), SessionItem.id.asc())
        .all()
    )


def list_items(session_id: int) -> list[SessionItem]:
    return (
        db.session.query(SessionItem)
        .filter_by(session_id=session_id)
        .order_by(SessionItem.scanned_in_at.asc(), SessionItem.id.asc())
        .all()
    )


def count_by_status(session_id: int) -> dict[str, int]:
    rows = (
        db.session.query(SessionItem.status, func.count(SessionItem.id))
        .filter(SessionItem.session_id == session_id)
        .group_by(SessionItem.status)
        .all()
    )
    counts = {status: 0 for status in (ITEM_IN_ROOM, *ITEM_OUTCOMES)}
    counts.update({status: count for status, count in rows})
    return counts
