# backend/changeroom/services/back_of_house_service.py
"""
Back-of-house queue: restocked garments waiting to go back to the floor.

LIFECYCLE:
awaiting_return -> returned   (terminal)

Urgency is computed from received_at at read time. Changing the
thresholds below never needs a migration.
"""
from __future__ import annotations

from datetime import datetime, timedelta

from sqlalchemy import update

from ..errors import NotFoundError, StateError
from ..extensions import db
from ..identity import ActorContext
from ..models import BackOfHouseEntry
from ..models.dispositions import BOH_AWAITING_RETURN, BOH_RETURNED
from ..time_utils import elapsed_minutes, utcnow
from ..validation import normalize_barcode
from . import audit_service

URGENCY_NORMAL = "normal"
URGENCY_WARNING = "warning"
URGENCY_CRITICAL = "critical"

WARNING_AFTER_MINUTES = 30
CRITICAL_AFTER_MINUTES = 60


def urgency_of(entry: BackOfHouseEntry, now: datetime | None = None) -> str:
    """Pure function of now - received_at: <30 normal, 30-60 warning, >=60 critical."""
    minutes = elapsed_minutes(entry.received_at, now)
    if minutes >= CRITICAL_AFTER_MINUTES:
        return URGENCY_CRITICAL
    if minutes >= WARNING_AFTER_MINUTES:
        return URGENCY_WARNING
    return URGENCY_NORMAL


def format_wait(entry: BackOfHouseEntry, now: datetime | None = None) -> str:
    minutes = int(elapsed_minutes(entry.received_at, now))
    hours, minutes = divmod(max(minutes, 0), 60)
    if hours:
        return f"{hours}h {minutes}m"
    return f"{minutes}m"


def entry_to_dict(entry: BackOfHouseEntry, now: datetime | None = None) -> dict:
    data = entry.to_dict()
    if entry.status == BOH_AWAITING_RETURN:
        data["urgency"] = urgency_of(entry, now)
        data["wait"] = format_wait(entry, now)
    return data


def enqueue(actor: ActorContext, session_id: int, barcode: str) -> BackOfHouseEntry:
    entry = BackOfHouseEntry(
        store_id=actor.store_id,
        session_id=session_id,
        item_barcode=normalize_barcode(barcode),
        team_member_id=actor.actor_id,
        status=BOH_AWAITING_RETURN,
        received_at=utcnow(),
    )
    db.session.add(entry)
    db.session.flush()

    audit_service.record_event(
        actor,
        event_type="back_of_house.received",
        entity_type="back_of_house",
        entity_id=entry.id,
        session_id=session_id,
        note=entry.item_barcode,
    )
    return entry


def get_entry(entry_id: int, *, store_id: int | None = None) -> BackOfHouseEntry:
    entry = db.session.get(BackOfHouseEntry, entry_id)
    if not entry or (store_id is not None and entry.store_id != store_id):
        raise NotFoundError(
            f"Back-of-house entry {entry_id} not found",
            entity_type="back_of_house",
            entity_id=entry_id,
            attempted="lookup",
        )
    return entry


def mark_returned(actor: ActorContext, entry_id: int) -> BackOfHouseEntry:
    entry = get_entry(entry_id, store_id=actor.store_id)

    result = db.session.execute(
        update(BackOfHouseEntry)
        .where(BackOfHouseEntry.id == entry.id, BackOfHouseEntry.status == BOH_AWAITING_RETURN)
        .values(status=BOH_RETURNED, returned_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    db.session.refresh(entry)
    if not result.rowcount:
        raise StateError(
            f"Back-of-house entry {entry.id} is already {entry.status}",
            entity_type="back_of_house",
            entity_id=entry.id,
            attempted=f"{entry.status}->{BOH_RETURNED}",
        )

    audit_service.record_event(
        actor,
        event_type="back_of_house.returned",
        entity_type="back_of_house",
        entity_id=entry.id,
        session_id=entry.session_id,
        note=entry.item_barcode,
    )
    return entry


def list_queue(
    store_id: int,
    *,
    status: str = BOH_AWAITING_RETURN,
    min_wait_minutes: int | None = None,
    now: datetime | None = None,
) -> list[BackOfHouseEntry]:
    """Oldest first, so the most urgent garments lead the list."""
    query = db.session.query(BackOfHouseEntry).filter_by(store_id=store_id, status=status)
    if min_wait_minutes:
        cutoff = (now or utcnow()) - timedelta(minutes=min_wait_minutes)
        query = query.filter(BackOfHouseEntry.received_at <= cutoff)
    return query.order_by(BackOfHouseEntry.received_at.asc(), BackOfHouseEntry.id.asc()).all()


def count_awaiting(store_id: int) -> int:
    return (
        db.session.query(BackOfHouseEntry)
        .filter_by(store_id=store_id, status=BOH_AWAITING_RETURN)
        .count()
    )
