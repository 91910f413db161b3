# backend/changeroom/services/shrinkage_service.py
"""
Shrinkage log: garments that never came back out of a changing room.

Recovery is a later, independent action. It does not reopen the item or
the session that produced the entry.
"""
from __future__ import annotations

from datetime import datetime

from flask import current_app
from sqlalchemy import update

from ..errors import NotFoundError, StateError
from ..extensions import db
from ..identity import ActorContext
from ..models import ShrinkageEntry
from ..models.dispositions import SHRINKAGE_LOST, SHRINKAGE_RECOVERED
from ..time_utils import utcnow
from ..validation import normalize_barcode
from . import audit_service

DEFAULT_LOST_NOTE = "Item not returned from changing room"


def record(actor: ActorContext, session_id: int, barcode: str, notes: str | None = None) -> ShrinkageEntry:
    entry = ShrinkageEntry(
        store_id=actor.store_id,
        session_id=session_id,
        item_barcode=normalize_barcode(barcode),
        team_member_id=actor.actor_id,
        status=SHRINKAGE_LOST,
        lost_at=utcnow(),
        notes=notes or DEFAULT_LOST_NOTE,
    )
    db.session.add(entry)
    db.session.flush()

    audit_service.record_event(
        actor,
        event_type="shrinkage.lost",
        entity_type="shrinkage",
        entity_id=entry.id,
        session_id=session_id,
        note=entry.item_barcode,
    )
    current_app.logger.info(
        "Logged lost item %s from session %s", entry.item_barcode, session_id
    )
    return entry


def get_entry(entry_id: int, *, store_id: int | None = None) -> ShrinkageEntry:
    entry = db.session.get(ShrinkageEntry, entry_id)
    if not entry or (store_id is not None and entry.store_id != store_id):
        raise NotFoundError(
            f"Shrinkage entry {entry_id} not found",
            entity_type="shrinkage",
            entity_id=entry_id,
            attempted="lookup",
        )
    return entry


def recover(actor: ActorContext, entry_id: int) -> ShrinkageEntry:
    entry = get_entry(entry_id, store_id=actor.store_id)

    result = db.session.execute(
        update(ShrinkageEntry)
        .where(ShrinkageEntry.id == entry.id, ShrinkageEntry.status == SHRINKAGE_LOST)
        .values(status=SHRINKAGE_RECOVERED, recovered_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    db.session.refresh(entry)
    if not result.rowcount:
        raise StateError(
            f"Shrinkage entry {entry.id} is already {entry.status}",
            entity_type="shrinkage",
            entity_id=entry.id,
            attempted=f"{entry.status}->{SHRINKAGE_RECOVERED}",
        )

    audit_service.record_event(
        actor,
        event_type="shrinkage.recovered",
        entity_type="shrinkage",
        entity_id=entry.id,
        session_id=entry.session_id,
        note=entry.item_barcode,
    )
    return entry


def _filtered(store_id: int, status: str | None, date_from: datetime | None, date_to: datetime | None):
    query = db.session.query(ShrinkageEntry).filter_by(store_id=store_id)
    if status:
        query = query.filter_by(status=status)
    if date_from:
        query = query.filter(ShrinkageEntry.lost_at >= date_from)
    if date_to:
        query = query.filter(ShrinkageEntry.lost_at <= date_to)
    return query


def list_entries(
    store_id: int,
    *,
    status: str | None = None,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
) -> list[ShrinkageEntry]:
    return (
        _filtered(store_id, status, date_from, date_to)
        .order_by(ShrinkageEntry.lost_at.desc(), ShrinkageEntry.id.desc())
        .all()
    )


def count_lost(store_id: int, *, date_from: datetime | None = None, date_to: datetime | None = None) -> int:
    return _filtered(store_id, SHRINKAGE_LOST, date_from, date_to).count()


def find_lost_by_barcode(store_id: int, barcode: str) -> ShrinkageEntry | None:
    """Most recent still-lost entry for a barcode (e.g. a garment found on the floor)."""
    return (
        _filtered(store_id, SHRINKAGE_LOST, None, None)
        .filter(ShrinkageEntry.item_barcode == normalize_barcode(barcode))
        .order_by(ShrinkageEntry.lost_at.desc(), ShrinkageEntry.id.desc())
        .first()
    )
