# backend/changeroom/services/discrepancy_service.py
"""
Discrepancy sub-flow for items still in_room when the operator finishes an exit.

Each unresolved item ends in exactly one of:
- late scan: the garment turns up; an exact barcode match lets the caller
  resolve it as purchased or restocked
- lost: the item is marked lost and a shrinkage entry is written

A late scan whose barcode does not match is a warning, not an error, and
never forces a resolution. The session closes automatically once nothing
is left in_room: flagged if any item ended lost, otherwise complete.
"""
from __future__ import annotations

from dataclasses import dataclass, field

from ..errors import StateError
from ..extensions import db
from ..identity import ActorContext
from ..models import FittingSession, SessionItem, ShrinkageEntry
from ..models.sessions import CLOSED_SESSION_STATUSES, ITEM_IN_ROOM, ITEM_LOST
from ..validation import normalize_barcode
from . import item_service, reconciliation_service, session_service, shrinkage_service
from .reconciliation_service import Resolution


@dataclass
class DiscrepancyStep:
    session: FittingSession
    item: SessionItem | None = None
    resolution: Resolution | None = None
    shrinkage_entries: list[ShrinkageEntry] = field(default_factory=list)
    matched: bool = True
    session_closed: bool = False
    remaining: int = 0
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "session": self.session.to_dict(),
            "item": self.item.to_dict() if self.item else None,
            "resolution": self.resolution.to_dict() if self.resolution else None,
            "shrinkage_entries": [entry.to_dict() for entry in self.shrinkage_entries],
            "matched": self.matched,
            "session_closed": self.session_closed,
            "remaining": self.remaining,
            "warnings": self.warnings,
        }


def list_discrepancies(actor: ActorContext, session_id: int) -> list[SessionItem]:
    session = session_service.get_session(session_id, store_id=actor.store_id)
    return item_service.list_unresolved(session.id)


def _open_item(actor: ActorContext, session_id: int, item_id: int, attempted: str):
    session = reconciliation_service.require_exiting_session(actor, session_id, attempted)
    item = item_service.get_item(item_id, session_id=session.id)
    if item.status != ITEM_IN_ROOM:
        raise StateError(
            f"Item {item.id} is already {item.status}",
            entity_type="item",
            entity_id=item.id,
            attempted=f"{item.status}->{attempted}",
        )
    return session, item


def _close_if_done(actor: ActorContext, step: DiscrepancyStep) -> DiscrepancyStep:
    remaining = item_service.list_unresolved(step.session.id)
    step.remaining = len(remaining)
    if not remaining:
        step.session = reconciliation_service.close_session(actor, step.session)
        step.session_closed = True
    return step


def resolve_via_late_scan(
    actor: ActorContext,
    session_id: int,
    item_id: int,
    barcode: str,
    outcome: str,
) -> DiscrepancyStep:
    """
    Resolve a missing item after the garment was found and scanned.

    The scanned barcode must equal the item's barcode exactly; otherwise
    the attempt returns a warning and the item stays unresolved.
    """
    barcode = normalize_barcode(barcode)
    session, item = _open_item(actor, session_id, item_id, "late_scan")

    if barcode != item.item_barcode:
        return DiscrepancyStep(
            session=session,
            item=item,
            matched=False,
            remaining=len(item_service.list_unresolved(session.id)),
            warnings=[f"Scanned {barcode} does not match item {item.item_barcode}"],
        )

    resolution = reconciliation_service.apply_resolution(actor, session, item, outcome)
    step = DiscrepancyStep(
        session=session,
        item=resolution.item,
        resolution=resolution,
        warnings=list(resolution.warnings),
    )
    return _close_if_done(actor, step)


def _mark_lost(actor: ActorContext, session: FittingSession, item: SessionItem, notes: str | None) -> ShrinkageEntry:
    with db.session.begin_nested():
        item_service.resolve_item(item.id, ITEM_LOST)
        entry = shrinkage_service.record(actor, session.id, item.item_barcode, notes)
        session_service.increment_lost(session.id)
    db.session.refresh(session)
    return entry


def mark_lost(actor: ActorContext, session_id: int, item_id: int, notes: str | None = None) -> DiscrepancyStep:
    """
    Give up on one item: mark it lost and log shrinkage.

    Not reversible here; recovery is a separate shrinkage action that does
    not reopen the item or session.
    """
    session, item = _open_item(actor, session_id, item_id, ITEM_LOST)
    entry = _mark_lost(actor, session, item, notes)
    db.session.refresh(item)
    step = DiscrepancyStep(session=session, item=item, shrinkage_entries=[entry])
    return _close_if_done(actor, step)


def mark_all_lost(actor: ActorContext, session_id: int, notes: str | None = None) -> DiscrepancyStep:
    """Mark every remaining in_room item lost and close the session as flagged."""
    session = reconciliation_service.require_exiting_session(actor, session_id, "mark_all_lost")
    entries = [
        _mark_lost(actor, session, item, notes)
        for item in item_service.list_unresolved(session.id)
    ]
    step = DiscrepancyStep(session=session, shrinkage_entries=entries)
    return _close_if_done(actor, step)


def close_discrepancy(actor: ActorContext, session_id: int) -> FittingSession:
    """
    Explicit close once every item is resolved.

    Returns the session unchanged if the last resolution already closed it.
    """
    session = session_service.get_session(session_id, store_id=actor.store_id)
    if session.status in CLOSED_SESSION_STATUSES:
        return session

    session = reconciliation_service.require_exiting_session(actor, session_id, "close_discrepancy")
    unresolved = item_service.list_unresolved(session.id)
    if unresolved:
        raise StateError(
            f"Session {session.id} still has {len(unresolved)} unresolved item(s)",
            entity_type="session",
            entity_id=session.id,
            attempted="close_discrepancy",
        )
    return reconciliation_service.close_session(actor, session)
