# backend/changeroom/services/session_service.py
"""
Session ledger: one tag-identified changing room visit.

LIFECYCLE (forward only):
1. in_progress: tag scanned at entry, items being scanned in
2. exiting: exit reconciliation started (resumable)
3. complete | flagged: finalized with consistent counters, read-only

DESIGN PRINCIPLES:
- "One open session per tag" is a partial unique index; the INSERT is the check
- Status moves are conditional UPDATEs guarded by the expected current status
- Counters are adjusted with SQL arithmetic, never read-modify-write
- Services flush; the caller commits
"""
from __future__ import annotations

from datetime import datetime

from flask import current_app
from sqlalchemy import delete, update
from sqlalchemy.exc import IntegrityError

from ..errors import ConflictError, NotFoundError, StateError, ValidationError
from ..extensions import db
from ..identity import ActorContext
from ..models import BackOfHouseEntry, Basket, FittingSession, SessionItem, ShrinkageEntry
from ..models.sessions import (
    CLOSED_SESSION_STATUSES,
    ITEM_IN_ROOM,
    OPEN_SESSION_STATUSES,
    SESSION_EXITING,
    SESSION_IN_PROGRESS,
)
from ..time_utils import utcnow
from ..validation import normalize_barcode
from . import audit_service


def get_session(session_id: int, *, store_id: int | None = None) -> FittingSession:
    session = db.session.get(FittingSession, session_id)
    if not session or (store_id is not None and session.store_id != store_id):
        raise NotFoundError(
            f"Session {session_id} not found",
            entity_type="session",
            entity_id=session_id,
            attempted="lookup",
        )
    return session


def lookup_open_by_tag(store_id: int, tag_barcode: str) -> FittingSession | None:
    """The unique in_progress/exiting session for a tag, or None."""
    tag_barcode = normalize_barcode(tag_barcode, field="tag")
    return (
        db.session.query(FittingSession)
        .filter(
            FittingSession.store_id == store_id,
            FittingSession.tag_barcode == tag_barcode,
            FittingSession.status.in_(OPEN_SESSION_STATUSES),
        )
        .first()
    )


def open_session(actor: ActorContext, tag_barcode: str) -> FittingSession:
    """
    Open a new session for a tag.

    Raises:
        ConflictError: the tag already has an in_progress/exiting session
    """
    tag_barcode = normalize_barcode(tag_barcode, field="tag")

    session = FittingSession(
        store_id=actor.store_id,
        team_member_id=actor.actor_id,
        tag_barcode=tag_barcode,
        status=SESSION_IN_PROGRESS,
        entry_time=utcnow(),
    )
    try:
        with db.session.begin_nested():
            db.session.add(session)
    except IntegrityError:
        existing = lookup_open_by_tag(actor.store_id, tag_barcode)
        raise ConflictError(
            f"Tag {tag_barcode} already has an open session",
            entity_type="session",
            entity_id=existing.id if existing else None,
            attempted="open",
        )

    audit_service.record_event(
        actor,
        event_type="session.opened",
        entity_type="session",
        entity_id=session.id,
        session_id=session.id,
        note=f"Tag {tag_barcode}",
    )
    current_app.logger.info("Opened session %s for tag %s", session.id, tag_barcode)
    return session


def _state_error(session: FittingSession, attempted: str, expected: str) -> StateError:
    return StateError(
        f"Session {session.id} is {session.status}; {attempted} requires {expected}",
        entity_type="session",
        entity_id=session.id,
        attempted=f"{session.status}->{attempted}",
    )


def record_entry_item(actor: ActorContext, session_id: int, barcode: str) -> SessionItem:
    """
    Scan a garment into an in_progress session.

    Duplicate barcodes are legal; each scan is its own row.
    """
    barcode = normalize_barcode(barcode)
    session = get_session(session_id, store_id=actor.store_id)

    with db.session.begin_nested():
        bump = db.session.execute(
            update(FittingSession)
            .where(FittingSession.id == session.id, FittingSession.status == SESSION_IN_PROGRESS)
            .values(total_items_in=FittingSession.total_items_in + 1)
            .execution_options(synchronize_session=False)
        )
        if not bump.rowcount:
            db.session.refresh(session)
            raise _state_error(session, "add_item", SESSION_IN_PROGRESS)

        item = SessionItem(
            session_id=session.id,
            item_barcode=barcode,
            status=ITEM_IN_ROOM,
            scanned_in_at=utcnow(),
        )
        db.session.add(item)

    db.session.refresh(session)
    audit_service.record_event(
        actor,
        event_type="item.scanned_in",
        entity_type="item",
        entity_id=item.id,
        session_id=session.id,
        note=barcode,
    )
    return item


def remove_entry_item(actor: ActorContext, session_id: int, item_id: int) -> None:
    """
    Undo an accidental scan: hard-delete an in_room item before exit begins.
    """
    session = get_session(session_id, store_id=actor.store_id)
    item = db.session.get(SessionItem, item_id)
    if not item or item.session_id != session.id:
        raise NotFoundError(
            f"Item {item_id} not found in this session",
            entity_type="item",
            entity_id=item_id,
            attempted="remove",
        )
    barcode = item.item_barcode

    with db.session.begin_nested():
        dec = db.session.execute(
            update(FittingSession)
            .where(FittingSession.id == session.id, FittingSession.status == SESSION_IN_PROGRESS)
            .values(total_items_in=FittingSession.total_items_in - 1)
            .execution_options(synchronize_session=False)
        )
        if not dec.rowcount:
            db.session.refresh(session)
            raise _state_error(session, "remove_item", SESSION_IN_PROGRESS)

        removed = db.session.execute(
            delete(SessionItem)
            .where(SessionItem.id == item_id, SessionItem.status == ITEM_IN_ROOM)
            .execution_options(synchronize_session="fetch")
        )
        if not removed.rowcount:
            raise StateError(
                f"Item {item_id} is already resolved and cannot be removed",
                entity_type="item",
                entity_id=item_id,
                attempted="remove",
            )

    db.session.refresh(session)
    audit_service.record_event(
        actor,
        event_type="item.removed",
        entity_type="item",
        entity_id=item_id,
        session_id=session.id,
        note=barcode,
    )


def begin_exit(actor: ActorContext, session_id: int) -> FittingSession:
    """
    Move in_progress -> exiting and stamp exit_start_time.

    Idempotent for a session already exiting, so an interrupted exit can be
    resumed.
    """
    session = get_session(session_id, store_id=actor.store_id)
    if session.status == SESSION_EXITING:
        return session

    result = db.session.execute(
        update(FittingSession)
        .where(FittingSession.id == session.id, FittingSession.status == SESSION_IN_PROGRESS)
        .values(status=SESSION_EXITING, exit_start_time=utcnow())
        .execution_options(synchronize_session=False)
    )
    db.session.refresh(session)

    if not result.rowcount:
        # Another device may have started the exit first; that is still success.
        if session.status == SESSION_EXITING:
            return session
        raise _state_error(session, SESSION_EXITING, SESSION_IN_PROGRESS)

    audit_service.record_event(
        actor,
        event_type="session.exit_started",
        entity_type="session",
        entity_id=session.id,
        session_id=session.id,
    )
    return session


def finalize(
    actor: ActorContext,
    session_id: int,
    outcome: str,
    *,
    total_items_out: int,
    items_purchased: int,
    items_restocked: int,
    items_lost: int,
) -> FittingSession:
    """
    Close an exiting session as complete or flagged with its final counters.

    Raises:
        ValidationError: outcome is not complete/flagged
        StateError: session is not exiting, or the counters do not add up
            to total_items_in
    """
    if outcome not in CLOSED_SESSION_STATUSES:
        raise ValidationError(
            f"outcome must be one of: {', '.join(CLOSED_SESSION_STATUSES)}",
            entity_type="session",
            entity_id=session_id,
            attempted="finalize",
        )
    session = get_session(session_id, store_id=actor.store_id)

    if items_purchased + items_restocked + items_lost != session.total_items_in:
        raise StateError(
            f"Session {session.id} counters do not reconcile: "
            f"{items_purchased} purchased + {items_restocked} restocked + {items_lost} lost "
            f"!= {session.total_items_in} in",
            entity_type="session",
            entity_id=session.id,
            attempted=f"{session.status}->{outcome}",
        )

    result = db.session.execute(
        update(FittingSession)
        .where(FittingSession.id == session.id, FittingSession.status == SESSION_EXITING)
        .values(
            status=outcome,
            total_items_out=total_items_out,
            items_purchased=items_purchased,
            items_restocked=items_restocked,
            items_lost=items_lost,
            exit_complete_time=utcnow(),
        )
        .execution_options(synchronize_session=False)
    )
    db.session.refresh(session)
    if not result.rowcount:
        raise _state_error(session, outcome, SESSION_EXITING)

    audit_service.record_event(
        actor,
        event_type=f"session.{outcome}",
        entity_type="session",
        entity_id=session.id,
        session_id=session.id,
        note=(
            f"in={session.total_items_in} purchased={items_purchased} "
            f"restocked={items_restocked} lost={items_lost}"
        ),
    )
    current_app.logger.info("Session %s closed as %s", session.id, outcome)
    return session


def increment_lost(session_id: int) -> None:
    """Bump items_lost while the session is still exiting."""
    result = db.session.execute(
        update(FittingSession)
        .where(FittingSession.id == session_id, FittingSession.status == SESSION_EXITING)
        .values(items_lost=FittingSession.items_lost + 1)
        .execution_options(synchronize_session=False)
    )
    if not result.rowcount:
        session = get_session(session_id)
        raise _state_error(session, "mark_lost", SESSION_EXITING)


def list_sessions(
    store_id: int,
    *,
    statuses: list[str] | None = None,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
    limit: int = 100,
) -> list[FittingSession]:
    """Read-only listing for dashboards; newest entry first."""
    query = db.session.query(FittingSession).filter(FittingSession.store_id == store_id)
    if statuses:
        query = query.filter(FittingSession.status.in_(statuses))
    if date_from:
        query = query.filter(FittingSession.entry_time >= date_from)
    if date_to:
        query = query.filter(FittingSession.entry_time <= date_to)
    return query.order_by(FittingSession.entry_time.desc(), FittingSession.id.desc()).limit(limit).all()


def delete_session(actor: ActorContext, session_id: int) -> None:
    """
    Explicitly delete a cancelled or erroneous session with its items and basket.

    Refused while back-of-house or shrinkage records point at the session;
    those are loss-prevention history.
    """
    session = get_session(session_id, store_id=actor.store_id)

    referenced = (
        db.session.query(BackOfHouseEntry.id).filter_by(session_id=session.id).first()
        or db.session.query(ShrinkageEntry.id).filter_by(session_id=session.id).first()
    )
    if referenced:
        raise ConflictError(
            f"Session {session.id} has back-of-house or shrinkage records and cannot be deleted",
            entity_type="session",
            entity_id=session.id,
            attempted="delete",
        )

    tag_barcode = session.tag_barcode
    with db.session.begin_nested():
        basket = db.session.query(Basket).filter_by(session_id=session.id).first()
        if basket:
            db.session.execute(
                update(SessionItem)
                .where(SessionItem.basket_id == basket.id)
                .values(basket_id=None)
                .execution_options(synchronize_session=False)
            )
            db.session.delete(basket)
        db.session.delete(session)

    audit_service.record_event(
        actor,
        event_type="session.deleted",
        entity_type="session",
        entity_id=session_id,
        session_id=session_id,
        note=f"Tag {tag_barcode}",
    )
    current_app.logger.info("Deleted session %s (tag %s)", session_id, tag_barcode)
