# Overview: Append-only attribution log written alongside each mutation.

from __future__ import annotations

from ..extensions import db
from ..identity import ActorContext
from ..models import AuditEvent


def record_event(
    actor: ActorContext,
    *,
    event_type: str,
    entity_type: str,
    entity_id: int,
    session_id: int | None = None,
    note: str | None = None,
) -> AuditEvent:
    """
    Append an audit event in the caller's transaction.

    No updates or deletes of existing events.
    """
    event = AuditEvent(
        store_id=actor.store_id,
        actor_id=actor.actor_id,
        actor_role=actor.role,
        event_type=event_type,
        entity_type=entity_type,
        entity_id=entity_id,
        session_id=session_id,
        note=note,
    )
    db.session.add(event)
    db.session.flush()
    return event


def list_events(
    store_id: int,
    *,
    session_id: int | None = None,
    event_type: str | None = None,
    limit: int = 200,
) -> list[AuditEvent]:
    query = db.session.query(AuditEvent).filter_by(store_id=store_id)
    if session_id is not None:
        query = query.filter_by(session_id=session_id)
    if event_type:
        query = query.filter_by(event_type=event_type)
    return query.order_by(AuditEvent.occurred_at.asc(), AuditEvent.id.asc()).limit(limit).all()
