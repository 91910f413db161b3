from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow


class AuditEvent(db.Model):
    """
    Append-only attribution log for every mutating call.

    Rows are written in the same transaction as the change they record
    and are never updated or deleted by the service layer.
    """
    __tablename__ = "audit_events"
    __table_args__ = (
        db.Index("ix_audit_events_store_occurred", "store_id", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False)
    actor_id = db.Column(db.Integer, db.ForeignKey("team_members.id"), nullable=True, index=True)
    actor_role = db.Column(db.String(16), nullable=True)

    event_type = db.Column(db.String(64), nullable=False, index=True)
    entity_type = db.Column(db.String(32), nullable=False)
    entity_id = db.Column(db.Integer, nullable=False)
    session_id = db.Column(db.Integer, nullable=True, index=True)  # plain int: survives session deletion

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    note = db.Column(db.Text, nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "actor_id": self.actor_id,
            "actor_role": self.actor_role,
            "event_type": self.event_type,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "session_id": self.session_id,
            "occurred_at": to_utc_z(self.occurred_at),
            "note": self.note,
        }
