from __future__ import annotations

from sqlalchemy import text

from ..extensions import db
from ..time_utils import to_utc_z, utcnow

SESSION_IN_PROGRESS = "in_progress"
SESSION_EXITING = "exiting"
SESSION_COMPLETE = "complete"
SESSION_FLAGGED = "flagged"

OPEN_SESSION_STATUSES = (SESSION_IN_PROGRESS, SESSION_EXITING)
CLOSED_SESSION_STATUSES = (SESSION_COMPLETE, SESSION_FLAGGED)

ITEM_IN_ROOM = "in_room"
ITEM_PURCHASED = "purchased"
ITEM_RESTOCKED = "restocked"
ITEM_LOST = "lost"

ITEM_OUTCOMES = (ITEM_PURCHASED, ITEM_RESTOCKED, ITEM_LOST)

_OPEN_TAG_PREDICATE = text("status IN ('in_progress', 'exiting')")


class FittingSession(db.Model):
    """
    One tag-identified changing room visit.

    LIFECYCLE (forward only):
    in_progress -> exiting -> complete | flagged

    The partial unique index guarantees at most one open session per tag
    within a store; the insert itself is the uniqueness check.
    """
    __tablename__ = "sessions"
    __table_args__ = (
        db.Index(
            "uq_sessions_open_tag",
            "store_id",
            "tag_barcode",
            unique=True,
            sqlite_where=_OPEN_TAG_PREDICATE,
            postgresql_where=_OPEN_TAG_PREDICATE,
        ),
        db.Index("ix_sessions_store_status_entry", "store_id", "status", "entry_time"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    team_member_id = db.Column(db.Integer, db.ForeignKey("team_members.id"), nullable=False, index=True)
    tag_barcode = db.Column(db.String(64), nullable=False, index=True)

    status = db.Column(db.String(16), nullable=False, default=SESSION_IN_PROGRESS, index=True)

    total_items_in = db.Column(db.Integer, nullable=False, default=0)
    total_items_out = db.Column(db.Integer, nullable=False, default=0)
    items_purchased = db.Column(db.Integer, nullable=False, default=0)
    items_restocked = db.Column(db.Integer, nullable=False, default=0)
    items_lost = db.Column(db.Integer, nullable=False, default=0)

    entry_time = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    exit_start_time = db.Column(db.DateTime(timezone=True), nullable=True)
    exit_complete_time = db.Column(db.DateTime(timezone=True), nullable=True)

    store = db.relationship("Store")
    team_member = db.relationship("TeamMember")
    items = db.relationship(
        "SessionItem",
        back_populates="session",
        lazy=True,
        cascade="all, delete-orphan",
        order_by=lambda: [SessionItem.scanned_in_at, SessionItem.id],
    )

    def __repr__(self) -> str:
        return f"<FittingSession id={self.id} tag={self.tag_barcode!r} status={self.status}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "team_member_id": self.team_member_id,
            "tag_barcode": self.tag_barcode,
            "status": self.status,
            "total_items_in": self.total_items_in,
            "total_items_out": self.total_items_out,
            "items_purchased": self.items_purchased,
            "items_restocked": self.items_restocked,
            "items_lost": self.items_lost,
            "entry_time": to_utc_z(self.entry_time),
            "exit_start_time": to_utc_z(self.exit_start_time),
            "exit_complete_time": to_utc_z(self.exit_complete_time),
        }


class SessionItem(db.Model):
    """
    A single garment carried into a session.

    Barcodes are not unique: identical SKUs are distinguished only by id,
    and scan order (scanned_in_at, id) is the FIFO tie-break at exit.
    Status leaves in_room exactly once.
    """
    __tablename__ = "session_items"
    __table_args__ = (
        db.Index("ix_session_items_fifo", "session_id", "item_barcode", "status", "scanned_in_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    session_id = db.Column(db.Integer, db.ForeignKey("sessions.id"), nullable=False, index=True)
    item_barcode = db.Column(db.String(64), nullable=False)
    status = db.Column(db.String(16), nullable=False, default=ITEM_IN_ROOM, index=True)

    basket_id = db.Column(db.Integer, db.ForeignKey("baskets.id"), nullable=True, index=True)

    scanned_in_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    resolved_at = db.Column(db.DateTime(timezone=True), nullable=True)

    session = db.relationship("FittingSession", back_populates="items")
    basket = db.relationship("Basket", back_populates="items")

    @property
    def is_resolved(self) -> bool:
        return self.status != ITEM_IN_ROOM

    def __repr__(self) -> str:
        return f"<SessionItem id={self.id} barcode={self.item_barcode!r} status={self.status}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "session_id": self.session_id,
            "item_barcode": self.item_barcode,
            "status": self.status,
            "basket_id": self.basket_id,
            "scanned_in_at": to_utc_z(self.scanned_in_at),
            "resolved_at": to_utc_z(self.resolved_at),
        }
