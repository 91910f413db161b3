from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z

BASKET_ACTIVE = "active"
BASKET_ABANDONED = "abandoned"
BASKET_TRANSFERRED = "transferred"

BASKET_DISPOSITIONS = (BASKET_ABANDONED, BASKET_TRANSFERRED)


class Basket(db.Model):
    """
    Numbered grouping of a session's purchased items.

    LIFECYCLE:
    1. active: created lazily on the first purchase in a session
    2. abandoned | transferred: terminal checkout handoff signal

    basket_number is allocated from the store's "basket" StoreSequence.
    A session owns at most one basket (unique session_id).
    """
    __tablename__ = "baskets"
    __table_args__ = (
        db.UniqueConstraint("store_id", "basket_number", name="uq_baskets_store_number"),
        db.UniqueConstraint("session_id", name="uq_baskets_session"),
        db.Index("ix_baskets_store_status", "store_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    basket_number = db.Column(db.Integer, nullable=False)
    session_id = db.Column(db.Integer, db.ForeignKey("sessions.id"), nullable=False)
    status = db.Column(db.String(16), nullable=False, default=BASKET_ACTIVE)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    resolved_at = db.Column(db.DateTime(timezone=True), nullable=True)

    session = db.relationship("FittingSession", backref=db.backref("basket", uselist=False, lazy=True))
    items = db.relationship(
        "SessionItem",
        back_populates="basket",
        lazy=True,
        order_by="SessionItem.resolved_at",
    )

    def __repr__(self) -> str:
        return f"<Basket id={self.id} number={self.basket_number} status={self.status}>"

    def to_dict(self, include_items: bool = False) -> dict:
        data = {
            "id": self.id,
            "store_id": self.store_id,
            "basket_number": self.basket_number,
            "session_id": self.session_id,
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
            "resolved_at": to_utc_z(self.resolved_at),
        }
        if include_items:
            data["tag_barcode"] = self.session.tag_barcode if self.session else None
            data["items"] = [item.to_dict() for item in self.items]
        return data
