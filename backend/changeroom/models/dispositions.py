from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow

BOH_AWAITING_RETURN = "awaiting_return"
BOH_RETURNED = "returned"

SHRINKAGE_LOST = "lost"
SHRINKAGE_RECOVERED = "recovered"


class BackOfHouseEntry(db.Model):
    """
    A restocked garment waiting to be carried back to the shop floor.

    Urgency is derived from received_at at read time and never stored.
    """
    __tablename__ = "back_of_house"
    __table_args__ = (
        db.Index("ix_back_of_house_store_status_received", "store_id", "status", "received_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    session_id = db.Column(db.Integer, db.ForeignKey("sessions.id"), nullable=False, index=True)
    item_barcode = db.Column(db.String(64), nullable=False)
    team_member_id = db.Column(db.Integer, db.ForeignKey("team_members.id"), nullable=False)
    status = db.Column(db.String(16), nullable=False, default=BOH_AWAITING_RETURN)

    received_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    returned_at = db.Column(db.DateTime(timezone=True), nullable=True)

    team_member = db.relationship("TeamMember")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "session_id": self.session_id,
            "item_barcode": self.item_barcode,
            "team_member_id": self.team_member_id,
            "status": self.status,
            "received_at": to_utc_z(self.received_at),
            "returned_at": to_utc_z(self.returned_at),
        }


class ShrinkageEntry(db.Model):
    """
    Loss-prevention record for a garment that never came back out.

    Recovery is terminal and does not reopen the originating item or session.
    """
    __tablename__ = "shrinkage_log"
    __table_args__ = (
        db.Index("ix_shrinkage_store_status_lost", "store_id", "status", "lost_at"),
        db.Index("ix_shrinkage_store_barcode", "store_id", "item_barcode"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    session_id = db.Column(db.Integer, db.ForeignKey("sessions.id"), nullable=False, index=True)
    item_barcode = db.Column(db.String(64), nullable=False)
    team_member_id = db.Column(db.Integer, db.ForeignKey("team_members.id"), nullable=False)
    status = db.Column(db.String(16), nullable=False, default=SHRINKAGE_LOST)

    lost_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    recovered_at = db.Column(db.DateTime(timezone=True), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    team_member = db.relationship("TeamMember")
    session = db.relationship("FittingSession")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "session_id": self.session_id,
            "item_barcode": self.item_barcode,
            "team_member_id": self.team_member_id,
            "status": self.status,
            "lost_at": to_utc_z(self.lost_at),
            "recovered_at": to_utc_z(self.recovered_at),
            "notes": self.notes,
        }
