from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z

MEMBER_ROLES = ("team_member", "manager", "admin")


class Store(db.Model):
    """
    A shop whose changing rooms are tracked.

    Every session, basket, queue and shrinkage row is scoped to a store.
    """
    __tablename__ = "stores"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(32), nullable=False, unique=True, index=True)
    name = db.Column(db.String(120), nullable=False)
    location = db.Column(db.String(255), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<Store id={self.id} code={self.code!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "code": self.code,
            "name": self.name,
            "location": self.location,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class TeamMember(db.Model):
    """
    Staff member operating a changing room device.

    Used purely for attribution of mutating calls; login and PIN handling
    live outside this service.
    """
    __tablename__ = "team_members"
    __table_args__ = (
        db.UniqueConstraint("store_id", "member_code", name="uq_team_members_store_code"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    member_code = db.Column(db.String(32), nullable=False)
    full_name = db.Column(db.String(120), nullable=False)
    role = db.Column(db.String(16), nullable=False, default="team_member")  # team_member, manager, admin
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    store = db.relationship("Store", backref=db.backref("team_members", lazy=True))

    def __repr__(self) -> str:
        return f"<TeamMember id={self.id} code={self.member_code!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "member_code": self.member_code,
            "full_name": self.full_name,
            "role": self.role,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }


class StoreSequence(db.Model):
    """
    Store-scoped counter advanced by a single UPDATE ... SET n = n + 1.

    next_value is the number the next allocation will return.
    """
    __tablename__ = "store_sequences"
    __table_args__ = (
        db.UniqueConstraint("store_id", "name", name="uq_store_sequences_store_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    name = db.Column(db.String(32), nullable=False)
    next_value = db.Column(db.Integer, nullable=False, default=1)
