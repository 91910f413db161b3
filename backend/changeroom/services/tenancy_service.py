# backend/changeroom/services/tenancy_service.py
"""
Read-only views over stores and team members for the admin screen.

Stores and members are created by the seed command or directly in the
database; nothing here mutates them.
"""
from __future__ import annotations

from sqlalchemy import func

from ..extensions import db
from ..models import Store, TeamMember


def list_stores() -> list[tuple[Store, int]]:
    """Every store by name, paired with its team member count."""
    member_count = func.count(TeamMember.id)
    return (
        db.session.query(Store, member_count)
        .outerjoin(TeamMember, TeamMember.store_id == Store.id)
        .group_by(Store.id)
        .order_by(Store.name.asc(), Store.id.asc())
        .all()
    )


def list_team_members(*, store_id: int | None = None, active_only: bool = False) -> list[TeamMember]:
    query = db.session.query(TeamMember)
    if store_id is not None:
        query = query.filter_by(store_id=store_id)
    if active_only:
        query = query.filter_by(is_active=True)
    return query.order_by(TeamMember.full_name.asc(), TeamMember.id.asc()).all()
