"""
Acting identity supplied with every mutating call.

Login and token handling live outside this service; callers hand in who is
acting and for which store, and the core only records it.
"""
from __future__ import annotations

from dataclasses import dataclass

from .errors import NotFoundError, ValidationError
from .extensions import db
from .models import TeamMember
from .models.tenancy import MEMBER_ROLES


@dataclass(frozen=True)
class ActorContext:
    actor_id: int
    store_id: int
    role: str = "team_member"


def resolve_actor(actor_id, store_id, role: str | None = None) -> ActorContext:
    """
    Build an ActorContext after checking the team member exists, is active
    and belongs to the given store.

    The caller-supplied role wins over the stored one; no policy depends on it.
    """
    try:
        actor_id = int(actor_id)
        store_id = int(store_id)
    except (TypeError, ValueError):
        raise ValidationError("actor_id and store_id must be integers", attempted="identify")

    member = db.session.get(TeamMember, actor_id)
    if not member or not member.is_active or member.store_id != store_id:
        raise NotFoundError(
            f"Team member {actor_id} is not active in store {store_id}",
            entity_type="team_member",
            entity_id=actor_id,
            attempted="identify",
        )

    role = (role or member.role).strip().lower()
    if role not in MEMBER_ROLES:
        raise ValidationError(f"Unknown role: {role}", entity_type="team_member", entity_id=actor_id)

    return ActorContext(actor_id=member.id, store_id=member.store_id, role=role)
