# Overview: Store-scoped atomic counters (basket numbers).

from __future__ import annotations

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..errors import ValidationError
from ..extensions import db
from ..models import StoreSequence
from .concurrency import run_with_retry

BASKET_SEQUENCE = "basket"


def _increment(store_id: int, name: str) -> int | None:
    stmt = (
        update(StoreSequence)
        .where(StoreSequence.store_id == store_id, StoreSequence.name == name)
        .values(next_value=StoreSequence.next_value + 1)
        .execution_options(synchronize_session=False)
    )
    result = db.session.execute(stmt)
    if not result.rowcount:
        return None
    # The UPDATE holds the row lock until commit, so this read sees our own increment.
    current = (
        db.session.query(StoreSequence.next_value)
        .filter_by(store_id=store_id, name=name)
        .scalar()
    )
    return current - 1


def next_value(*, store_id: int, name: str) -> int:
    """
    Allocate the next number of a store's sequence.

    A single UPDATE ... SET next_value = next_value + 1 does the allocation.
    The first allocation inserts the row; if another writer inserted it
    first, the unique constraint fires and we fall back to the increment.
    """
    if not store_id:
        raise ValidationError("store_id is required", attempted="allocate_sequence")
    if not name:
        raise ValidationError("sequence name is required", attempted="allocate_sequence")

    def _op() -> int:
        allocated = _increment(store_id, name)
        if allocated is not None:
            return allocated

        try:
            with db.session.begin_nested():
                db.session.add(StoreSequence(store_id=store_id, name=name, next_value=2))
            return 1
        except IntegrityError:
            allocated = _increment(store_id, name)
            if allocated is None:
                raise
            return allocated

    return run_with_retry(_op)
