# Overview: Pytest coverage for item resolution and FIFO lookups.

import pytest

from changeroom.errors import NotFoundError, StateError, ValidationError
from changeroom.models import SessionItem
from changeroom.models.sessions import ITEM_IN_ROOM, ITEM_LOST, ITEM_PURCHASED, ITEM_RESTOCKED
from changeroom.services import item_service


def _items(db_session, session_id):
    return (
        db_session.query(SessionItem)
        .filter_by(session_id=session_id)
        .order_by(SessionItem.id)
        .all()
    )


class TestResolveItem:
    """Single-shot terminal resolution."""

    def test_resolve_sets_status_and_time(self, db_session, make_session):
        session = make_session(barcodes=("SKU1",))
        item = _items(db_session, session.id)[0]

        resolved = item_service.resolve_item(item.id, ITEM_RESTOCKED)

        assert resolved.status == ITEM_RESTOCKED
        assert resolved.resolved_at is not None
        assert resolved.is_resolved

    def test_outcome_is_case_insensitive(self, db_session, make_session):
        session = make_session(barcodes=("SKU1",))
        item = _items(db_session, session.id)[0]

        assert item_service.resolve_item(item.id, " Purchased ").status == ITEM_PURCHASED

    def test_second_resolution_raises(self, db_session, make_session):
        """Resolution happens exactly once; the second caller loses."""
        session = make_session(barcodes=("SKU1",))
        item = _items(db_session, session.id)[0]

        item_service.resolve_item(item.id, ITEM_PURCHASED)
        with pytest.raises(StateError) as exc:
            item_service.resolve_item(item.id, ITEM_RESTOCKED)

        assert exc.value.entity_id == item.id
        db_session.refresh(item)
        assert item.status == ITEM_PURCHASED

    def test_unknown_outcome(self, db_session, make_session):
        session = make_session(barcodes=("SKU1",))
        item = _items(db_session, session.id)[0]

        with pytest.raises(ValidationError):
            item_service.resolve_item(item.id, ITEM_IN_ROOM)

    def test_missing_item(self, db_session):
        with pytest.raises(NotFoundError):
            item_service.resolve_item(424242, ITEM_LOST)

    def test_get_item_scoped_to_session(self, db_session, make_session):
        a = make_session(tag="001", barcodes=("SKU1",))
        b = make_session(tag="002", barcodes=("SKU1",))
        item_b = _items(db_session, b.id)[0]

        with pytest.raises(NotFoundError):
            item_service.get_item(item_b.id, session_id=a.id)


class TestFifoLookup:
    """find_unresolved_by_barcode picks the earliest scan."""

    def test_oldest_instance_first(self, db_session, make_session):
        session = make_session(barcodes=("SKU1", "SKU2", "SKU1", "SKU1"))
        sku1 = [i for i in _items(db_session, session.id) if i.item_barcode == "SKU1"]

        assert item_service.find_unresolved_by_barcode(session.id, "SKU1").id == sku1[0].id

        item_service.resolve_item(sku1[0].id, ITEM_PURCHASED)
        assert item_service.find_unresolved_by_barcode(session.id, "SKU1").id == sku1[1].id

        item_service.resolve_item(sku1[1].id, ITEM_RESTOCKED)
        assert item_service.find_unresolved_by_barcode(session.id, "SKU1").id == sku1[2].id

        item_service.resolve_item(sku1[2].id, ITEM_PURCHASED)
        assert item_service.find_unresolved_by_barcode(session.id, "SKU1") is None

    def test_barcode_match_is_exact(self, db_session, make_session):
        """No prefix or case-insensitive matching on item barcodes."""
        session = make_session(barcodes=("SKU1",))

        assert item_service.find_unresolved_by_barcode(session.id, "sku1") is None
        assert item_service.find_unresolved_by_barcode(session.id, "SKU") is None
        assert item_service.find_unresolved_by_barcode(session.id, "SKU1\n") is not None

    def test_lookup_does_not_cross_sessions(self, db_session, make_session):
        a = make_session(tag="001", barcodes=("SKU1",))
        make_session(tag="002", barcodes=("SKU9",))

        assert item_service.find_unresolved_by_barcode(a.id, "SKU9") is None


class TestCounts:
    """Unresolved counts and status tallies."""

    def test_count_unresolved_by_barcode(self, db_session, make_session):
        session = make_session(barcodes=("SKU1", "SKU1", "SKU2"))
        assert item_service.count_unresolved_by_barcode(session.id, "SKU1") == 2

        first = item_service.find_unresolved_by_barcode(session.id, "SKU1")
        item_service.resolve_item(first.id, ITEM_LOST)
        assert item_service.count_unresolved_by_barcode(session.id, "SKU1") == 1

    def test_list_unresolved_in_scan_order(self, db_session, make_session):
        session = make_session(barcodes=("C", "A", "B"))
        assert [i.item_barcode for i in item_service.list_unresolved(session.id)] == ["C", "A", "B"]

    def test_count_by_status_includes_zeroes(self, db_session, make_session):
        session = make_session(barcodes=("SKU1", "SKU2"))
        first = item_service.find_unresolved_by_barcode(session.id, "SKU1")
        item_service.resolve_item(first.id, ITEM_PURCHASED)

        assert item_service.count_by_status(session.id) == {
            ITEM_IN_ROOM: 1,
            ITEM_PURCHASED: 1,
            ITEM_RESTOCKED: 0,
            ITEM_LOST: 0,
        }
