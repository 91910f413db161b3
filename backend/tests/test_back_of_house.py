# Overview: Pytest coverage for the back-of-house restock queue and urgency.

from datetime import datetime, timedelta

import pytest

from changeroom.errors import NotFoundError, StateError
from changeroom.models import BackOfHouseEntry
from changeroom.models.dispositions import BOH_AWAITING_RETURN, BOH_RETURNED
from changeroom.services import back_of_house_service, reconciliation_service
from changeroom.services.back_of_house_service import (
    URGENCY_CRITICAL,
    URGENCY_NORMAL,
    URGENCY_WARNING,
)

NOW = datetime(2026, 3, 14, 15, 0, 0)


def _entry_received(minutes_ago):
    return BackOfHouseEntry(received_at=NOW - timedelta(minutes=minutes_ago), status=BOH_AWAITING_RETURN)


@pytest.fixture
def restocked(db_session, actor, make_session):
    """Exit a session restocking every item; returns the queue entries."""
    def _restock(tag="042", barcodes=("SKU1", "SKU2")):
        session = make_session(tag=tag, barcodes=barcodes)
        reconciliation_service.start_exit(actor, tag)
        entries = [
            reconciliation_service.scan_and_resolve(actor, session.id, barcode, "restocked").back_of_house_entry
            for barcode in barcodes
        ]
        db_session.commit()
        return entries
    return _restock


class TestUrgency:
    """Urgency is a pure function of elapsed time."""

    @pytest.mark.parametrize("minutes, expected", [
        (0, URGENCY_NORMAL),
        (29.9, URGENCY_NORMAL),
        (30, URGENCY_WARNING),
        (59.9, URGENCY_WARNING),
        (60, URGENCY_CRITICAL),
        (240, URGENCY_CRITICAL),
    ])
    def test_thresholds(self, minutes, expected):
        assert back_of_house_service.urgency_of(_entry_received(minutes), NOW) == expected

    @pytest.mark.parametrize("minutes, expected", [
        (5, "5m"),
        (59, "59m"),
        (60, "1h 0m"),
        (135, "2h 15m"),
    ])
    def test_format_wait(self, minutes, expected):
        assert back_of_house_service.format_wait(_entry_received(minutes), NOW) == expected

    def test_entry_dict_includes_urgency_only_while_waiting(self):
        entry = _entry_received(45)
        data = back_of_house_service.entry_to_dict(entry, NOW)
        assert data["urgency"] == URGENCY_WARNING
        assert data["wait"] == "45m"

        entry.status = BOH_RETURNED
        assert "urgency" not in back_of_house_service.entry_to_dict(entry, NOW)


class TestQueue:

    def test_restock_creates_awaiting_entries(self, db_session, actor, restocked):
        entries = restocked()

        assert [e.item_barcode for e in entries] == ["SKU1", "SKU2"]
        assert all(e.status == BOH_AWAITING_RETURN for e in entries)
        assert all(e.team_member_id == actor.actor_id for e in entries)
        assert back_of_house_service.count_awaiting(actor.store_id) == 2

    def test_queue_is_oldest_first(self, db_session, actor, restocked):
        first, second = restocked()
        second.received_at = first.received_at - timedelta(minutes=5)
        db_session.commit()

        queue = back_of_house_service.list_queue(actor.store_id)
        assert [e.id for e in queue] == [second.id, first.id]

    def test_min_wait_filter(self, db_session, actor, restocked):
        fresh, old = restocked()
        old.received_at = old.received_at - timedelta(minutes=90)
        db_session.commit()

        queue = back_of_house_service.list_queue(actor.store_id, min_wait_minutes=60)
        assert [e.id for e in queue] == [old.id]

    def test_queue_is_store_scoped(self, db_session, other_store, restocked):
        restocked()
        assert back_of_house_service.list_queue(other_store.id) == []


class TestMarkReturned:

    def test_mark_returned(self, db_session, actor, restocked):
        entry = restocked()[0]

        returned = back_of_house_service.mark_returned(actor, entry.id)
        db_session.commit()

        assert returned.status == BOH_RETURNED
        assert returned.returned_at is not None
        assert back_of_house_service.count_awaiting(actor.store_id) == 1
        assert [e.id for e in back_of_house_service.list_queue(actor.store_id, status=BOH_RETURNED)] == [entry.id]

    def test_mark_returned_twice(self, db_session, actor, restocked):
        entry = restocked()[0]
        back_of_house_service.mark_returned(actor, entry.id)

        with pytest.raises(StateError):
            back_of_house_service.mark_returned(actor, entry.id)

    def test_mark_returned_unknown(self, db_session, actor):
        with pytest.raises(NotFoundError):
            back_of_house_service.mark_returned(actor, 12345)
