# Overview: Pytest coverage for basket numbering, attachment, disposition and purge.

from datetime import timedelta

import pytest

from changeroom.errors import ConflictError, NotFoundError, StateError, ValidationError
from changeroom.models import Basket, SessionItem, StoreSequence
from changeroom.models.baskets import BASKET_ABANDONED, BASKET_ACTIVE, BASKET_TRANSFERRED
from changeroom.models.sessions import ITEM_PURCHASED
from changeroom.services import basket_service, reconciliation_service, sequence_service
from changeroom.time_utils import utcnow


@pytest.fixture
def purchased(db_session, actor, make_session):
    """Exit a session with every item purchased and return its basket."""
    def _purchase(tag, barcodes=("SKU1",)):
        session = make_session(tag=tag, barcodes=barcodes)
        reconciliation_service.start_exit(actor, tag)
        resolution = None
        for barcode in barcodes:
            resolution = reconciliation_service.scan_and_resolve(actor, session.id, barcode, "purchased")
        db_session.commit()
        return session, resolution.basket
    return _purchase


class TestSequence:
    """Store-scoped basket numbers."""

    def test_first_allocation_is_one(self, db_session, store):
        assert sequence_service.next_value(store_id=store.id, name="basket") == 1
        assert sequence_service.next_value(store_id=store.id, name="basket") == 2

        row = db_session.query(StoreSequence).filter_by(store_id=store.id, name="basket").one()
        db_session.refresh(row)
        assert row.next_value == 3

    def test_sequences_are_per_store(self, db_session, store, other_store):
        sequence_service.next_value(store_id=store.id, name="basket")
        sequence_service.next_value(store_id=store.id, name="basket")

        assert sequence_service.next_value(store_id=other_store.id, name="basket") == 1

    def test_missing_store_rejected(self, db_session):
        with pytest.raises(ValidationError):
            sequence_service.next_value(store_id=None, name="basket")


class TestGetOrCreate:

    def test_numbers_are_distinct_and_contiguous(self, db_session, purchased):
        """N sessions with purchases get baskets 1..N."""
        baskets = [purchased(tag=f"T{n:02d}")[1] for n in range(5)]

        assert [b.basket_number for b in baskets] == [1, 2, 3, 4, 5]
        assert len({b.id for b in baskets}) == 5

    def test_one_basket_per_session(self, db_session, actor, purchased):
        session, basket = purchased(tag="042", barcodes=("SKU1", "SKU2", "SKU3"))

        again = basket_service.get_or_create(actor, session)

        assert again.id == basket.id
        assert db_session.query(Basket).filter_by(session_id=session.id).count() == 1
        assert len(basket.items) == 3

    def test_no_basket_without_purchase(self, db_session, actor, make_session):
        session = make_session(barcodes=("SKU1",))
        reconciliation_service.start_exit(actor, "042")
        reconciliation_service.scan_and_resolve(actor, session.id, "SKU1", "restocked")

        assert basket_service.find_for_session(session.id) is None


class TestAttach:

    def test_attach_requires_purchased(self, db_session, actor, purchased, make_session):
        session, basket = purchased(tag="042")
        other = make_session(tag="043", barcodes=("SKU9",))
        item = other.items[0]

        with pytest.raises(StateError):
            basket_service.attach(actor, item, basket)

    def test_attach_rejects_foreign_session_item(self, db_session, actor, purchased):
        _, basket_a = purchased(tag="001")
        session_b, _ = purchased(tag="002")
        item_b = db_session.query(SessionItem).filter_by(session_id=session_b.id).one()

        with pytest.raises(ConflictError):
            basket_service.attach(actor, item_b, basket_a)

    def test_attach_is_idempotent(self, db_session, actor, purchased):
        session, basket = purchased(tag="042")
        item = db_session.query(SessionItem).filter_by(session_id=session.id).one()

        assert basket_service.attach(actor, item, basket).basket_id == basket.id

    def test_attach_to_closed_basket(self, db_session, actor, make_session):
        session = make_session(barcodes=("SKU1", "SKU2"))
        reconciliation_service.start_exit(actor, "042")
        first = reconciliation_service.scan_and_resolve(actor, session.id, "SKU1", "purchased")
        basket_service.set_disposition(actor, first.basket.id, BASKET_ABANDONED)
        db_session.commit()

        with pytest.raises(StateError):
            reconciliation_service.scan_and_resolve(actor, session.id, "SKU2", "purchased")
        db_session.rollback()

        item = db_session.query(SessionItem).filter_by(session_id=session.id, item_barcode="SKU2").one()
        assert item.status == "in_room"


class TestDisposition:

    def test_set_transferred(self, db_session, actor, purchased):
        _, basket = purchased(tag="042")

        updated = basket_service.set_disposition(actor, basket.id, "transferred")
        db_session.commit()

        assert updated.status == BASKET_TRANSFERRED
        assert updated.resolved_at is not None
        assert basket_service.list_active_baskets(actor.store_id) == []

    def test_disposition_is_terminal(self, db_session, actor, purchased):
        _, basket = purchased(tag="042")
        basket_service.set_disposition(actor, basket.id, BASKET_ABANDONED)

        with pytest.raises(StateError):
            basket_service.set_disposition(actor, basket.id, BASKET_TRANSFERRED)

    def test_active_is_not_a_disposition(self, db_session, actor, purchased):
        _, basket = purchased(tag="042")
        with pytest.raises(ValidationError):
            basket_service.set_disposition(actor, basket.id, BASKET_ACTIVE)

    def test_disposition_leaves_items_purchased(self, db_session, actor, purchased):
        session, basket = purchased(tag="042", barcodes=("SKU1", "SKU2"))
        basket_service.set_disposition(actor, basket.id, BASKET_ABANDONED)
        db_session.commit()

        items = db_session.query(SessionItem).filter_by(session_id=session.id).all()
        assert all(i.status == ITEM_PURCHASED for i in items)
        assert {i.basket_id for i in items} == {basket.id}

    def test_unknown_basket(self, db_session, actor):
        with pytest.raises(NotFoundError):
            basket_service.set_disposition(actor, 999, BASKET_ABANDONED)


class TestDeleteAndPurge:

    def test_cannot_delete_active_basket(self, db_session, actor, purchased):
        _, basket = purchased(tag="042")
        with pytest.raises(StateError):
            basket_service.delete_basket(actor, basket.id)

    def test_delete_clears_item_links(self, db_session, actor, purchased):
        session, basket = purchased(tag="042", barcodes=("SKU1", "SKU2"))
        basket_id = basket.id
        basket_service.set_disposition(actor, basket_id, BASKET_TRANSFERRED)
        basket_service.delete_basket(actor, basket_id)
        db_session.commit()

        assert db_session.get(Basket, basket_id) is None
        items = db_session.query(SessionItem).filter_by(session_id=session.id).all()
        assert all(i.basket_id is None for i in items)
        assert all(i.status == ITEM_PURCHASED for i in items)

    def test_purge_respects_grace_period(self, db_session, actor, purchased):
        _, recent = purchased(tag="001")
        _, stale = purchased(tag="002")
        recent_id, stale_id = recent.id, stale.id
        basket_service.set_disposition(actor, recent_id, BASKET_TRANSFERRED)
        basket_service.set_disposition(actor, stale_id, BASKET_TRANSFERRED)
        stale.resolved_at = utcnow() - timedelta(minutes=10)
        db_session.commit()

        purged = basket_service.purge_transferred_baskets(300)
        db_session.commit()

        assert purged == 1
        assert db_session.get(Basket, stale_id) is None
        assert db_session.get(Basket, recent_id) is not None

    def test_purge_ignores_abandoned(self, db_session, actor, purchased):
        _, basket = purchased(tag="042")
        basket_service.set_disposition(actor, basket.id, BASKET_ABANDONED)
        db_session.commit()

        later = utcnow() + timedelta(hours=1)
        assert basket_service.purge_transferred_baskets(0, now=later) == 0

    def test_basket_numbers_not_reused_after_delete(self, db_session, actor, purchased):
        _, first = purchased(tag="001")
        basket_service.set_disposition(actor, first.id, BASKET_TRANSFERRED)
        basket_service.delete_basket(actor, first.id)
        db_session.commit()

        _, second = purchased(tag="002")
        assert second.basket_number == 2
