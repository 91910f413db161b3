"""
Pytest fixtures for the changing room backend tests.

Provides an in-memory database, a store with team members, actor contexts
and a Flask test client.
"""

import pytest
from changeroom import create_app
from changeroom.config import TestConfig
from changeroom.extensions import db
from changeroom.identity import ActorContext
from changeroom.models import Store, TeamMember
from changeroom.services import session_service


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app(TestConfig)

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Empty every table before each test."""
    with app.app_context():
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        db.session.rollback()


@pytest.fixture(scope='function')
def store(db_session):
    store = Store(code="S001", name="High Street", location="Ground floor")
    db_session.add(store)
    db_session.commit()
    return store


@pytest.fixture(scope='function')
def other_store(db_session):
    store = Store(code="S002", name="Retail Park")
    db_session.add(store)
    db_session.commit()
    return store


@pytest.fixture(scope='function')
def member(db_session, store):
    member = TeamMember(store_id=store.id, member_code="TM01", full_name="Sam Lee", role="team_member")
    db_session.add(member)
    db_session.commit()
    return member


@pytest.fixture(scope='function')
def manager(db_session, store):
    member = TeamMember(store_id=store.id, member_code="MG01", full_name="Alex Kim", role="manager")
    db_session.add(member)
    db_session.commit()
    return member


@pytest.fixture(scope='function')
def actor(member):
    return ActorContext(actor_id=member.id, store_id=member.store_id, role=member.role)


@pytest.fixture(scope='function')
def make_session(db_session, actor):
    """Open a session for a tag and scan the given barcodes in, in order."""
    def _make(tag="042", barcodes=("SKU1", "SKU1", "SKU2")):
        session = session_service.open_session(actor, tag)
        for barcode in barcodes:
            session_service.record_entry_item(actor, session.id, barcode)
        db_session.commit()
        return session
    return _make


@pytest.fixture(scope='function')
def headers(db_session, member):
    """Identity headers for API calls."""
    headers = {"X-Actor-Id": str(member.id), "X-Store-Id": str(member.store_id)}
    # Requests share the in-memory connection; leave no transaction open.
    db_session.commit()
    return headers
