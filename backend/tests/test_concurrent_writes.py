# Overview: Threaded tests against a file-backed SQLite database for basket numbering and open-tag uniqueness.

"""
Concurrent Write Tests

Each worker pushes its own app context, so it gets its own scoped session
and pooled connection, the same as concurrent requests would.
"""

import threading

import pytest

from changeroom import create_app
from changeroom.config import TestConfig
from changeroom.errors import ConflictError
from changeroom.extensions import db
from changeroom.identity import ActorContext
from changeroom.models import Basket, FittingSession, Store, TeamMember
from changeroom.models.sessions import OPEN_SESSION_STATUSES
from changeroom.services import basket_service, session_service

WORKERS = 8


@pytest.fixture
def file_app(tmp_path):
    """App bound to a throwaway SQLite file, seeded with one store and member."""
    class FileConfig(TestConfig):
        SQLALCHEMY_DATABASE_URI = f"sqlite:///{tmp_path / 'concurrency.sqlite3'}"
        SQLALCHEMY_ENGINE_OPTIONS = {"connect_args": {"timeout": 30}}

    app = create_app(FileConfig)
    with app.app_context():
        db.create_all()
        store = Store(code="S001", name="High Street")
        db.session.add(store)
        db.session.commit()
        member = TeamMember(store_id=store.id, member_code="TM01", full_name="Sam Lee")
        db.session.add(member)
        db.session.commit()

    yield app

    with app.app_context():
        db.session.remove()
        db.drop_all()
        db.engine.dispose()


@pytest.fixture
def file_actor(file_app):
    with file_app.app_context():
        member = db.session.query(TeamMember).filter_by(member_code="TM01").one()
        return ActorContext(actor_id=member.id, store_id=member.store_id, role=member.role)


def _run_workers(app, targets):
    """Start one thread per target at the same moment; collect results or exceptions."""
    results = []
    lock = threading.Lock()
    barrier = threading.Barrier(len(targets))

    def worker(target):
        with app.app_context():
            try:
                barrier.wait()
                outcome = target()
                db.session.commit()
            except Exception as exc:
                db.session.rollback()
                outcome = exc
            finally:
                db.session.remove()
        with lock:
            results.append(outcome)

    threads = [threading.Thread(target=worker, args=(t,)) for t in targets]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    return results


class TestConcurrentBaskets:

    def test_distinct_sessions_get_contiguous_numbers(self, file_app, file_actor):
        """N concurrent get_or_create calls hand out 1..N with no failures."""
        with file_app.app_context():
            session_ids = [session_service.open_session(file_actor, f"T{n:02d}").id for n in range(WORKERS)]
            db.session.commit()

        def create_for(session_id):
            def target():
                session = session_service.get_session(session_id)
                return basket_service.get_or_create(file_actor, session).basket_number
            return target

        results = _run_workers(file_app, [create_for(sid) for sid in session_ids])

        errors = [r for r in results if isinstance(r, Exception)]
        assert errors == []
        assert sorted(results) == list(range(1, WORKERS + 1))

        with file_app.app_context():
            assert db.session.query(Basket).count() == WORKERS

    def test_same_session_shares_one_basket(self, file_app, file_actor):
        with file_app.app_context():
            session_id = session_service.open_session(file_actor, "042").id
            db.session.commit()

        def target():
            session = session_service.get_session(session_id)
            return basket_service.get_or_create(file_actor, session).basket_number

        results = _run_workers(file_app, [target] * WORKERS)

        assert results == [1] * WORKERS
        with file_app.app_context():
            assert db.session.query(Basket).filter_by(session_id=session_id).count() == 1


class TestConcurrentOpenSession:

    def test_one_open_session_per_tag(self, file_app, file_actor):
        """Racing opens of one tag yield a single winner; the rest conflict."""

        def target():
            return session_service.open_session(file_actor, "042").id

        results = _run_workers(file_app, [target] * WORKERS)

        winners = [r for r in results if isinstance(r, int)]
        conflicts = [r for r in results if isinstance(r, ConflictError)]
        assert len(winners) == 1
        assert len(conflicts) == WORKERS - 1

        with file_app.app_context():
            open_rows = (
                db.session.query(FittingSession)
                .filter(FittingSession.tag_barcode == "042")
                .filter(FittingSession.status.in_(OPEN_SESSION_STATUSES))
                .all()
            )
            assert [s.id for s in open_rows] == winners
