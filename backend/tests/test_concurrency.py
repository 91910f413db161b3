# Overview: Pytest coverage for the savepoint retry helper.

import pytest
from sqlalchemy.exc import OperationalError

from changeroom.errors import StateError
from changeroom.models import Store
from changeroom.services.concurrency import run_with_retry


def _locked():
    return OperationalError("UPDATE store_sequences", {}, Exception("database is locked"))


class TestRunWithRetry:

    def test_retries_operational_error(self, db_session):
        calls = []

        def op():
            calls.append(1)
            if len(calls) < 3:
                raise _locked()
            return "ok"

        assert run_with_retry(op, backoff_base=0) == "ok"
        assert len(calls) == 3

    def test_gives_up_after_attempts(self, db_session):
        def op():
            raise _locked()

        with pytest.raises(OperationalError):
            run_with_retry(op, attempts=2, backoff_base=0)

    def test_domain_errors_are_not_retried(self, db_session):
        calls = []

        def op():
            calls.append(1)
            raise StateError("Item 1 is already purchased")

        with pytest.raises(StateError):
            run_with_retry(op, backoff_base=0)
        assert len(calls) == 1

    def test_failed_attempt_keeps_earlier_work(self, db_session):
        """Only the attempt's savepoint rolls back."""
        db_session.add(Store(code="S100", name="Kept"))
        db_session.flush()
        calls = []

        def op():
            calls.append(1)
            db_session.add(Store(code=f"S10{len(calls)}", name="Attempt"))
            db_session.flush()
            if len(calls) == 1:
                raise _locked()
            return len(calls)

        assert run_with_retry(op, backoff_base=0) == 2
        db_session.commit()

        codes = sorted(code for (code,) in db_session.query(Store.code))
        assert codes == ["S100", "S102"]
