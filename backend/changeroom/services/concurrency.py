# Overview: Retry helper shared by the service layer.

from __future__ import annotations

import time

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.05):
    """
    Run func inside a SAVEPOINT, retrying on lock/deadlock failures.

    Only OperationalError and StaleDataError are retried, and only the
    savepoint is rolled back, so earlier work in the caller's transaction
    survives. Domain errors propagate on the first attempt.
    """
    for attempt in range(attempts):
        try:
            with db.session.begin_nested():
                return func()
        except (OperationalError, StaleDataError):
            if attempt >= attempts - 1:
                raise
            time.sleep(backoff_base * (2 ** attempt))
