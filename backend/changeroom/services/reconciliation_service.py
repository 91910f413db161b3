# backend/changeroom/services/reconciliation_service.py
"""
Exit reconciliation: match what leaves the changing room against what went in.

STATES (per exit attempt, derived from persisted rows, never held in memory):
    awaiting_tag -> matching_items -> all_resolved | has_discrepancy -> closed

- awaiting_tag: the session is still in_progress; scanning its tag starts the exit
- matching_items: exiting, items still in_room
- all_resolved: exiting, nothing left in_room; finish_exit closes it
- has_discrepancy: the operator asked to finish with items still in_room;
  the discrepancy sub-flow takes over
- closed: complete or flagged

An exit can be abandoned at any point and resumed later: resolved items
cannot be resolved twice and unresolved items are simply offered again.
The orchestrator never chooses an outcome; it records what the caller asks.
"""
from __future__ import annotations

from dataclasses import dataclass, field

from flask import current_app

from ..errors import NotFoundError, StateError
from ..extensions import db
from ..identity import ActorContext
from ..models import BackOfHouseEntry, Basket, FittingSession, SessionItem
from ..models.sessions import (
    CLOSED_SESSION_STATUSES,
    ITEM_LOST,
    ITEM_PURCHASED,
    ITEM_RESTOCKED,
    SESSION_COMPLETE,
    SESSION_EXITING,
    SESSION_FLAGGED,
    SESSION_IN_PROGRESS,
)
from ..validation import normalize_barcode, require_choice
from . import back_of_house_service, basket_service, item_service, session_service

EXIT_AWAITING_TAG = "awaiting_tag"
EXIT_MATCHING_ITEMS = "matching_items"
EXIT_ALL_RESOLVED = "all_resolved"
EXIT_HAS_DISCREPANCY = "has_discrepancy"
EXIT_CLOSED = "closed"

# Lost is only reachable through the discrepancy sub-flow.
EXIT_OUTCOMES = (ITEM_PURCHASED, ITEM_RESTOCKED)


@dataclass
class ScanMatch:
    item: SessionItem
    unresolved_with_barcode: int
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "item": self.item.to_dict(),
            "unresolved_with_barcode": self.unresolved_with_barcode,
            "warnings": self.warnings,
        }


@dataclass
class Resolution:
    item: SessionItem
    basket: Basket | None = None
    back_of_house_entry: BackOfHouseEntry | None = None
    duplicates_remaining: int = 0
    all_resolved: bool = False
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "item": self.item.to_dict(),
            "basket": self.basket.to_dict() if self.basket else None,
            "back_of_house_entry": (
                self.back_of_house_entry.to_dict() if self.back_of_house_entry else None
            ),
            "duplicates_remaining": self.duplicates_remaining,
            "all_resolved": self.all_resolved,
            "warnings": self.warnings,
        }


@dataclass
class ExitProgress:
    session: FittingSession
    state: str
    unresolved: list[SessionItem] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "session": self.session.to_dict(),
            "state": self.state,
            "unresolved": [item.to_dict() for item in self.unresolved],
        }


def duplicate_warning(barcode: str, count: int) -> str:
    return f"Note: {count} items with barcode {barcode} - scan again after resolving this one"


def exit_state(session: FittingSession) -> str:
    """Derive the exit state of a session from what is persisted."""
    if session.status == SESSION_IN_PROGRESS:
        return EXIT_AWAITING_TAG
    if session.status in CLOSED_SESSION_STATUSES:
        return EXIT_CLOSED
    if item_service.list_unresolved(session.id):
        return EXIT_MATCHING_ITEMS
    return EXIT_ALL_RESOLVED


def require_exiting_session(actor: ActorContext, session_id: int, attempted: str) -> FittingSession:
    session = session_service.get_session(session_id, store_id=actor.store_id)
    if session.status != SESSION_EXITING:
        raise StateError(
            f"Session {session.id} is {session.status}; {attempted} requires exiting",
            entity_type="session",
            entity_id=session.id,
            attempted=attempted,
        )
    return session


def start_exit(actor: ActorContext, tag_barcode: str) -> ExitProgress:
    """
    Scan a tag at the exit: look up its open session and begin (or resume) the exit.

    Raises:
        NotFoundError: no active session for the tag
    """
    session = session_service.lookup_open_by_tag(actor.store_id, tag_barcode)
    if session is None:
        raise NotFoundError(
            f"No active session for tag {normalize_barcode(tag_barcode, field='tag')}",
            entity_type="tag",
            entity_id=tag_barcode,
            attempted="start_exit",
        )

    session = session_service.begin_exit(actor, session.id)
    unresolved = item_service.list_unresolved(session.id)
    state = EXIT_MATCHING_ITEMS if unresolved else EXIT_ALL_RESOLVED
    return ExitProgress(session=session, state=state, unresolved=unresolved)


def match_scan(actor: ActorContext, session_id: int, barcode: str) -> ScanMatch:
    """
    Find the oldest unresolved instance of a scanned barcode. Nothing is written.

    A miss raises NotFoundError but leaves the session untouched; the caller
    may rescan or skip.
    """
    barcode = normalize_barcode(barcode)
    session = require_exiting_session(actor, session_id, "match")

    item = item_service.find_unresolved_by_barcode(session.id, barcode)
    if item is None:
        raise NotFoundError(
            f"Item {barcode} not found in this session",
            entity_type="session",
            entity_id=session.id,
            attempted="match",
        )

    count = item_service.count_unresolved_by_barcode(session.id, barcode)
    warnings = []
    if count > 1:
        warnings.append(duplicate_warning(barcode, count))
        current_app.logger.warning(
            "Session %s has %d unresolved items with barcode %s", session.id, count, barcode
        )
    return ScanMatch(item=item, unresolved_with_barcode=count, warnings=warnings)


def apply_resolution(
    actor: ActorContext,
    session: FittingSession,
    item: SessionItem,
    outcome: str,
) -> Resolution:
    """
    Resolve an item as purchased or restocked and route it onward.

    purchased -> attached to the session's basket (created on first purchase)
    restocked -> enqueued to back-of-house

    All writes share one SAVEPOINT; a StateError from a racing resolution
    leaves nothing behind.
    """
    outcome = require_choice(outcome, EXIT_OUTCOMES, field="outcome")
    basket = None
    entry = None

    with db.session.begin_nested():
        item = item_service.resolve_item(item.id, outcome)
        if outcome == ITEM_PURCHASED:
            basket = basket_service.get_or_create(actor, session)
            basket_service.attach(actor, item, basket)
        else:
            entry = back_of_house_service.enqueue(actor, session.id, item.item_barcode)

    remaining = item_service.count_unresolved_by_barcode(session.id, item.item_barcode)
    warnings = []
    if remaining:
        # The scan that just resolved plus those still open share the barcode.
        warnings.append(duplicate_warning(item.item_barcode, remaining + 1))

    return Resolution(
        item=item,
        basket=basket,
        back_of_house_entry=entry,
        duplicates_remaining=remaining,
        all_resolved=not item_service.list_unresolved(session.id),
        warnings=warnings,
    )


def resolve_match(actor: ActorContext, session_id: int, item_id: int, outcome: str) -> Resolution:
    """Record the caller's decision (purchased/restocked) for a matched item."""
    session = require_exiting_session(actor, session_id, "resolve")
    item = item_service.get_item(item_id, session_id=session.id)
    return apply_resolution(actor, session, item, outcome)


def scan_and_resolve(actor: ActorContext, session_id: int, barcode: str, outcome: str) -> Resolution:
    """match_scan followed by resolve_match for single-step callers."""
    match = match_scan(actor, session_id, barcode)
    return resolve_match(actor, session_id, match.item.id, outcome)


def close_session(actor: ActorContext, session: FittingSession) -> FittingSession:
    """
    Finalize an exiting session from its items' outcomes.

    flagged if any item ended lost, otherwise complete.
    """
    counts = item_service.count_by_status(session.id)
    purchased = counts[ITEM_PURCHASED]
    restocked = counts[ITEM_RESTOCKED]
    lost = counts[ITEM_LOST]
    outcome = SESSION_FLAGGED if lost else SESSION_COMPLETE

    return session_service.finalize(
        actor,
        session.id,
        outcome,
        total_items_out=purchased + restocked,
        items_purchased=purchased,
        items_restocked=restocked,
        items_lost=lost,
    )


def finish_exit(actor: ActorContext, session_id: int) -> ExitProgress:
    """
    Operator is done scanning.

    With nothing left in_room the session closes as complete. Otherwise the
    unresolved items are handed to the discrepancy sub-flow and the session
    stays exiting.
    """
    session = require_exiting_session(actor, session_id, "finish")
    unresolved = item_service.list_unresolved(session.id)
    if unresolved:
        current_app.logger.info(
            "Session %s has %d unresolved item(s); discrepancy required", session.id, len(unresolved)
        )
        return ExitProgress(session=session, state=EXIT_HAS_DISCREPANCY, unresolved=unresolved)

    session = close_session(actor, session)
    return ExitProgress(session=session, state=EXIT_CLOSED, unresolved=[])
