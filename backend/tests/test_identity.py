# Overview: Pytest coverage for actor resolution and input validation helpers.

import pytest

from changeroom.errors import NotFoundError, ValidationError
from changeroom.identity import resolve_actor
from changeroom.validation import normalize_barcode, parse_int, require_choice


class TestResolveActor:

    def test_resolves_active_member(self, db_session, member):
        actor = resolve_actor(str(member.id), str(member.store_id))
        assert actor.actor_id == member.id
        assert actor.store_id == member.store_id
        assert actor.role == "team_member"

    def test_role_header_overrides_stored_role(self, db_session, member):
        assert resolve_actor(member.id, member.store_id, "Manager").role == "manager"

    def test_unknown_role(self, db_session, member):
        with pytest.raises(ValidationError):
            resolve_actor(member.id, member.store_id, "owner")

    def test_inactive_member(self, db_session, member):
        member.is_active = False
        db_session.commit()
        with pytest.raises(NotFoundError):
            resolve_actor(member.id, member.store_id)

    def test_wrong_store(self, db_session, member, other_store):
        with pytest.raises(NotFoundError):
            resolve_actor(member.id, other_store.id)


class TestValidation:

    def test_barcode_strips_scanner_suffix(self):
        assert normalize_barcode("SKU1\r\n") == "SKU1"

    @pytest.mark.parametrize("value", [None, "", "   ", 42, "X" * 65])
    def test_barcode_rejects(self, value):
        with pytest.raises(ValidationError):
            normalize_barcode(value)

    def test_require_choice(self):
        assert require_choice(" Transferred", ("abandoned", "transferred"), field="status") == "transferred"
        with pytest.raises(ValidationError):
            require_choice("active", ("abandoned", "transferred"), field="status")

    @pytest.mark.parametrize("value, expected", [(3, 3), ("12", 12), (" 7 ", 7)])
    def test_parse_int(self, value, expected):
        assert parse_int(value, field="item_id") == expected

    @pytest.mark.parametrize("value", [True, 1.5, "12.5", None, "abc"])
    def test_parse_int_rejects(self, value):
        with pytest.raises(ValidationError):
            parse_int(value, field="item_id")
