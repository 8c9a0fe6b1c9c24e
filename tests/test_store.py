"""Unit tests for auth/store.py -- credential persistence and atomic transitions.

Covers:
- create/get round trip, unique email
- reset hash lookup honours expiry
- clear_reset only clears the hash it was given
- rotate_password clears reset state; the conditional form is a compare-and-set
- update_profile refuses fields other than name/email
"""

from datetime import timedelta

import pytest
from sqlalchemy.exc import IntegrityError

from auth.models import Role, User
from core.clock import from_iso, utc_now
from tests.helpers import make_user


class TestCreateAndRead:
    def test_create_and_get_by_email(self, store) -> None:
        uid = make_user(store, "ana@x.com")
        user = store.get_by_email("ana@x.com")
        assert user is not None
        assert user.id == uid
        assert user.role is Role.user
        assert user.is_active
        assert user.password_changed_at is None
        assert user.reset_token_hash is None
        assert user.created_at

    def test_get_by_id_missing(self, store) -> None:
        assert store.get_by_id(999) is None

    def test_duplicate_email_raises_integrity_error(self, store) -> None:
        make_user(store, "dup@x.com")
        with pytest.raises(IntegrityError):
            make_user(store, "dup@x.com")

    def test_role_round_trips(self, store) -> None:
        uid = make_user(store, "lead@x.com", role=Role.lead_guide)
        assert store.get_by_id(uid).role is Role.lead_guide

    def test_list_users_ordered_by_email(self, store) -> None:
        make_user(store, "b@x.com")
        make_user(store, "a@x.com")
        assert [u.email for u in store.list_users()] == ["a@x.com", "b@x.com"]

    def test_ping(self, store) -> None:
        assert store.ping() is True


class TestResetState:
    def test_arm_then_find_by_hash(self, store) -> None:
        uid = make_user(store, "r@x.com")
        now = utc_now()
        store.arm_reset(uid, "h1", now + timedelta(minutes=10))
        found = store.get_by_reset_hash("h1", now)
        assert found is not None and found.id == uid
        assert from_iso(found.reset_token_expires_at) > now

    def test_expired_hash_is_not_found(self, store) -> None:
        uid = make_user(store, "r2@x.com")
        now = utc_now()
        store.arm_reset(uid, "h1", now + timedelta(minutes=10))
        assert store.get_by_reset_hash("h1", now + timedelta(minutes=11)) is None

    def test_rearm_replaces_previous_hash(self, store) -> None:
        uid = make_user(store, "r3@x.com")
        now = utc_now()
        store.arm_reset(uid, "old", now + timedelta(minutes=10))
        store.arm_reset(uid, "new", now + timedelta(minutes=10))
        assert store.get_by_reset_hash("old", now) is None
        assert store.get_by_reset_hash("new", now).id == uid

    def test_clear_reset_requires_matching_hash(self, store) -> None:
        uid = make_user(store, "r4@x.com")
        store.arm_reset(uid, "current", utc_now() + timedelta(minutes=10))
        assert store.clear_reset(uid, "stale") is False
        assert store.get_by_id(uid).reset_token_hash == "current"
        assert store.clear_reset(uid, "current") is True
        user = store.get_by_id(uid)
        assert user.reset_token_hash is None
        assert user.reset_token_expires_at is None


class TestRotatePassword:
    def test_rotation_clears_reset_fields(self, store) -> None:
        uid = make_user(store, "p@x.com")
        now = utc_now()
        store.arm_reset(uid, "h", now + timedelta(minutes=10))
        assert store.rotate_password(uid, "newhash", now)
        user = store.get_by_id(uid)
        assert user.hashed_password == "newhash"
        assert user.password_changed_at is not None
        assert user.reset_token_hash is None
        assert user.reset_token_expires_at is None

    def test_conditional_rotation_fails_on_superseded_hash(self, store) -> None:
        uid = make_user(store, "p2@x.com")
        before = store.get_by_id(uid).hashed_password
        now = utc_now()
        store.arm_reset(uid, "newer", now + timedelta(minutes=10))
        assert store.rotate_password(uid, "x", now, expected_reset_hash="older", now=now) is False
        assert store.get_by_id(uid).hashed_password == before

    def test_conditional_rotation_fails_after_expiry(self, store) -> None:
        uid = make_user(store, "p3@x.com")
        now = utc_now()
        store.arm_reset(uid, "h", now + timedelta(minutes=10))
        later = now + timedelta(minutes=11)
        assert store.rotate_password(uid, "x", later, expected_reset_hash="h", now=later) is False
        assert store.get_by_id(uid).reset_token_hash == "h"


class TestProfileUpdates:
    def test_update_name_and_email(self, store) -> None:
        uid = make_user(store, "u@x.com")
        assert store.update_profile(uid, name="New", email="new@x.com")
        user = store.get_by_id(uid)
        assert (user.name, user.email) == ("New", "new@x.com")

    def test_unknown_field_rejected(self, store) -> None:
        uid = make_user(store, "u2@x.com")
        with pytest.raises(ValueError):
            store.update_profile(uid, hashed_password="plain")
        with pytest.raises(ValueError):
            store.update_profile(uid, role="admin")

    def test_set_active_and_delete(self, store) -> None:
        uid = make_user(store, "u3@x.com")
        store.set_active(uid, False)
        assert store.get_by_id(uid).is_active is False
        assert store.delete_user(uid) is True
        assert store.get_by_id(uid) is None

    def test_user_dataclass_default_role(self) -> None:
        assert User(name="a", email="a@x.com", hashed_password="h").role is Role.user
