"""Unit tests for auth/store.py -- user records and refresh-token ids.

Covers:
- create_user() defaults, hashing, and atomic uniqueness on email / username
- update_user() merge, password re-hash, NotFoundError, duplicate email
- record_login() timestamps
- refresh-token set: add / remove / remove-all / cap eviction / expiry pruning
"""

from datetime import datetime, timedelta, timezone

import pytest

from auth.exceptions import DuplicateError, NotFoundError
from auth.store import UserStore


def _future(days: int = 7) -> datetime:
    return datetime.now(timezone.utc) + timedelta(days=days)


@pytest.fixture
def jane(store: UserStore):
    return store.create_user(
        email="jane@x.com", username="jane", password="secret1", first_name="Jane", last_name="Doe"
    )


class TestCreateUser:
    def test_defaults(self, jane) -> None:
        assert jane.role == "user"
        assert jane.is_active is True
        assert jane.last_login is None
        assert jane.created_at == jane.updated_at
        assert jane.refresh_tokens == set()
        assert len(jane.id) == 32

    def test_password_is_hashed(self, store: UserStore, jane) -> None:
        assert jane.hashed_password != "secret1"
        assert store.hasher.verify("secret1", jane.hashed_password)

    def test_lookup_by_email_and_id(self, store: UserStore, jane) -> None:
        assert store.get_by_email("jane@x.com").id == jane.id
        assert store.get_by_id(jane.id).email == "jane@x.com"
        assert store.get_by_email("nobody@x.com") is None
        assert store.get_by_id("missing") is None

    def test_lookup_by_username(self, store: UserStore, jane) -> None:
        assert store.get_by_username("jane").id == jane.id
        assert store.get_by_username("nobody") is None

    def test_email_lookup_is_case_sensitive(self, store: UserStore, jane) -> None:
        assert store.get_by_email("JANE@x.com") is None

    def test_duplicate_email_rejected_and_single_record_kept(self, store: UserStore, jane) -> None:
        with pytest.raises(DuplicateError) as excinfo:
            store.create_user(email="jane@x.com", username="jane2", password="secret1")
        assert excinfo.value.field == "email"
        assert store.count_users() == 1

    def test_duplicate_username_rejected(self, store: UserStore, jane) -> None:
        with pytest.raises(DuplicateError) as excinfo:
            store.create_user(email="other@x.com", username="jane", password="secret1")
        assert excinfo.value.field == "username"
        assert store.count_users() == 1

    def test_unknown_role_rejected(self, store: UserStore) -> None:
        with pytest.raises(ValueError):
            store.create_user(email="a@x.com", username="a", password="secret1", role="root")


class TestUpdateUser:
    def test_shallow_merge_refreshes_updated_at(self, store: UserStore, jane) -> None:
        updated = store.update_user(jane.id, first_name="Janet")
        assert updated.first_name == "Janet"
        assert updated.last_name == "Doe"
        assert updated.email == jane.email
        assert updated.updated_at > jane.updated_at

    def test_password_is_rehashed(self, store: UserStore, jane) -> None:
        updated = store.update_user(jane.id, password="newsecret")
        assert updated.hashed_password != jane.hashed_password
        assert store.hasher.verify("newsecret", updated.hashed_password)
        assert not store.hasher.verify("secret1", updated.hashed_password)

    def test_missing_user_raises(self, store: UserStore) -> None:
        with pytest.raises(NotFoundError):
            store.update_user("missing", first_name="X")

    def test_unknown_field_rejected(self, store: UserStore, jane) -> None:
        with pytest.raises(ValueError):
            store.update_user(jane.id, hashed_password="x")

    def test_email_collision_raises_duplicate(self, store: UserStore, jane) -> None:
        other = store.create_user(email="john@x.com", username="john", password="secret1")
        with pytest.raises(DuplicateError) as excinfo:
            store.update_user(other.id, email="jane@x.com")
        assert excinfo.value.field == "email"
        assert store.get_by_id(other.id).email == "john@x.com"

    def test_setting_own_email_is_not_a_duplicate(self, store: UserStore, jane) -> None:
        assert store.update_user(jane.id, email="jane@x.com").email == "jane@x.com"

    def test_is_active_round_trips_as_bool(self, store: UserStore, jane) -> None:
        assert store.update_user(jane.id, is_active=False).is_active is False


def test_record_login_sets_timestamp(store: UserStore, jane) -> None:
    store.record_login(jane.id)
    assert store.get_by_id(jane.id).last_login is not None


def test_record_login_missing_user(store: UserStore) -> None:
    with pytest.raises(NotFoundError):
        store.record_login("missing")


class TestRefreshTokens:
    def test_add_and_remove_one(self, store: UserStore, jane) -> None:
        store.add_refresh_token(jane.id, "a", _future())
        store.add_refresh_token(jane.id, "b", _future())
        assert store.get_by_id(jane.id).refresh_tokens == {"a", "b"}
        assert store.remove_refresh_token(jane.id, "a") is True
        assert store.remove_refresh_token(jane.id, "a") is False
        assert store.get_refresh_token_ids(jane.id) == {"b"}

    def test_remove_is_scoped_to_owner(self, store: UserStore, jane) -> None:
        other = store.create_user(email="john@x.com", username="john", password="secret1")
        store.add_refresh_token(jane.id, "a", _future())
        assert store.remove_refresh_token(other.id, "a") is False
        assert store.has_refresh_token(jane.id, "a")

    def test_remove_all(self, store: UserStore, jane) -> None:
        for jti in ("a", "b", "c"):
            store.add_refresh_token(jane.id, jti, _future())
        assert store.remove_all_refresh_tokens(jane.id) == 3
        assert store.get_refresh_token_ids(jane.id) == set()

    def test_oldest_evicted_beyond_cap(self, store: UserStore, jane) -> None:
        # The store fixture caps users at three refresh tokens.
        for jti in ("t1", "t2", "t3", "t4"):
            store.add_refresh_token(jane.id, jti, _future())
        assert store.get_refresh_token_ids(jane.id) == {"t2", "t3", "t4"}

    def test_expired_ids_pruned_on_add(self, store: UserStore, jane) -> None:
        store.add_refresh_token(jane.id, "old", datetime.now(timezone.utc) - timedelta(seconds=1))
        store.add_refresh_token(jane.id, "new", _future())
        assert store.get_refresh_token_ids(jane.id) == {"new"}


def test_ping(store: UserStore) -> None:
    assert store.ping() is True
