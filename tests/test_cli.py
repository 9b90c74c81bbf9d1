"""Tests for main.py -- the operator command line.

Each test points the CLI at a fresh SQLite file under tmp_path by patching
main.get_settings, then checks the effect through a UserStore on the same file.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

import main
from auth.passwords import PasswordHasher
from auth.store import UserStore
from core.config import Settings


def _tomorrow() -> datetime:
    return datetime.now(timezone.utc) + timedelta(days=1)


@pytest.fixture
def cli_settings(tmp_path, monkeypatch) -> Settings:
    settings = Settings(
        debug=True,
        database_url=f"sqlite:///{tmp_path / 'accounts.db'}",
        bcrypt_rounds=4,
    )
    monkeypatch.setattr(main, "get_settings", lambda: settings)
    return settings


@pytest.fixture
def db(cli_settings: Settings):
    store = UserStore(cli_settings.database_url, PasswordHasher(rounds=4))
    yield store
    store.close()


def test_create_admin(cli_settings: Settings, db: UserStore, capsys) -> None:
    assert main.main(["create-user", "ada@x.com", "secret1", "--name", "Ada Lovelace", "--role", "admin"]) == 0
    user = db.get_by_email("ada@x.com")
    assert user.role == "admin"
    assert user.username == "ada"
    assert user.display_name == "Ada Lovelace"
    assert "Created admin" in capsys.readouterr().out


def test_create_duplicate_fails(cli_settings: Settings, db: UserStore, capsys) -> None:
    assert main.main(["create-user", "ada@x.com", "secret1"]) == 0
    assert main.main(["create-user", "ada@x.com", "secret1", "--username", "ada2"]) == 1
    assert "email already exists" in capsys.readouterr().err


def test_create_short_password_fails(cli_settings: Settings, db: UserStore) -> None:
    assert main.main(["create-user", "ada@x.com", "abc"]) == 1
    assert db.get_by_email("ada@x.com") is None


@pytest.mark.parametrize("email", ["not-an-email", "ada@x", "ada@x.com "])
def test_create_invalid_email_fails(cli_settings: Settings, db: UserStore, capsys, email: str) -> None:
    assert main.main(["create-user", email, "secret1"]) == 1
    assert "not a valid email" in capsys.readouterr().err
    assert db.count_users() == 0


def test_deactivate_and_activate(cli_settings: Settings, db: UserStore) -> None:
    main.main(["create-user", "jane@x.com", "secret1"])
    user = db.get_by_email("jane@x.com")
    db.add_refresh_token(user.id, "jti-1", _tomorrow())

    assert main.main(["deactivate", "jane@x.com"]) == 0
    user = db.get_by_email("jane@x.com")
    assert user.is_active is False
    assert user.refresh_tokens == set()

    assert main.main(["activate", "jane@x.com"]) == 0
    assert db.get_by_email("jane@x.com").is_active is True


def test_set_role(cli_settings: Settings, db: UserStore) -> None:
    main.main(["create-user", "jane@x.com", "secret1"])
    assert main.main(["set-role", "jane@x.com", "admin"]) == 0
    assert db.get_by_email("jane@x.com").role == "admin"


def test_revoke_sessions(cli_settings: Settings, db: UserStore, capsys) -> None:
    main.main(["create-user", "jane@x.com", "secret1"])
    user = db.get_by_email("jane@x.com")
    db.add_refresh_token(user.id, "jti-1", _tomorrow())
    db.add_refresh_token(user.id, "jti-2", _tomorrow())
    assert main.main(["revoke-sessions", "jane@x.com"]) == 0
    assert db.get_refresh_token_ids(user.id) == set()
    assert "Revoked 2" in capsys.readouterr().out


def test_unknown_email(cli_settings: Settings, db: UserStore, capsys) -> None:
    assert main.main(["deactivate", "ghost@x.com"]) == 1
    assert "No account" in capsys.readouterr().err
