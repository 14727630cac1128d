# tests/test_admin_tools.py
from datetime import timedelta

from sqlalchemy.orm import Session

from scripts.check_db import main as check_main, run as check_run
from scripts.generate_reset_token import main as token_main, run as token_run
from scripts.unlock_admin import main as unlock_main, run as unlock_run
from shipportal.core.models import PasswordResetToken, utcnow

from conftest import add_user, get_user


def test_unlock_clears_attempts_and_lock(migrated, engine, capsys):
    add_user(engine, "admin", "Admin#999", failed_login_attempts=5,
             locked_until=utcnow() + timedelta(minutes=15))

    result = unlock_run()
    assert result.found is True
    assert result.failed_login_attempts == 0
    assert result.locked_until is None

    admin = get_user(engine, "admin")
    assert admin.failed_login_attempts == 0
    assert admin.locked_until is None
    assert "Locked Until: Not locked" in capsys.readouterr().out


def test_unlock_missing_user_is_not_an_error(migrated):
    assert unlock_main() == 0
    assert unlock_run().found is False


def test_reset_token_replaces_previous_tokens(migrated, engine, capsys):
    add_user(engine, "clerk", "Clerk#123", role="accounts")

    first = token_run("clerk")
    second = token_run("clerk")
    assert first.token != second.token
    assert len(second.token) == 64
    assert second.expires_at > utcnow() + timedelta(minutes=59)

    with Session(engine) as db:
        tokens = db.query(PasswordResetToken).all()
        assert [t.token for t in tokens] == [second.token]
        assert tokens[0].used is False
    assert f"Token: {second.token}" in capsys.readouterr().out


def test_reset_token_requires_username(migrated, capsys):
    assert token_main([]) == 1
    assert "username is required" in capsys.readouterr().err


def test_reset_token_unknown_user_exits_1(migrated, capsys):
    assert token_main(["ghost"]) == 1
    assert "user not found: ghost" in capsys.readouterr().err


def test_reset_token_warns_for_inactive_user(migrated, engine, capsys):
    add_user(engine, "retired", "Retired#1", role="accounts", is_active=False)
    assert token_main(["retired"]) == 0
    assert "inactive" in capsys.readouterr().out


def test_check_db_reports_tables_and_users(migrated, engine):
    add_user(engine, "admin", "Admin#999")
    add_user(engine, "clerk", "Clerk#123", role="accounts")

    report = check_run()
    assert "users" in report["tables"]
    assert report["users_count"] == 2
    assert [u["username"] for u in report["sample_users"]] == ["admin", "clerk"]
    assert "shipment_id" in {name for name, _ in report["columns"]["shipments"]}
    assert "file_name" in {name for name, _ in report["columns"]["documents"]}


def test_check_db_on_empty_database(db_url):
    report = check_run()
    assert report["tables"] == []
    assert report["users_count"] is None
    assert check_main() == 0


def test_seed_admin_creates_once(migrated, engine, monkeypatch):
    from scripts.seed_admin import run as seed_run
    from shipportal.core.security import verify_password

    monkeypatch.setenv("ADMIN_EMAIL", "ops@shipportal.test")
    assert seed_run() == "created"
    admin = get_user(engine, "admin")
    assert admin.role == "admin"
    assert admin.email == "ops@shipportal.test"
    assert admin.must_change_password is True
    assert verify_password("Admin@123", admin.password_hash)

    assert seed_run() == "exists"
    assert get_user(engine, "admin").password_hash == admin.password_hash
