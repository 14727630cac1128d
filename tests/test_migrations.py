# tests/test_migrations.py
from datetime import datetime, timedelta

import pytest
from sqlalchemy import DateTime, inspect, text

from scripts.apply_migrations import main as apply_main, run as apply_run
from scripts.migrate import run as migrate_run
from shipportal.core.errors import MigrationError
from shipportal.core.models import utcnow
from shipportal.infra.config import DatabaseSettings
from shipportal.infra.db import create_db_engine
from shipportal.services.migrations import (
    LEDGER_TABLE, MIGRATIONS, Migration, SHIPMENT_CUSTOMS_COLUMNS, apply_migrations, ledger, migration,
)


def _columns(engine, table):
    return {c["name"] for c in inspect(engine).get_columns(table)}


def test_fresh_database_applies_all_in_order(db_url, engine):
    applied = apply_run()
    assert applied == [m.version for m in MIGRATIONS]
    assert applied == sorted(applied)

    assert set(ledger(engine)) == set(applied)
    cols = _columns(engine, "shipments")
    for name, _ in SHIPMENT_CUSTOMS_COLUMNS:
        assert name in cols


def test_second_run_applies_nothing(db_url, engine):
    apply_run()
    assert apply_run() == []
    assert apply_main() == 0


def test_ledger_on_top_of_schema_file(migrated, engine):
    # 先用整文件迁移建库，再跑有序迁移：0001 只建缺失表，0002 补列
    applied = apply_run()
    assert "0002" in applied
    assert "invoice_no" in _columns(engine, "shipments")
    assert "schema_migrations" in inspect(engine).get_table_names()


def test_failed_step_is_not_recorded(db_url, engine):
    def boom(conn):
        conn.execute(text("CREATE TABLE tmp_probe (id INTEGER)"))
        raise RuntimeError("step failed")

    steps = [
        Migration("0001", "ok step", lambda conn: conn.execute(text("CREATE TABLE IF NOT EXISTS t1 (id INTEGER)"))),
        Migration("0002", "broken step", boom),
        Migration("0003", "never reached", lambda conn: None),
    ]
    with pytest.raises(RuntimeError):
        apply_migrations(engine, steps)

    assert ledger(engine) == {"0001": "ok step"}


def test_duplicate_versions_rejected(engine):
    steps = [Migration("0001", "a", lambda conn: None), Migration("0001", "b", lambda conn: None)]
    with pytest.raises(MigrationError):
        apply_migrations(engine, steps)


def test_decorator_rejects_duplicate_version():
    with pytest.raises(MigrationError):
        @migration("0001", "duplicate of base tables")
        def _dup(conn):
            pass


def test_lockout_columns_added_to_legacy_users_table(db_url, engine):
    with engine.begin() as conn:
        conn.execute(text(
            "CREATE TABLE users (id VARCHAR(36) PRIMARY KEY, username VARCHAR(64) NOT NULL,"
            " email VARCHAR(255) NOT NULL, password_hash VARCHAR(255) NOT NULL,"
            " role VARCHAR(32) NOT NULL, must_change_password BOOLEAN NOT NULL DEFAULT TRUE)"
        ))
    apply_run()
    cols = _columns(engine, "users")
    assert {"failed_login_attempts", "locked_until"} <= cols


def _schema_shape(url):
    eng = create_db_engine(DatabaseSettings(url=url))
    try:
        insp = inspect(eng)
        return {
            t: (
                [(c["name"], str(c["type"]), c["nullable"], c["default"]) for c in insp.get_columns(t)],
                sorted((i["name"], tuple(i["column_names"])) for i in insp.get_indexes(t)),
            )
            for t in insp.get_table_names()
        }
    finally:
        eng.dispose()


def test_ledger_and_schema_file_build_the_same_database(tmp_path):
    from_file = f"sqlite:///{tmp_path / 'from_file.db'}"
    from_ledger = f"sqlite:///{tmp_path / 'from_ledger.db'}"

    migrate_run(DatabaseSettings(url=from_file))
    apply_run(DatabaseSettings(url=from_file))
    apply_run(DatabaseSettings(url=from_ledger))

    shape = _schema_shape(from_ledger)
    assert shape == _schema_shape(from_file)
    assert ("ix_users_role", ("role",)) in shape["users"][1]


def test_ledger_built_users_table_keeps_column_defaults(db_url, engine):
    apply_run()
    with engine.begin() as conn:
        conn.execute(text(
            "INSERT INTO users (id, username, email, password_hash)"
            " VALUES ('u-1', 'clerk', 'clerk@shipportal.test', 'x')"
        ))
        row = conn.execute(text(
            "SELECT role, is_active, must_change_password, failed_login_attempts, created_at"
            " FROM users WHERE id = 'u-1'"
        )).one()
    assert row.role == "accounts"
    assert bool(row.is_active) and bool(row.must_change_password)
    assert row.failed_login_attempts == 0
    assert row.created_at is not None


def test_ledger_records_applied_at_as_timestamp(db_url, engine):
    before = utcnow() - timedelta(seconds=1)
    apply_run()
    with engine.connect() as conn:
        stamps = conn.execute(
            text(f"SELECT applied_at FROM {LEDGER_TABLE}").columns(applied_at=DateTime)
        ).scalars().all()
    assert len(stamps) == len(MIGRATIONS)
    assert all(isinstance(s, datetime) and s >= before for s in stamps)
