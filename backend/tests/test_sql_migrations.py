import importlib.util
import os
import pytest
from sqlalchemy import create_engine, inspect, text
from repairdesk.models.authz import Base
from repairdesk.services.settings_store import SettingsStore
from repairdesk.services.sql_migrations import MigrationError, apply_migrations, list_migration_files, split_statements

BACKEND = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))


def _load_script():
    path = os.path.join(BACKEND, 'scripts', 'apply_migrations.py')
    spec = importlib.util.spec_from_file_location('apply_migrations_script', path)
    mod = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(mod)
    return mod


@pytest.fixture()
def sql_dir(tmp_path):
    d = tmp_path / 'sql'
    d.mkdir()
    (d / '002_seed.sql').write_text("INSERT INTO items (name) VALUES ('a');\nINSERT INTO items (name) VALUES ('b');\n")
    (d / '001_create.sql').write_text('-- items table\nCREATE TABLE items (\n  id INTEGER PRIMARY KEY,\n  name TEXT NOT NULL\n);\n')
    (d / 'README.txt').write_text('not a migration')
    return d


@pytest.fixture()
def engine(tmp_path):
    eng = create_engine(f"sqlite:///{tmp_path / 'migrations.db'}", future=True)
    yield eng
    eng.dispose()


def test_files_are_sorted_and_filtered(sql_dir):
    assert [p.name for p in list_migration_files(sql_dir)] == ['001_create.sql', '002_seed.sql']


def test_missing_directory(tmp_path):
    with pytest.raises(FileNotFoundError):
        list_migration_files(tmp_path / 'nowhere')


def test_split_statements_skips_comments():
    sql = "-- header\n\nCREATE TABLE t (x INT);\n-- between\nINSERT INTO t VALUES (1);\nINSERT INTO t VALUES (2)"
    assert split_statements(sql) == ['CREATE TABLE t (x INT)', 'INSERT INTO t VALUES (1)', 'INSERT INTO t VALUES (2)']


def test_applies_in_order(sql_dir, engine):
    assert apply_migrations(engine, sql_dir) == ['001_create.sql', '002_seed.sql']
    with engine.connect() as conn:
        assert conn.execute(text('SELECT count(*) FROM items')).scalar() == 2


def test_stops_at_first_failure(sql_dir, engine):
    (sql_dir / '001b_broken.sql').write_text('INSERT INTO missing_table VALUES (1);\n')
    with pytest.raises(MigrationError) as exc:
        apply_migrations(engine, sql_dir)
    assert exc.value.filename == '001b_broken.sql'
    insp = inspect(engine)
    assert 'items' in insp.get_table_names()
    with engine.connect() as conn:
        assert conn.execute(text('SELECT count(*) FROM items')).scalar() == 0


def test_script_exit_codes(sql_dir, tmp_path):
    script = _load_script()
    url = f"sqlite:///{tmp_path / 'script.db'}"
    assert script.main(['--dir', str(sql_dir), '--database-url', url]) == 0
    (sql_dir / '003_broken.sql').write_text('THIS IS NOT SQL;\n')
    assert script.main(['--dir', str(sql_dir), '--database-url', f"sqlite:///{tmp_path / 'other.db'}"]) == 1
    assert script.main(['--dir', str(tmp_path / 'absent'), '--database-url', url]) == 1


def test_bundled_sql_seeds_default_settings(engine):
    from repairdesk.models import audit, setting, ticket  # noqa: F401
    Base.metadata.create_all(engine)
    bundled = os.path.join(BACKEND, 'sql')
    apply_migrations(engine, bundled)
    # Re-running leaves existing values alone
    with engine.begin() as conn:
        conn.execute(text("UPDATE settings SET value = 'x@shop.it' WHERE key = 'email_admin_address'"))
    apply_migrations(engine, bundled)
    from sqlalchemy.orm import Session
    with Session(engine) as s:
        store = SettingsStore(s)
        assert store.get('email_admin_address') == 'x@shop.it'
        assert store.get('email_admin_old_tickets_days') == '7'
