"""
Tests for scripts/migrate.py - file ordering, checksum tracking, apply flow
"""

import pytest
from unittest.mock import MagicMock

from scripts.migrate import migration_files, file_checksum, plan, apply_file, run


@pytest.fixture
def migrations_dir(tmp_path):
    (tmp_path / "010_later.sql").write_text("SELECT 10;")
    (tmp_path / "002_second.sql").write_text("SELECT 2;")
    (tmp_path / "001_first.sql").write_text("SELECT 1;")
    (tmp_path / "README.md").write_text("notes")
    (tmp_path / "scratch.sql").write_text("SELECT 0;")
    return tmp_path


def _conn(applied=None):
    """psycopg2-like connection whose tracking query returns `applied`"""
    conn = MagicMock()
    cur = conn.cursor.return_value.__enter__.return_value
    cur.fetchall.return_value = list((applied or {}).items())
    return conn, cur


class TestMigrationFiles:
    """Tests for migration_files."""

    def test_numbered_sql_only_in_numeric_order(self, migrations_dir):
        names = [p.name for p in migration_files(migrations_dir)]
        assert names == ["001_first.sql", "002_second.sql", "010_later.sql"]


class TestPlan:
    """Tests for plan."""

    def test_unapplied_files_pending(self, migrations_dir):
        files = migration_files(migrations_dir)
        applied = {"001_first.sql": file_checksum(files[0])}

        pending, changed = plan(files, applied)

        assert [p.name for p in pending] == ["002_second.sql", "010_later.sql"]
        assert changed == []

    def test_edited_file_reported_not_reapplied(self, migrations_dir):
        files = migration_files(migrations_dir)
        applied = {p.name: file_checksum(p) for p in files}
        (migrations_dir / "002_second.sql").write_text("SELECT 2, 'edited';")

        pending, changed = plan(files, applied)

        assert pending == []
        assert changed == ["002_second.sql"]


class TestApply:
    """Tests for apply_file and run."""

    def test_apply_records_checksum(self, migrations_dir):
        conn, cur = _conn()
        path = migrations_dir / "001_first.sql"

        apply_file(conn, path)

        cur.execute.assert_any_call("SELECT 1;")
        cur.execute.assert_any_call(
            "INSERT INTO public.schema_migrations (filename, checksum) VALUES (%s, %s)",
            ("001_first.sql", file_checksum(path)),
        )
        conn.commit.assert_called_once()

    def test_failed_file_rolled_back(self, migrations_dir):
        conn, cur = _conn()
        cur.execute.side_effect = RuntimeError("syntax error")

        with pytest.raises(RuntimeError):
            apply_file(conn, migrations_dir / "001_first.sql")
        conn.rollback.assert_called_once()
        conn.commit.assert_not_called()

    def test_run_applies_only_pending(self, migrations_dir):
        first = migrations_dir / "001_first.sql"
        conn, cur = _conn({"001_first.sql": file_checksum(first)})

        assert run(conn, directory=migrations_dir) == 0

        executed = [c.args[0] for c in cur.execute.call_args_list]
        assert "SELECT 1;" not in executed
        assert "SELECT 2;" in executed and "SELECT 10;" in executed

    def test_check_only_applies_nothing(self, migrations_dir):
        conn, cur = _conn()

        assert run(conn, check_only=True, directory=migrations_dir) == 1

        executed = [c.args[0] for c in cur.execute.call_args_list]
        assert not [sql for sql in executed if sql.startswith("SELECT 1")]

    def test_check_only_clean(self, migrations_dir):
        applied = {p.name: file_checksum(p) for p in migration_files(migrations_dir)}
        conn, _ = _conn(applied)

        assert run(conn, check_only=True, directory=migrations_dir) == 0
