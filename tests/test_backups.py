# ================================
# BACKUP & DEMO DATA TESTS (test_backups.py)
# ================================

import shutil
import subprocess
import pytest
from datetime import date, datetime, timezone
from pathlib import Path

from app.config import settings
from app.core.exceptions import AppException
from app.models.business import Customer, Invoice, Expense, RecurringTemplate
from app.services import backup_service
from app.services.backup_service import BackupService, parse_backup_timestamp
from app.services.demo_data_service import DemoDataService
from app.utils.invoice_utils import parse_invoice_sequence
from conftest import API

PG_PARAMS = {
    "host": "db.internal",
    "port": "5432",
    "username": "invoicing",
    "password": "s3cret",
    "database": "invoicing",
}


@pytest.fixture
def backup_dir():
    path = Path(settings.BACKUP_DIR)
    shutil.rmtree(path, ignore_errors=True)
    path.mkdir(parents=True)
    return path


@pytest.fixture
def pg_tools(monkeypatch, backup_dir):
    """Backups enabled against a fake PostgreSQL; pg_dump writes a stub file"""
    calls = []

    def fake_run(command, env=None, **kwargs):
        calls.append({"command": command, "env": env})
        if command[0] == settings.PG_DUMP_PATH:
            Path(command[-1]).write_text("-- dump\n")
        return subprocess.CompletedProcess(command, 0, stdout="", stderr="")

    monkeypatch.setattr(settings, "BACKUP_ENABLED", True)
    monkeypatch.setattr(BackupService, "connection_params", staticmethod(lambda database_url=None: dict(PG_PARAMS)))
    monkeypatch.setattr(backup_service.subprocess, "run", fake_run)
    return calls


def _touch_backup(directory, stamp):
    path = directory / f"backup-{stamp}.sql"
    path.write_text("-- dump\n")
    return path


class TestBackupService:

    def test_disabled_by_default(self, backup_dir):
        with pytest.raises(AppException) as exc:
            BackupService.create_backup()
        assert exc.value.error_code == "BACKUP_DISABLED"

    def test_requires_postgres(self):
        with pytest.raises(AppException) as exc:
            BackupService.connection_params("sqlite:///invoices.db")
        assert exc.value.error_code == "BACKUP_UNSUPPORTED"

    def test_connection_params_from_url(self):
        params = BackupService.connection_params("postgresql://bob:pw@pg.example.com:6543/books")
        assert params == {
            "host": "pg.example.com", "port": "6543", "username": "bob", "password": "pw", "database": "books"
        }

    def test_create_passes_password_via_environment(self, pg_tools, backup_dir):
        info = BackupService.create_backup()

        assert (backup_dir / info["filename"]).is_file()
        assert parse_backup_timestamp(info["filename"]) is not None

        call = pg_tools[0]
        assert call["env"]["PGPASSWORD"] == "s3cret"
        assert "s3cret" not in call["command"]
        assert call["command"][-2:] == ["-f", str(backup_dir / info["filename"])]

    def test_failed_dump_leaves_no_file(self, monkeypatch, pg_tools, backup_dir):
        def failing_run(command, **kwargs):
            Path(command[-1]).write_text("partial")
            return subprocess.CompletedProcess(command, 1, stdout="", stderr="connection refused")

        monkeypatch.setattr(backup_service.subprocess, "run", failing_run)

        with pytest.raises(AppException) as exc:
            BackupService.create_backup()
        assert exc.value.error_code == "BACKUP_FAILED"
        assert list(backup_dir.iterdir()) == []

    def test_missing_tool(self, monkeypatch, pg_tools):
        def missing(command, **kwargs):
            raise FileNotFoundError(command[0])

        monkeypatch.setattr(backup_service.subprocess, "run", missing)

        with pytest.raises(AppException) as exc:
            BackupService.create_backup()
        assert exc.value.error_code == "BACKUP_TOOL_MISSING"

    def test_cleanup_uses_name_timestamp(self, backup_dir):
        _touch_backup(backup_dir, "2025-01-01T00-00-00-000000Z")
        recent = _touch_backup(backup_dir, "2025-03-01T00-00-00-000000Z")
        foreign = backup_dir / "notes.sql"
        foreign.write_text("keep")

        now = datetime(2025, 3, 10, tzinfo=timezone.utc)
        assert BackupService.cleanup_old_backups(retention_days=30, now=now) == 1

        assert sorted(path.name for path in backup_dir.iterdir()) == [recent.name, foreign.name]

    def test_list_newest_first(self, backup_dir):
        _touch_backup(backup_dir, "2025-01-01T00-00-00-000000Z")
        _touch_backup(backup_dir, "2025-02-01T00-00-00-000000Z")

        names = [backup["filename"] for backup in BackupService.list_backups()]
        assert names == ["backup-2025-02-01T00-00-00-000000Z.sql", "backup-2025-01-01T00-00-00-000000Z.sql"]

        info = BackupService.get_backup_info()
        assert info["backup_count"] == 2
        assert info["latest_backup"]["filename"] == names[0]

    def test_scheduled_backup_skipped_when_disabled(self):
        assert BackupService.run_scheduled_backup() is None


class TestBackupApi:

    def test_create_disabled(self, client, auth_headers, backup_dir):
        response = client.post(f"{API}/backups/", headers=auth_headers)
        assert response.status_code == 400

    def test_create_and_restore(self, client, auth_headers, pg_tools):
        response = client.post(f"{API}/backups/", headers=auth_headers)
        assert response.status_code == 200, response.text
        filename = response.json()["backup"]["filename"]

        listed = client.get(f"{API}/backups/", headers=auth_headers).json()["backups"]
        assert [backup["filename"] for backup in listed] == [filename]

        restored = client.post(f"{API}/backups/{filename}/restore", headers=auth_headers)
        assert restored.status_code == 200
        assert pg_tools[-1]["command"][0] == settings.PSQL_PATH

    def test_restore_unknown_backup(self, client, auth_headers, pg_tools):
        response = client.post(f"{API}/backups/backup-2020-01-01T00-00-00-000000Z.sql/restore", headers=auth_headers)
        assert response.status_code == 404

    def test_info(self, client, auth_headers, backup_dir):
        response = client.get(f"{API}/backups/info", headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["enabled"] is False
        assert response.json()["backup_count"] == 0


class TestDemoData:

    def test_generate_is_reproducible(self, db_session):
        today = date(2025, 6, 30)
        counts = DemoDataService.generate_demo_data(db_session, seed=7, today=today)
        db_session.commit()

        assert counts["customers"] == 5
        assert counts["properties"] == 10
        assert counts["invoices"] == 45
        assert counts["expenses"] == 85
        assert counts["recurring_templates"] == 3
        assert db_session.query(Invoice).count() == 45

        numbers = [invoice.invoice_number for invoice in db_session.query(Invoice).all()]
        assert len(set(numbers)) == len(numbers)
        assert all(parse_invoice_sequence(number) for number in numbers)

        first_run = sorted((e.vendor, e.amount, e.expense_date) for e in db_session.query(Expense).all())
        DemoDataService.generate_demo_data(db_session, seed=7, today=today)
        db_session.commit()
        second_run = sorted((e.vendor, e.amount, e.expense_date) for e in db_session.query(Expense).all())
        assert first_run == second_run

    def test_api_generate_and_clear(self, client, auth_headers):
        response = client.post(f"{API}/demo-data/generate", headers=auth_headers, params={"seed": 1})
        assert response.status_code == 200
        assert response.json()["counts"]["customers"] == 5

        assert client.get(f"{API}/customers/", headers=auth_headers).json()["total"] == 5

        cleared = client.delete(f"{API}/demo-data/", headers=auth_headers)
        assert cleared.status_code == 200
        assert cleared.json()["counts"]["deleted"] > 0

        assert client.get(f"{API}/customers/", headers=auth_headers).json()["total"] == 0
        assert client.get(f"{API}/recurring/", headers=auth_headers).json()["total"] == 0

        # The account survives
        assert client.get(f"{API}/auth/profile", headers=auth_headers).status_code == 200

    def test_clear_keeps_nothing_behind(self, db_session):
        DemoDataService.generate_demo_data(db_session, seed=3)
        DemoDataService.clear_business_data(db_session)
        db_session.commit()

        for model in (Customer, Invoice, Expense, RecurringTemplate):
            assert db_session.query(model).count() == 0
