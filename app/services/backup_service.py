# ================================
# DATABASE BACKUP SERVICE (services/backup_service.py)
# ================================

from sqlalchemy.engine import make_url
from pathlib import Path
from datetime import datetime, timezone, timedelta
from typing import Optional, Dict, Any, List
import os
import re
import subprocess
import logging

from app.config import settings
from app.core.exceptions import AppException, NotFoundError, ExternalServiceError

logger = logging.getLogger(__name__)

BACKUP_PREFIX = "backup-"
BACKUP_SUFFIX = ".sql"
TIMESTAMP_FORMAT = "%Y-%m-%dT%H-%M-%S-%fZ"
BACKUP_NAME_PATTERN = re.compile(r"^backup-(?P<timestamp>[0-9T\-]+Z)\.sql$")

def parse_backup_timestamp(filename: str) -> Optional[datetime]:
    """Creation time encoded in a backup file name, None for foreign files"""
    match = BACKUP_NAME_PATTERN.match(filename)
    if not match:
        return None
    try:
        return datetime.strptime(match.group("timestamp"), TIMESTAMP_FORMAT).replace(tzinfo=timezone.utc)
    except ValueError:
        return None

class BackupService:
    """pg_dump / psql wrapper with retention cleanup"""

    @staticmethod
    def backup_dir() -> Path:
        path = Path(settings.BACKUP_DIR)
        path.mkdir(parents=True, exist_ok=True)
        return path

    @staticmethod
    def _ensure_enabled() -> None:
        if not settings.BACKUP_ENABLED:
            raise AppException("Backup service is disabled", 400, "BACKUP_DISABLED")

    @staticmethod
    def connection_params(database_url: Optional[str] = None) -> Dict[str, Any]:
        """Host, port, user, password and database name from DATABASE_URL"""
        url = make_url(database_url or settings.DATABASE_URL)
        if not url.drivername.startswith("postgresql"):
            raise AppException("Backups require a PostgreSQL database", 400, "BACKUP_UNSUPPORTED")

        return {
            "host": url.host or "localhost",
            "port": str(url.port or 5432),
            "username": url.username or "postgres",
            "password": url.password or "",
            "database": url.database,
        }

    @staticmethod
    def build_dump_command(params: Dict[str, Any], target: Path) -> List[str]:
        return [
            settings.PG_DUMP_PATH,
            "-h", params["host"],
            "-p", params["port"],
            "-U", params["username"],
            "-d", params["database"],
            "-f", str(target),
        ]

    @staticmethod
    def build_restore_command(params: Dict[str, Any], source: Path) -> List[str]:
        return [
            settings.PSQL_PATH,
            "-h", params["host"],
            "-p", params["port"],
            "-U", params["username"],
            "-d", params["database"],
            "-f", str(source),
        ]

    @staticmethod
    def _run(command: List[str], password: str, action: str) -> None:
        """Runs a client tool without a shell; the password travels via PGPASSWORD"""
        env = {**os.environ, "PGPASSWORD": password}
        try:
            completed = subprocess.run(command, env=env, capture_output=True, text=True, check=False)
        except FileNotFoundError:
            logger.error(f"{action} failed: {command[0]} not found")
            raise ExternalServiceError(f"{action} failed: {command[0]} not found", "BACKUP_TOOL_MISSING", 500)

        if completed.returncode != 0:
            logger.error(f"{action} failed (exit {completed.returncode}): {completed.stderr.strip()}")
            raise ExternalServiceError(
                f"{action} failed: {completed.stderr.strip() or f'exit code {completed.returncode}'}",
                "BACKUP_FAILED",
                500
            )

    # ================================
    # Operations
    # ================================

    @staticmethod
    def create_backup() -> Dict[str, Any]:
        BackupService._ensure_enabled()
        params = BackupService.connection_params()

        timestamp = datetime.now(timezone.utc).strftime(TIMESTAMP_FORMAT)
        target = BackupService.backup_dir() / f"{BACKUP_PREFIX}{timestamp}{BACKUP_SUFFIX}"

        logger.info(f"Creating database backup {target.name}")
        try:
            BackupService._run(BackupService.build_dump_command(params, target), params["password"], "Backup")
        except AppException:
            target.unlink(missing_ok=True)
            raise

        info = BackupService._file_info(target)
        logger.info(f"Backup created: {target.name} ({info['size']} bytes)")
        return info

    @staticmethod
    def restore_backup(filename: str) -> Dict[str, Any]:
        BackupService._ensure_enabled()

        source = BackupService._get_backup_path(filename)
        params = BackupService.connection_params()

        logger.warning(f"Restoring database from {filename}")
        BackupService._run(BackupService.build_restore_command(params, source), params["password"], "Restore")
        logger.info(f"Database restored from {filename}")
        return BackupService._file_info(source)

    @staticmethod
    def _get_backup_path(filename: str) -> Path:
        if Path(filename).name != filename or parse_backup_timestamp(filename) is None:
            raise NotFoundError("Backup not found")
        path = BackupService.backup_dir() / filename
        if not path.is_file():
            raise NotFoundError("Backup not found")
        return path

    @staticmethod
    def _file_info(path: Path) -> Dict[str, Any]:
        return {
            "filename": path.name,
            "size": path.stat().st_size,
            "created_at": parse_backup_timestamp(path.name)
            or datetime.fromtimestamp(path.stat().st_mtime, tz=timezone.utc),
        }

    @staticmethod
    def list_backups() -> List[Dict[str, Any]]:
        """Backup files, newest first"""
        backups = [
            BackupService._file_info(path)
            for path in BackupService.backup_dir().glob(f"{BACKUP_PREFIX}*{BACKUP_SUFFIX}")
            if path.is_file() and parse_backup_timestamp(path.name)
        ]
        return sorted(backups, key=lambda info: info["created_at"], reverse=True)

    @staticmethod
    def cleanup_old_backups(retention_days: Optional[int] = None, now: Optional[datetime] = None) -> int:
        """Deletes backups whose name timestamp is older than the retention window"""
        retention_days = retention_days if retention_days is not None else settings.BACKUP_RETENTION_DAYS
        cutoff = (now or datetime.now(timezone.utc)) - timedelta(days=retention_days)

        deleted = 0
        for backup in BackupService.list_backups():
            if backup["created_at"] < cutoff:
                (BackupService.backup_dir() / backup["filename"]).unlink()
                logger.info(f"Deleted old backup: {backup['filename']}")
                deleted += 1

        return deleted

    @staticmethod
    def get_backup_info() -> Dict[str, Any]:
        backups = BackupService.list_backups()
        return {
            "enabled": settings.BACKUP_ENABLED,
            "interval_hours": settings.BACKUP_INTERVAL_HOURS,
            "retention_days": settings.BACKUP_RETENTION_DAYS,
            "backup_count": len(backups),
            "total_size": sum(backup["size"] for backup in backups),
            "latest_backup": backups[0] if backups else None,
            "backup_directory": str(BackupService.backup_dir()),
        }

    @staticmethod
    def run_scheduled_backup() -> Optional[Dict[str, Any]]:
        """Backup plus retention cleanup for the scheduler"""
        if not settings.BACKUP_ENABLED:
            logger.info("Scheduled backup skipped: backup service is disabled")
            return None

        info = BackupService.create_backup()
        deleted = BackupService.cleanup_old_backups()
        logger.info(f"Scheduled backup finished: {info['filename']}, {deleted} old backup(s) removed")
        return info
