#!/usr/bin/env python3
"""
Database Backup Script
Invoicing API

Runs one backup plus retention cleanup outside the API process, for use
from cron when the in-app scheduler is disabled.

Usage:
    python utility_scripts/run_backup.py
    python utility_scripts/run_backup.py --list
    python utility_scripts/run_backup.py --cleanup-only
"""

import sys
import argparse
import logging
from pathlib import Path

project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from dotenv import load_dotenv
load_dotenv()

from app.core.exceptions import AppException
from app.services.backup_service import BackupService

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def main():
    parser = argparse.ArgumentParser(description="Create or clean up database backups")
    parser.add_argument("--list", action="store_true", help="List existing backups and exit")
    parser.add_argument("--cleanup-only", action="store_true", help="Only remove backups past retention")
    args = parser.parse_args()

    try:
        if args.list:
            for backup in BackupService.list_backups():
                print(f"{backup['filename']}  {backup['size']:>12}  {backup['created_at']}")
            return

        if args.cleanup_only:
            deleted = BackupService.cleanup_old_backups()
            logger.info(f"Removed {deleted} old backup(s)")
            return

        info = BackupService.run_scheduled_backup()
        if info is None:
            logger.warning("Backups are disabled; set BACKUP_ENABLED=true")
            sys.exit(1)

    except AppException as e:
        logger.error(f"Backup failed: {e.detail}")
        sys.exit(1)


if __name__ == "__main__":
    main()
