# ================================
# BACKUPS API (api/v1/backups.py)
# ================================

from fastapi import APIRouter, Depends, HTTPException, Query, Path
from fastapi.concurrency import run_in_threadpool
from typing import Optional
import logging

from app.dependencies import get_current_active_user
from app.models.user import User
from app.schemas.data import (
    BackupListResponse,
    BackupInfoResponse,
    BackupCreateResponse,
    CleanupResponse
)
from app.services.backup_service import BackupService
from app.core.exceptions import AppException

logger = logging.getLogger(__name__)

router = APIRouter()

@router.get("/", response_model=BackupListResponse)
async def list_backups(
    current_user: User = Depends(get_current_active_user)
):
    """Backup files, newest first"""
    return BackupListResponse(backups=BackupService.list_backups())

@router.get("/info", response_model=BackupInfoResponse)
async def get_backup_info(
    current_user: User = Depends(get_current_active_user)
):
    return BackupService.get_backup_info()

@router.post("/", response_model=BackupCreateResponse)
async def create_backup(
    current_user: User = Depends(get_current_active_user)
):
    """Run pg_dump now"""
    try:
        info = await run_in_threadpool(BackupService.create_backup)
        return BackupCreateResponse(message="Backup created successfully", backup=info)

    except AppException as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    except Exception as e:
        logger.error(f"Backup failed: {e}")
        raise HTTPException(status_code=500, detail="Backup failed")

@router.post("/cleanup", response_model=CleanupResponse)
async def cleanup_backups(
    retention_days: Optional[int] = Query(None, ge=0),
    current_user: User = Depends(get_current_active_user)
):
    try:
        deleted = BackupService.cleanup_old_backups(retention_days)
        return CleanupResponse(message=f"Deleted {deleted} old backup(s)", deleted=deleted)

    except Exception as e:
        logger.error(f"Backup cleanup failed: {e}")
        raise HTTPException(status_code=500, detail="Failed to clean up backups")

@router.post("/{filename}/restore", response_model=BackupCreateResponse)
async def restore_backup(
    filename: str = Path(..., description="Backup file name"),
    current_user: User = Depends(get_current_active_user)
):
    """Restore the database from a backup file"""
    try:
        info = await run_in_threadpool(BackupService.restore_backup, filename)
        return BackupCreateResponse(message=f"Database restored from {filename}", backup=info)

    except AppException as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    except Exception as e:
        logger.error(f"Restore from {filename} failed: {e}")
        raise HTTPException(status_code=500, detail="Restore failed")
