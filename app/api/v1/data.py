# ================================
# DATA EXPORT / IMPORT API (api/v1/data.py)
# ================================

from fastapi import APIRouter, Depends, HTTPException, Query, Path as PathParam, UploadFile, File
from fastapi.responses import FileResponse
from sqlalchemy.orm import Session
from typing import Optional
from pathlib import Path
import tempfile
import logging

from app.dependencies import get_db, get_current_active_user
from app.models.user import User
from app.schemas.data import (
    ExportRequest,
    ExportResponse,
    ExportListResponse,
    ImportResponse,
    CleanupResponse
)
from app.services.data_export_service import DataExportService
from app.core.exceptions import AppException
from app.config import settings

logger = logging.getLogger(__name__)

router = APIRouter()

IMPORT_SUFFIXES = (".json", ".zip")

@router.post("/export", response_model=ExportResponse)
async def export_data(
    export_request: Optional[ExportRequest] = None,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    """Export all business data as a zip archive (json or csv)"""
    export_format = export_request.format if export_request else "json"
    try:
        result = DataExportService.export_all(db, export_format)

        return ExportResponse(
            message="Data exported successfully",
            format=result["format"],
            export=result["export"],
            counts=result["counts"]
        )

    except AppException as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    except Exception as e:
        logger.error(f"Data export failed: {e}")
        raise HTTPException(status_code=500, detail=f"Export failed: {str(e)}")

@router.get("/exports", response_model=ExportListResponse)
async def list_exports(
    current_user: User = Depends(get_current_active_user)
):
    return ExportListResponse(exports=DataExportService.list_exports())

@router.get("/exports/{filename}")
async def download_export(
    filename: str = PathParam(..., description="Export archive name"),
    current_user: User = Depends(get_current_active_user)
):
    try:
        path = DataExportService.get_export_path(filename)
        return FileResponse(path, media_type="application/zip", filename=path.name)

    except AppException as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)

@router.post("/exports/cleanup", response_model=CleanupResponse)
async def cleanup_exports(
    retention_days: Optional[int] = Query(None, ge=0),
    current_user: User = Depends(get_current_active_user)
):
    """Delete export archives older than the retention window"""
    try:
        deleted = DataExportService.cleanup_old_exports(retention_days)
        return CleanupResponse(message=f"Deleted {deleted} old export(s)", deleted=deleted)

    except Exception as e:
        logger.error(f"Export cleanup failed: {e}")
        raise HTTPException(status_code=500, detail="Failed to clean up exports")

@router.post("/import", response_model=ImportResponse)
async def import_data(
    file: UploadFile = File(..., description="data.json or an export archive"),
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    """
    Import customers, invoices, expenses and recurring templates.

    Rows that already exist are skipped. Any error rolls back the whole import.
    """
    suffix = Path(file.filename or "").suffix.lower()
    if suffix not in IMPORT_SUFFIXES:
        raise HTTPException(status_code=400, detail="Import file must be a .json or .zip file")

    content = await file.read()
    if len(content) > settings.MAX_IMPORT_SIZE_MB * 1024 * 1024:
        raise HTTPException(status_code=400, detail=f"Import file exceeds {settings.MAX_IMPORT_SIZE_MB}MB")

    try:
        with tempfile.TemporaryDirectory() as tmp:
            upload_path = Path(tmp) / f"import{suffix}"
            upload_path.write_bytes(content)

            if suffix == ".zip":
                results = DataExportService.import_archive(db, upload_path)
            else:
                results = DataExportService.import_json(db, upload_path)

        db.commit()

        return ImportResponse(message="Data imported successfully", results=results)

    except AppException as e:
        db.rollback()
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    except Exception as e:
        db.rollback()
        logger.error(f"Data import failed: {e}")
        raise HTTPException(status_code=500, detail=f"Import failed: {str(e)}")
