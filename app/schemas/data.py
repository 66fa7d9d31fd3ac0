# ================================
# DATA MANAGEMENT SCHEMAS (schemas/data.py)
# ================================

from pydantic import Field
from typing import Optional, List, Dict
from datetime import datetime

from app.schemas.base import BaseSchema

# ================================
# Export / Import
# ================================

class ExportRequest(BaseSchema):
    format: str = Field(default="json", pattern="^(json|csv)$")

class ExportFileInfo(BaseSchema):
    filename: str
    size: int
    created_at: datetime
    download_url: str

class ExportResponse(BaseSchema):
    message: str
    format: str
    export: ExportFileInfo
    counts: Dict[str, int]

class ExportListResponse(BaseSchema):
    exports: List[ExportFileInfo]

class EntityImportResult(BaseSchema):
    created: int = 0
    skipped: int = 0

class ImportResponse(BaseSchema):
    message: str
    results: Dict[str, EntityImportResult]

class CleanupResponse(BaseSchema):
    message: str
    deleted: int

# ================================
# Backups
# ================================

class BackupFileInfo(BaseSchema):
    filename: str
    size: int
    created_at: datetime

class BackupListResponse(BaseSchema):
    backups: List[BackupFileInfo]

class BackupInfoResponse(BaseSchema):
    enabled: bool
    interval_hours: int
    retention_days: int
    backup_count: int
    total_size: int
    latest_backup: Optional[BackupFileInfo] = None
    backup_directory: str

class BackupCreateResponse(BaseSchema):
    message: str
    backup: BackupFileInfo

# ================================
# Demo data
# ================================

class DemoDataResponse(BaseSchema):
    message: str
    counts: Dict[str, int] = {}
