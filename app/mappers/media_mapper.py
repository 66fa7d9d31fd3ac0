"""
Photo & Note Mapper Module
"""
from typing import Dict, Any

from app.services.storage_service import get_storage_service


def map_photo(photo) -> Dict[str, Any]:
    """Customer, property or invoice photo with its public URL"""
    data = {
        "id": photo.id,
        "filename": photo.filename,
        "original_name": photo.original_name,
        "mime_type": photo.mime_type,
        "file_size": photo.file_size,
        "width": photo.width,
        "height": photo.height,
        "description": photo.description,
        "category": photo.category,
        "url": get_storage_service().public_url(photo.file_path),
        "uploaded_at": photo.uploaded_at,
    }
    # Property photos carry location details
    for field in ("room", "floor", "date_taken"):
        if hasattr(photo, field):
            data[field] = getattr(photo, field)
    return data
