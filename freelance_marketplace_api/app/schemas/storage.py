"""
Pydantic models returned by the file storage service.
"""

from typing import Optional

from .common import APIModel


class FileUploadResult(APIModel):
    file_url: str
    file_name: str
    file_size: int
    cloud_url: Optional[str] = None


class FileDownloadResult(APIModel):
    file_path: str
    file_name: str
