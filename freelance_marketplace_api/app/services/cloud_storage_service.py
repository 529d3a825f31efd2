"""
File storage for uploaded documents.

Only the local filesystem provider is implemented.  ``s3``, ``gcs`` and
``azure`` can be configured but every operation on them raises
``StorageError`` until a provider SDK is integrated.  Local files are
written to ``{local_path}/{directory}/{timestamp}_{file_name}`` and the
resulting path doubles as the file URL stored in profiles.
"""

import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from ..core.config import settings
from ..core.exceptions import StorageError, ValidationError
from ..schemas.storage import FileDownloadResult, FileUploadResult


logger = logging.getLogger(__name__)

CLOUD_PROVIDERS = {"s3": "S3", "gcs": "GCS", "azure": "Azure"}


@dataclass
class StorageConfig:
    """Storage backend configuration."""

    provider: str = "local"
    local_path: str = "./uploads"
    bucket: str = ""
    region: str = ""
    public_base_url: str = ""

    @classmethod
    def from_settings(cls) -> "StorageConfig":
        return cls(
            provider=settings.storage_provider,
            local_path=settings.storage_local_path,
            bucket=settings.storage_bucket,
            region=settings.storage_region,
            public_base_url=settings.storage_public_base_url,
        )


class CloudStorageService:
    """Upload, download and delete files on the configured provider."""

    def __init__(self, config: Optional[StorageConfig] = None) -> None:
        self.config = config or StorageConfig.from_settings()
        if self.config.provider not in ("local", *CLOUD_PROVIDERS):
            raise ValidationError(f"Unsupported storage provider: {self.config.provider}")
        self.is_cloud_storage = self.config.provider != "local"

    @property
    def root(self) -> Path:
        return Path(self.config.local_path).resolve()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def upload_file(self, content: bytes, file_name: str, directory: str = "certifications") -> FileUploadResult:
        try:
            if self.is_cloud_storage:
                return await self._upload_to_cloud(content, file_name, directory)
            return await self._upload_to_local(content, file_name, directory)
        except Exception as e:
            raise StorageError(f"Failed to upload file: {e}") from e

    async def download_file(self, file_url: str) -> FileDownloadResult:
        try:
            if self.is_cloud_storage:
                return await self._download_from_cloud(file_url)
            return await self._download_from_local(file_url)
        except ValidationError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to download file: {e}") from e

    async def delete_file(self, file_url: str) -> None:
        """Delete a file.  Failures are logged, never raised."""
        try:
            if self.is_cloud_storage:
                await self._delete_from_cloud(file_url)
            else:
                await self._delete_from_local(file_url)
        except Exception:
            logger.exception("Failed to delete file %s", file_url)

    async def get_public_url(self, file_url: str) -> str:
        if self.is_cloud_storage and self.config.public_base_url:
            return f"{self.config.public_base_url.rstrip('/')}/{file_url.lstrip('/')}"
        return file_url

    async def migrate_to_cloud(self, local_file_url: str, target_directory: str = "certifications") -> str:
        """Move a local file to the cloud provider and return its new URL."""
        if not self.is_cloud_storage:
            raise ValidationError("Cloud storage not configured")
        try:
            path = Path(local_file_url)
            result = await self._upload_to_cloud(path.read_bytes(), path.name, target_directory)
            await self._delete_from_local(local_file_url)
            return result.file_url
        except Exception as e:
            raise StorageError(f"Failed to migrate file to cloud: {e}") from e

    async def migrate_to_local(self, cloud_file_url: str, target_directory: str = "certifications") -> str:
        """Download a cloud file into local storage and return the local path."""
        if self.is_cloud_storage:
            raise ValidationError("Already using cloud storage")
        try:
            provider = _provider_from_url(cloud_file_url)
            download = await self._download_from_cloud(cloud_file_url, provider)
            target = self.root / target_directory / Path(cloud_file_url).name
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(Path(download.file_path).read_bytes())
            await self._delete_from_cloud(cloud_file_url, provider)
            return str(target)
        except Exception as e:
            raise StorageError(f"Failed to migrate file to local: {e}") from e

    async def batch_migrate_to_cloud(self, file_urls: List[str], target_directory: str = "certifications") -> List[str]:
        """Migrate several files; a file that fails keeps its original URL."""
        results: List[str] = []
        for file_url in file_urls:
            try:
                results.append(await self.migrate_to_cloud(file_url, target_directory))
            except (StorageError, ValidationError):
                logger.exception("Failed to migrate file %s", file_url)
                results.append(file_url)
        return results

    # ------------------------------------------------------------------
    # Local provider
    # ------------------------------------------------------------------

    def _resolve_local(self, file_url: str) -> Path:
        path = Path(file_url).resolve()
        if path != self.root and self.root not in path.parents:
            raise ValidationError("Invalid file path")
        return path

    async def _upload_to_local(self, content: bytes, file_name: str, directory: str) -> FileUploadResult:
        upload_dir = self.root / directory
        upload_dir.mkdir(parents=True, exist_ok=True)
        # Only the base name is kept so a crafted name cannot leave the upload directory
        safe_name = Path(file_name).name
        file_path = upload_dir / f"{int(time.time() * 1000)}_{safe_name}"
        file_path.write_bytes(content)
        logger.info("Stored %s bytes at %s", len(content), file_path)
        return FileUploadResult(file_url=str(file_path), file_name=safe_name, file_size=len(content))

    async def _download_from_local(self, file_url: str) -> FileDownloadResult:
        path = self._resolve_local(file_url)
        if not path.is_file():
            raise ValidationError("File not found")
        return FileDownloadResult(file_path=str(path), file_name=path.name)

    async def _delete_from_local(self, file_url: str) -> None:
        path = self._resolve_local(file_url)
        if not path.exists():
            logger.warning("File %s not found or cannot be deleted", file_url)
            return
        path.unlink()

    # ------------------------------------------------------------------
    # Cloud providers
    # ------------------------------------------------------------------

    def _cloud_name(self, provider: Optional[str]) -> str:
        provider = provider or self.config.provider
        if provider not in CLOUD_PROVIDERS:
            raise ValidationError("Unsupported cloud storage type")
        return CLOUD_PROVIDERS[provider]

    async def _upload_to_cloud(self, content: bytes, file_name: str, directory: str) -> FileUploadResult:
        raise StorageError(f"{self._cloud_name(None)} upload not implemented")

    async def _download_from_cloud(self, file_url: str, provider: Optional[str] = None) -> FileDownloadResult:
        raise StorageError(f"{self._cloud_name(provider)} download not implemented")

    async def _delete_from_cloud(self, file_url: str, provider: Optional[str] = None) -> None:
        raise StorageError(f"{self._cloud_name(provider)} delete not implemented")


def _provider_from_url(file_url: str) -> Optional[str]:
    if file_url.startswith("s3://"):
        return "s3"
    if file_url.startswith("gs://"):
        return "gcs"
    if ".blob.core.windows.net" in file_url:
        return "azure"
    return None


def get_storage() -> CloudStorageService:
    """Storage service built from the current settings."""
    return CloudStorageService(StorageConfig.from_settings())
