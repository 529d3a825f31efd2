"""
Simple configuration management.

The ``Settings`` dataclass reads configuration directly from environment
variables so that the service can be configured the same way in
development, containers and tests.  Defaults are provided for all
fields.  In a production deployment override at least ``SECRET_KEY`` and
``DATABASE_URL``.
"""

import os
from dataclasses import dataclass


@dataclass
class Settings:
    """Application settings loaded from environment variables."""

    project_name: str = os.getenv("PROJECT_NAME", "Freelance Marketplace API")
    api_version: str = os.getenv("API_VERSION", "1.0.0")
    debug: bool = os.getenv("DEBUG", "false").lower() in {"1", "true", "yes"}
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    log_file: str = os.getenv("LOG_FILE", "")
    secret_key: str = os.getenv("SECRET_KEY", "change_me")
    access_token_expire_minutes: int = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", str(60 * 24)))
    algorithm: str = os.getenv("ALGORITHM", "HS256")

    # Optional static token for administrator API access.  Requests
    # carrying this token in the Authorization header are treated as an
    # ADMIN without a user account (integrations, maintenance scripts).
    admin_static_token: str = os.getenv("ADMIN_TOKEN", "")

    # Path to the SQLite database.  Relative paths are resolved against
    # the package root by the ``db`` module.
    database_url: str = os.getenv("DATABASE_URL", "marketplace.db")

    # File storage.  Only the ``local`` provider is implemented; ``s3``,
    # ``gcs`` and ``azure`` are accepted by the configuration so that
    # migrations between providers can be expressed.
    storage_provider: str = os.getenv("STORAGE_PROVIDER", "local")
    storage_local_path: str = os.getenv("STORAGE_LOCAL_PATH", "./uploads")
    storage_bucket: str = os.getenv("STORAGE_BUCKET", "")
    storage_region: str = os.getenv("STORAGE_REGION", "")
    storage_public_base_url: str = os.getenv("STORAGE_PUBLIC_URL", "")
    max_upload_size_mb: int = int(os.getenv("MAX_UPLOAD_SIZE_MB", "5"))


# Instantiate settings once so other modules can import it without
# repeatedly reading environment variables.  Environment variables must
# be set before this module is imported.
settings = Settings()
