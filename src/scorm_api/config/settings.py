# src/scorm_api/config/settings.py
from typing import Optional
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache


class Settings(BaseSettings):
    """
    Single source of truth for all application settings.

    Configuration precedence:
    1. Environment variables (highest priority)
    2. .env file (if exists)
    3. Default values in this class (lowest priority)

    Usage:
        from scorm_api.config.settings import get_settings
        settings = get_settings()
        backend = settings.storage_backend
    """

    # Application Settings
    app_name: str = Field(
        default="scorm-api",
        description="Application name"
    )

    host: str = Field(
        default="0.0.0.0",
        description="Interface the HTTP server binds to"
    )

    port: int = Field(
        default=3000,
        alias="PORT",
        description="Listening port"
    )

    frontend_origin: str = Field(
        default="https://scorm-frontend.vercel.app",
        description="The only origin allowed by the CORS policy"
    )

    # Storage backend: one per deployment
    storage_backend: str = Field(
        default="local",
        description="Storage backend: local or s3"
    )

    # AWS Core Settings
    aws_region: str = Field(
        default="us-east-1",
        alias="AWS_DEFAULT_REGION"
    )

    aws_access_key_id: Optional[str] = Field(
        default=None,
        alias="AWS_ACCESS_KEY_ID"
    )

    aws_secret_access_key: Optional[str] = Field(
        default=None,
        alias="AWS_SECRET_ACCESS_KEY"
    )

    aws_endpoint_url: Optional[str] = Field(
        default=None,
        alias="AWS_ENDPOINT_URL"
    )

    # S3 Configuration
    s3_bucket_name: str = Field(
        default="scorm-packages",
        description="S3 bucket holding uploaded packages"
    )

    s3_key_prefix: str = Field(
        default="scorm_files",
        description="Key prefix every stored folder lives under"
    )

    s3_public_base_url: Optional[str] = Field(
        default=None,
        description="Base URL used to build folder links (derived from bucket/region if unset)"
    )

    # Local directories
    public_dir: str = Field(
        default="public",
        description="Storage root for the local backend, served statically"
    )

    temp_dir: str = Field(
        default="temp",
        description="Per-file chunk directories live here during reassembly"
    )

    uploads_dir: str = Field(
        default="uploads",
        description="Merged files are written here before being stored"
    )

    # Limits
    max_files: int = Field(
        default=100,
        description="Maximum number of file parts in one upload request"
    )

    max_upload_bytes: int = Field(
        default=150 * 1024 * 1024,
        description="Maximum total body size of one upload request"
    )

    max_list_results: int = Field(
        default=500,
        description="Maximum number of folders returned by a listing"
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level"
    )

    @field_validator("storage_backend", mode="before")
    @classmethod
    def normalize_storage_backend(cls, v):
        """Normalize backend names, accepting a few common aliases."""
        if isinstance(v, str):
            v = v.strip().lower()
            mode_mapping = {
                "filesystem": "local",
                "disk": "local",
                "cloud": "s3",
                "aws": "s3",
            }
            return mode_mapping.get(v, v)
        return v

    @field_validator("storage_backend")
    @classmethod
    def validate_storage_backend(cls, v):
        """Validate storage backend is one of the allowed values."""
        valid_backends = ["local", "s3"]
        if v not in valid_backends:
            raise ValueError(f"Invalid storage_backend: {v}. Must be one of {valid_backends}")
        return v

    @field_validator("max_files", "max_upload_bytes", "max_list_results")
    @classmethod
    def validate_positive_limit(cls, v, info):
        if v <= 0:
            raise ValueError(f"{info.field_name} must be positive, got {v}")
        return v

    @field_validator("s3_key_prefix")
    @classmethod
    def strip_key_prefix(cls, v):
        return v.strip("/")

    @property
    def s3_base_url(self) -> str:
        """Base URL objects in the bucket are publicly reachable under."""
        if self.s3_public_base_url:
            return self.s3_public_base_url.rstrip("/")
        if self.aws_endpoint_url:
            return f"{self.aws_endpoint_url.rstrip('/')}/{self.s3_bucket_name}"
        return f"https://{self.s3_bucket_name}.s3.{self.aws_region}.amazonaws.com"

    def get_environment_dict(self) -> dict:
        """Get configuration as a dictionary of environment variable names.

        Secrets are masked.
        """
        return {
            "APP_NAME": self.app_name,
            "PORT": str(self.port),
            "FRONTEND_ORIGIN": self.frontend_origin,
            "STORAGE_BACKEND": self.storage_backend,
            "AWS_DEFAULT_REGION": self.aws_region,
            "AWS_ENDPOINT_URL": self.aws_endpoint_url or "",
            "AWS_ACCESS_KEY_ID": "****" if self.aws_access_key_id else "",
            "AWS_SECRET_ACCESS_KEY": "****" if self.aws_secret_access_key else "",
            "S3_BUCKET_NAME": self.s3_bucket_name,
            "S3_KEY_PREFIX": self.s3_key_prefix,
            "PUBLIC_DIR": self.public_dir,
            "TEMP_DIR": self.temp_dir,
            "UPLOADS_DIR": self.uploads_dir,
            "MAX_FILES": str(self.max_files),
            "MAX_UPLOAD_BYTES": str(self.max_upload_bytes),
            "MAX_LIST_RESULTS": str(self.max_list_results),
            "LOG_LEVEL": self.log_level,
        }

    model_config = SettingsConfigDict(
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.
    This ensures we only create one Settings instance per process.
    """
    return Settings()
