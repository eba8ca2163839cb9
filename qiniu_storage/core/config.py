"""Application configuration using Pydantic Settings."""

import re
from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    """Adapter settings with environment variable support."""

    # Service Identity
    SERVICE_NAME: str = "qiniu-storage"
    VERSION: str = "1.0.0"
    ENVIRONMENT: str = "development"  # development, staging, production

    # Logging Configuration
    LOG_LEVEL: str = "INFO"  # DEBUG, INFO, WARNING, ERROR, CRITICAL
    LOG_JSON: bool = True    # JSON logs (prod) vs pretty console (dev)
    DEBUG: bool = False

    # Backend selection (scheme registered in the backend registry)
    STORAGE_SCHEME: str = "qiniu"

    # Qiniu Kodo
    # Endpoint form: https://<bucket>.<region>-<provider-domain>
    QINIU_ENDPOINT: str = ""
    QINIU_ACCESS_KEY: str = ""
    QINIU_SECRET_KEY: str = ""
    # Download domain bound to the bucket; needed for keys starting with "/"
    QINIU_DOMAIN: Optional[str] = None
    QINIU_DOWNLOAD_EXPIRES: int = 3600  # Signed URL lifetime in seconds

    # HTTP
    HTTP_TIMEOUT: float = 30.0

    # Listing
    LIST_PAGE_SIZE: int = 1000

    @field_validator('LOG_LEVEL')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Normalize and check the log level name."""
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level '{v}'")
        return level

    @field_validator('QINIU_DOMAIN')
    @classmethod
    def validate_domain(cls, v: Optional[str]) -> Optional[str]:
        """Validate the download domain if provided.

        Accepts a bare host ("cdn.example.com") or a URL prefix
        ("https://cdn.example.com"). A trailing slash is stripped.
        """
        if v is None or v.strip() == "":
            return None

        v = v.strip().rstrip('/')
        if re.search(r'\s', v):
            raise ValueError(f"QINIU_DOMAIN must not contain whitespace, got '{v}'")

        return v

    @field_validator('QINIU_DOWNLOAD_EXPIRES')
    @classmethod
    def validate_download_expires(cls, v: int) -> int:
        """Signed URLs live between 1 second and 7 days."""
        if v < 1:
            raise ValueError("QINIU_DOWNLOAD_EXPIRES must be at least 1 second")
        if v > 604800:
            raise ValueError("QINIU_DOWNLOAD_EXPIRES cannot exceed 604800 seconds (7 days)")
        return v

    @field_validator('HTTP_TIMEOUT')
    @classmethod
    def validate_http_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError(f"HTTP_TIMEOUT must be positive, got {v}")
        return v

    @field_validator('LIST_PAGE_SIZE')
    @classmethod
    def validate_list_page_size(cls, v: int) -> int:
        """The provider caps list pages at 1000 entries."""
        if not 1 <= v <= 1000:
            raise ValueError(f"LIST_PAGE_SIZE must be between 1 and 1000, got {v}")
        return v

    @model_validator(mode='after')
    def validate_credentials(self):
        """An endpoint without credentials cannot sign anything."""
        if self.QINIU_ENDPOINT:
            if not self.QINIU_ACCESS_KEY:
                raise ValueError("QINIU_ACCESS_KEY must be set when QINIU_ENDPOINT is set")
            if not self.QINIU_SECRET_KEY:
                raise ValueError("QINIU_SECRET_KEY must be set when QINIU_ENDPOINT is set")
        return self

    @property
    def is_debug_mode(self) -> bool:
        """Check if debug mode is on."""
        return self.DEBUG or self.LOG_LEVEL == "DEBUG"

    @property
    def use_json_logs(self) -> bool:
        """Determine if JSON logging should be used.

        In production, always use JSON logs.
        In debug mode, allow override via LOG_JSON setting.
        """
        if self.ENVIRONMENT == "production":
            return True
        if self.DEBUG:
            return self.LOG_JSON
        return True

    class Config:
        """Pydantic configuration."""
        env_file = ".env"
        case_sensitive = True


# Global settings instance
settings = Settings()
