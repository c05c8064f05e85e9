"""Central configuration for the tax qualification package.

Every setting can be overridden with a ``TAXQ_``-prefixed environment variable,
e.g. ``TAXQ_BATCH_SIZE=250`` or ``TAXQ_STRICT_PERIOD=false``.
"""
from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from tax_qualifications.domain.reconciliation import MAX_BATCH_SIZE

QUALIFICATIONS_COLLECTION = "taxQualifications"
USERS_COLLECTION = "users"
AUDIT_COLLECTION = "auditLogs"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="TAXQ_", case_sensitive=False, frozen=True)

    mongo_uri: str = "mongodb://localhost:27017/"
    db_name: str = "tax_qualifications"
    batch_size: int = Field(default=MAX_BATCH_SIZE, gt=0, le=MAX_BATCH_SIZE)
    max_upload_mb: float = Field(default=10, gt=0)
    max_commit_workers: int = Field(default=8, ge=1)
    progress_interval: int = Field(default=100, ge=1)
    strict_period: bool = True

    @property
    def max_upload_bytes(self) -> int:
        return int(self.max_upload_mb * 1024 * 1024)

    @property
    def strict_period_format(self) -> bool:
        return self.strict_period


SETTINGS = Settings()
