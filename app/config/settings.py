from typing import List

from dotenv import load_dotenv
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, computed_field

load_dotenv()


class Settings(BaseSettings):
    """Base settings for the application."""

    model_config = SettingsConfigDict(
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Application settings
    APP_NAME: str = "Evidence Audit Trail"
    APP_VERSION: str = "1.0.0"
    APP_DESCRIPTION: str = "Append-only audit trail for evidence chain of custody"

    # Logging
    LOG_LEVEL: str = "INFO"
    LOGS_DIR: str = "logs"

    # Supabase settings
    SUPABASE_URL: str = Field(default="", description="Supabase project URL (https://xxx.supabase.co)")
    SUPABASE_SERVICE_ROLE_KEY: str = Field(default="", description="Supabase service role key (used for audit inserts)")

    # Audit store
    AUDIT_LOG_TABLE: str = "evidence_audit_logs"
    AUDIT_STORE_TIMEOUT_SECONDS: float = 5.0
    AUDIT_WRITE_RETRIES: int = Field(default=0, ge=0)
    AUDIT_SHUTDOWN_DRAIN_SECONDS: float = 5.0

    # Audit middleware
    AUDIT_LOG_ON_REQUEST: bool = False
    AUDIT_LOG_ON_RESPONSE: bool = True
    AUDIT_EXCLUDE_PATHS: str = "/health,/status,/docs,/redoc,/openapi.json,/favicon.ico"
    AUDIT_MAX_FIELD_LENGTH: int = 500

    # Derived views
    AUDIT_TRAIL_LIMIT: int = 500

    # Bearer tokens consumed by the reporting endpoints
    LOCAL_AUTH_SECRET: str = "JWT_SECRET_KEY"
    LOCAL_AUTH_TOKEN_EXP_SECONDS: int = 3600

    @computed_field
    @property
    def audit_exclude_paths(self) -> List[str]:
        """Paths the audit middleware never logs, parsed from AUDIT_EXCLUDE_PATHS."""
        return [p.strip() for p in self.AUDIT_EXCLUDE_PATHS.split(",") if p.strip()]

    @computed_field
    @property
    def supabase_configured(self) -> bool:
        """Whether enough Supabase credentials are present to build a client."""
        return bool(self.SUPABASE_URL.strip() and self.SUPABASE_SERVICE_ROLE_KEY.strip())


settings = Settings()
