"""Shared response models for consistent API responses."""

from datetime import datetime, timezone
from typing import Optional

from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from app.config.settings import settings


class CamelModel(BaseModel):
    """Base for response bodies serialized with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ResponseMetadata(BaseModel):
    """Metadata included in error responses."""

    app_name: str = Field(default=settings.APP_NAME)
    app_version: str = Field(default=settings.APP_VERSION)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class ErrorResponse(BaseModel):
    """Standard error response structure."""

    success: bool = Field(default=False)
    error: str
    detail: Optional[str] = None
    metadata: ResponseMetadata = Field(default_factory=ResponseMetadata)

    model_config = {
        "json_schema_extra": {
            "example": {
                "success": False,
                "error": "Failed to retrieve audit logs",
                "detail": None,
                "metadata": {
                    "app_name": "Evidence Audit Trail",
                    "app_version": "1.0.0",
                    "timestamp": "2026-01-15T09:30:00Z",
                },
            }
        }
    }


def error_response(
    error: str,
    status_code: int = 500,
    detail: Optional[str] = None,
) -> JSONResponse:
    """Create a JSON error response with the given status code."""
    body = ErrorResponse(success=False, error=error, detail=detail)
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))
