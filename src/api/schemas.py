"""Pydantic schemas for API requests and responses."""

from datetime import datetime

from pydantic import BaseModel, Field

from src.automation.models import FieldShape


# ============================================================================
# Template Cache Schemas
# ============================================================================


class TemplateResponse(BaseModel):
    """A cached form template."""

    key: str
    fields: list[FieldShape]
    created_at: datetime
    expires_at: datetime
    fail_count: int


class TemplateListResponse(BaseModel):
    """All live templates."""

    templates: list[TemplateResponse]
    total: int


class TemplateUpsertRequest(BaseModel):
    """Schema for storing a template by hand."""

    fields: list[FieldShape] = Field(min_length=1)


class DeriveKeyRequest(BaseModel):
    """Schema for resolving a page URL to its cache key."""

    url: str = Field(min_length=1)


class DeriveKeyResponse(BaseModel):
    """Cache key for a URL. cache_key is null for unsupported platforms."""

    url: str
    cache_key: str | None
    cacheable: bool


class FailCountResponse(BaseModel):
    """Template failure count after an update."""

    key: str
    fail_count: int
    evicted: bool
