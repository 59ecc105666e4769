"""
Pydantic models for stored records and request/response validation.
"""
from typing import Optional
from pydantic import BaseModel, Field, StrictInt, StrictStr


class PasteRecord(BaseModel):
    """A stored paste. Timestamps are epoch milliseconds."""
    id: str
    content: str
    created_at: int
    expires_at: Optional[int] = None
    max_views: Optional[int] = Field(None, ge=1)
    views: int = Field(0, ge=0)

    def to_json(self) -> str:
        return self.model_dump_json()

    @classmethod
    def from_json(cls, raw: str) -> "PasteRecord":
        return cls.model_validate_json(raw)

    def is_expired(self, now_ms: int) -> bool:
        return self.expires_at is not None and now_ms >= self.expires_at

    def is_exhausted(self) -> bool:
        return self.max_views is not None and self.views >= self.max_views

    def remaining_views(self) -> Optional[int]:
        if self.max_views is None:
            return None
        return max(self.max_views - self.views, 0)

    def with_view(self) -> "PasteRecord":
        """Return a copy with the view counter advanced by one."""
        return self.model_copy(update={"views": self.views + 1})


class PasteCreate(BaseModel):
    """Schema for creating a new paste. Range checks happen in the service."""
    content: StrictStr = Field(..., description="Text content (required, non-empty)")
    ttl_seconds: Optional[StrictInt] = Field(None, description="Optional TTL in seconds")
    max_views: Optional[StrictInt] = Field(None, description="Optional view limit")


class PasteResponse(BaseModel):
    """Schema for paste creation response."""
    id: str = Field(..., description="Unique paste ID")
    url: str = Field(..., description="Shareable URL to view the paste")


class PasteView(BaseModel):
    """Schema for viewing/fetching a paste."""
    content: str = Field(..., description="Paste text content")
    remaining_views: Optional[int] = Field(None, description="Views left (null if unlimited)")
    expires_at: Optional[str] = Field(None, description="Expiry timestamp (ISO 8601, null if no TTL)")


class HealthCheck(BaseModel):
    """Schema for health check response."""
    ok: bool = Field(..., description="Is the application healthy?")


class ErrorResponse(BaseModel):
    """Schema for error responses."""
    error: str
