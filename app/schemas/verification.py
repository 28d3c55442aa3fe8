import json
from datetime import date
from typing import Optional
from uuid import UUID
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from app.models.property import VerificationStatus, Visibility


# ─── Admin mutations ──────────────────────────────────────────────────────────

class StatusUpdateRequest(BaseModel):
    status: VerificationStatus
    # Empty string clears the feedback; it never means "leave unchanged"
    admin_feedback: Optional[str] = ""

    @field_validator("admin_feedback")
    @classmethod
    def none_means_cleared(cls, v: Optional[str]) -> str:
        return (v or "").strip()


class VisibilityUpdateRequest(BaseModel):
    visibility: Visibility


# ─── Queue filters ────────────────────────────────────────────────────────────
# Immutable value objects. Two filters with equal field values produce the
# same cache_key(), whatever order the caller supplied the fields in.

class VerificationQueueFilter(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    page: int = Field(1, ge=1)
    page_size: int = Field(20, ge=1, le=100)
    agent_id: Optional[UUID] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    city: Optional[str] = None
    country: Optional[str] = None

    @field_validator("city", "country")
    @classmethod
    def blank_is_none(cls, v: Optional[str]) -> Optional[str]:
        if v is None or not v.strip():
            return None
        return v.strip()

    @model_validator(mode="after")
    def check_date_range(self):
        if self.date_from and self.date_to and self.date_from > self.date_to:
            raise ValueError("date_from must not be after date_to")
        return self

    def query_params(self) -> dict:
        """Non-empty fields as strings, ready for a query string."""
        return {
            key: str(value)
            for key, value in self.model_dump(mode="json").items()
            if value is not None
        }

    def cache_key(self) -> str:
        return json.dumps(
            {"variant": type(self).__name__, **self.model_dump(mode="json")},
            sort_keys=True,
            separators=(",", ":"),
        )

    def with_page(self, page: int):
        """Same predicates, another page."""
        return type(self)(**{**self.model_dump(), "page": page})

    def with_predicates(self, **predicates):
        """New filter with updated predicates, back on page 1."""
        data = self.model_dump()
        data.update(predicates)
        data["page"] = 1
        return type(self)(**data)


class AllPropertiesFilter(VerificationQueueFilter):
    verification_status: Optional[VerificationStatus] = None
    visibility: Optional[Visibility] = None
