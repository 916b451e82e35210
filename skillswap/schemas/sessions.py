"""Pydantic schema for a session request.

Validated before anything is written; the bounds come from SessionSettings.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field, field_validator, model_validator

from skillswap.config import settings
from skillswap.models.enums import SessionFormat, SkillCategory


class SkillRef(BaseModel):
    """The skill a session is about."""

    name: str = Field(min_length=1, max_length=100)
    category: SkillCategory


class SessionRequest(BaseModel):
    """Details a student supplies when requesting a session."""

    title: str = Field(min_length=1, max_length=100)
    description: str | None = Field(default=None, max_length=1000)
    skill: SkillRef
    scheduled_date: datetime
    duration: int = Field(default=settings.sessions.default_duration_minutes)
    timezone: str = Field(default=settings.sessions.default_timezone, max_length=64)
    format: SessionFormat = SessionFormat.VIRTUAL
    location: str | None = Field(default=None, max_length=200)
    meeting_link: str | None = Field(default=None, max_length=500)
    message: str | None = Field(default=None, max_length=5000)

    @field_validator("title")
    @classmethod
    def strip_title(cls, v: str) -> str:
        """Titles are stored trimmed."""
        stripped = v.strip()
        if not stripped:
            msg = "title must not be blank"
            raise ValueError(msg)
        return stripped

    @field_validator("duration")
    @classmethod
    def validate_duration(cls, v: int) -> int:
        """Duration must fall inside the configured bounds (minutes)."""
        low = settings.sessions.min_duration_minutes
        high = settings.sessions.max_duration_minutes
        if not low <= v <= high:
            msg = f"duration must be between {low} and {high} minutes, got {v}"
            raise ValueError(msg)
        return v

    @field_validator("scheduled_date")
    @classmethod
    def require_timezone(cls, v: datetime) -> datetime:
        """Naive datetimes are ambiguous across participants."""
        if v.tzinfo is None:
            msg = "scheduled_date must be timezone-aware"
            raise ValueError(msg)
        return v

    @model_validator(mode="after")
    def require_venue(self) -> SessionRequest:
        """In-person sessions need a location."""
        if self.format == SessionFormat.IN_PERSON and not self.location:
            msg = "in-person sessions require a location"
            raise ValueError(msg)
        return self
