# Block / report schemas

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ginmai.models.base import as_utc

ReportCategoryLiteral = Literal[
    "no_show", "inappropriate_behavior", "harassment", "fake_profile", "safety_concern", "other"
]
ReportStatusLiteral = Literal["pending", "reviewing", "resolved", "dismissed"]


class BlockCreate(BaseModel):
    blocked_id: int


class BlockOut(BaseModel):
    """A blocked user from the blocker's side."""

    id: int
    blocked_id: int
    first_name: str
    created_at: datetime

    @field_validator("created_at")
    @classmethod
    def _utc(cls, v: datetime) -> datetime:
        return as_utc(v)


class BlockedStatus(BaseModel):
    user_id: int
    blocked: bool


class ReportCreate(BaseModel):
    category: ReportCategoryLiteral
    moment_id: Optional[int] = None
    description: Optional[str] = Field(default=None, max_length=1000)


class ReportOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    reporter_id: int
    reported_user_id: int
    moment_id: Optional[int] = None
    category: ReportCategoryLiteral
    description: Optional[str] = None
    status: ReportStatusLiteral
    created_at: datetime

    @field_validator("created_at")
    @classmethod
    def _utc(cls, v: datetime) -> datetime:
        return as_utc(v)
