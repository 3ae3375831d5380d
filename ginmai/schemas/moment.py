# Moment API request/response schemas

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ginmai.models.base import as_utc
from ginmai.models.moment import NOTE_MAX_LEN, SEATS_MAX, SEATS_MIN

MomentStatusLiteral = Literal["active", "full", "completed", "cancelled"]
DurationLiteral = Literal["quick", "normal", "long"]


class MomentCreate(BaseModel):
    """Create request. starts_at defaults to now; host comes from X-User-Id."""

    starts_at: Optional[datetime] = None
    duration: DurationLiteral = "normal"
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)
    place_name: Optional[str] = Field(default=None, max_length=200)
    area_name: Optional[str] = Field(default=None, max_length=200)
    seats_total: int = Field(default=1, ge=SEATS_MIN, le=SEATS_MAX)
    note: Optional[str] = Field(default=None, max_length=NOTE_MAX_LEN)
    host_name: Optional[str] = Field(default=None, min_length=1, max_length=100)


class MomentOut(BaseModel):
    """
    Canonical wire shape of a moment. Used for API responses, realtime change
    payloads and by the Python client.
    """

    model_config = ConfigDict(from_attributes=True)

    id: int
    host_id: Optional[int] = None
    host_name: str
    starts_at: datetime
    duration: DurationLiteral
    expires_at: datetime
    lat: float
    lng: float
    place_name: Optional[str] = None
    area_name: Optional[str] = None
    seats_total: int
    seats_taken: int
    note: Optional[str] = None
    status: MomentStatusLiteral
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    # only meaningful for nearby listings (distance from the query point)
    distance_km: Optional[float] = None

    @field_validator("starts_at", "expires_at", "created_at", "updated_at")
    @classmethod
    def _utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return as_utc(v)

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at <= now


class MomentActionResult(BaseModel):
    """join/leave/cancel/complete response."""

    message: str
    moment: MomentOut
