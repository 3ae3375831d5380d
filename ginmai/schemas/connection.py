# Connection / guest schemas

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, field_validator

from ginmai.models.base import as_utc

ConnectionStatusLiteral = Literal["confirmed", "cancelled", "no_show", "completed", "arrived"]


class ConnectionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    moment_id: int
    user_id: int
    status: ConnectionStatusLiteral
    joined_at: datetime
    arrived_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    running_late: bool = False
    running_late_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("joined_at", "arrived_at", "cancelled_at", "running_late_at", "updated_at")
    @classmethod
    def _utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return as_utc(v)


class GuestOut(BaseModel):
    """A guest from the host's point of view."""

    connection_id: int
    user_id: int
    first_name: str
    joined_at: datetime
    status: ConnectionStatusLiteral
    running_late: bool = False
    updated_at: Optional[datetime] = None

    @field_validator("joined_at", "updated_at")
    @classmethod
    def _utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return as_utc(v)
