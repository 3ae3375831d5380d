# Feedback / match schemas

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ginmai.models.base import as_utc

RatingLiteral = Literal["great", "okay", "nope"]


class FeedbackCreate(BaseModel):
    about_user: int
    rating: RatingLiteral
    eat_again: Optional[bool] = None
    note: Optional[str] = Field(default=None, max_length=500)


class FeedbackOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    moment_id: int
    from_user: int
    about_user: int
    rating: RatingLiteral
    eat_again: Optional[bool] = None
    note: Optional[str] = None


class FeedbackResult(BaseModel):
    feedback: FeedbackOut
    matched: bool = False


class MatchOut(BaseModel):
    """One matched user from the viewer's side."""

    user_id: int
    first_name: str
    moment_id: int
    matched_at: datetime
    meals_together: int = 1

    @field_validator("matched_at")
    @classmethod
    def _utc(cls, v: datetime) -> datetime:
        return as_utc(v)
