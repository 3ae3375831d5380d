# User profile / reliability schemas

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

ReliabilityLabel = Literal["New", "Reliable", "Good", "Fair", "Warning"]


class UserUpsert(BaseModel):
    first_name: str = Field(..., min_length=1, max_length=100)
    push_token: Optional[str] = Field(default=None, max_length=255)


class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    first_name: str
    meals_hosted: int = 0
    meals_joined: int = 0
    no_shows: int = 0


class ReliabilityOut(BaseModel):
    user_id: int
    meals_completed: int
    no_shows: int
    total_meals: int
    score: float
    percentage: int
    label: ReliabilityLabel
    badge: str
    description: str
    show_warning: bool
