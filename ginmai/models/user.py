# User model (profile mirror of the identity provider's user)

from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.sql import func

from ginmai.models.base import Base


class User(Base):
    """Users table. id is the opaque id issued by the identity provider."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    first_name = Column(String(100), nullable=False)
    push_token = Column(String(255), nullable=True)  # Expo push token
    # cumulative stats, reliability is derived from these on read
    meals_hosted = Column(Integer, nullable=False, default=0, server_default="0")
    meals_joined = Column(Integer, nullable=False, default=0, server_default="0")
    no_shows = Column(Integer, nullable=False, default=0, server_default="0")
    created_at = Column(DateTime(timezone=True), server_default=func.now())
