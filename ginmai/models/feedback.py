# Feedback model: one user's private rating of another after a shared moment

from enum import Enum as PyEnum

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.sql import func

from ginmai.models.base import Base


class Rating(str, PyEnum):
    GREAT = "great"
    OKAY = "okay"
    NOPE = "nope"


class Feedback(Base):
    __tablename__ = "feedback"

    id = Column(Integer, primary_key=True, index=True)
    moment_id = Column(Integer, ForeignKey("moments.id", ondelete="CASCADE"), nullable=False, index=True)
    from_user = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    about_user = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    rating = Column(String(10), nullable=False)
    eat_again = Column(Boolean, nullable=True)
    note = Column(String(500), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        UniqueConstraint("moment_id", "from_user", "about_user", name="uq_feedback_moment_from_about"),
    )
