# Moment model: a host's open invitation to share a meal

from datetime import timedelta
from enum import Enum as PyEnum

from sqlalchemy import CheckConstraint, Column, DateTime, Float, ForeignKey, Index, Integer, String
from sqlalchemy.sql import func

from ginmai.models.base import Base, utc_now


class MomentStatus(str, PyEnum):
    """Moment status. CANCELLED and COMPLETED are terminal."""

    ACTIVE = "active"
    FULL = "full"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class DurationClass(str, PyEnum):
    QUICK = "quick"
    NORMAL = "normal"
    LONG = "long"


DURATION_MINUTES: dict[str, int] = {
    DurationClass.QUICK.value: 30,
    DurationClass.NORMAL.value: 60,
    DurationClass.LONG.value: 120,
}

# expires_at = starts_at + nominal duration + this buffer
EXPIRY_BUFFER = timedelta(hours=1)

SEATS_MIN = 1
SEATS_MAX = 4
NOTE_MAX_LEN = 140

# Stored as String(20) like every status column; compare with MomentStatus in code.
STATUS_DEFAULT = MomentStatus.ACTIVE.value
OPEN_STATUSES = (MomentStatus.ACTIVE.value, MomentStatus.FULL.value)


class Moment(Base):
    """Moments table. seats_taken is only mutated by join/leave under a row lock or CAS update."""

    __tablename__ = "moments"

    id = Column(Integer, primary_key=True, index=True)
    # nullable at the schema level, but create always requires a host
    host_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    host_name = Column(String(100), nullable=False)
    starts_at = Column(DateTime(timezone=True), nullable=False)
    duration = Column(String(10), nullable=False, default=DurationClass.NORMAL.value)
    expires_at = Column(DateTime(timezone=True), nullable=False, index=True)
    lat = Column(Float, nullable=False)
    lng = Column(Float, nullable=False)
    place_name = Column(String(200), nullable=True)
    area_name = Column(String(200), nullable=True)
    seats_total = Column(Integer, nullable=False, default=1)
    seats_taken = Column(Integer, nullable=False, default=0, server_default="0")
    note = Column(String(NOTE_MAX_LEN), nullable=True)
    status = Column(String(20), nullable=False, default=STATUS_DEFAULT, server_default=STATUS_DEFAULT)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now)

    __table_args__ = (
        CheckConstraint("seats_taken >= 0 AND seats_taken <= seats_total", name="ck_moments_seats_taken"),
        CheckConstraint(f"seats_total >= {SEATS_MIN} AND seats_total <= {SEATS_MAX}", name="ck_moments_seats_total"),
        CheckConstraint("expires_at > starts_at", name="ck_moments_expiry_after_start"),
        Index("ix_moments_status_starts_at", "status", "starts_at"),
    )


def duration_minutes(duration: str) -> int:
    return DURATION_MINUTES[duration]


def compute_expires_at(starts_at, duration: str):
    """expires_at = starts_at + nominal duration + 1h buffer."""
    return starts_at + timedelta(minutes=duration_minutes(duration)) + EXPIRY_BUFFER
