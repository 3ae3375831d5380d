# Connection model: one user's participation in one moment

from enum import Enum as PyEnum

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, UniqueConstraint

from ginmai.models.base import Base, utc_now


class ConnectionStatus(str, PyEnum):
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"
    COMPLETED = "completed"
    ARRIVED = "arrived"


# holding a seat right now
SEATED_STATUSES = (ConnectionStatus.CONFIRMED.value, ConnectionStatus.ARRIVED.value)
# counts as "has joined" for queries and feedback eligibility
ACTIVE_STATUSES = (
    ConnectionStatus.CONFIRMED.value,
    ConnectionStatus.COMPLETED.value,
    ConnectionStatus.ARRIVED.value,
)


class Connection(Base):
    """
    Connections table. One row per (moment, user): leaving marks the row cancelled
    and re-joining reactivates it, so the unique constraint also rules out a second
    active row for the pair.
    """

    __tablename__ = "connections"

    id = Column(Integer, primary_key=True, index=True)
    moment_id = Column(Integer, ForeignKey("moments.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    status = Column(String(20), nullable=False, default=ConnectionStatus.CONFIRMED.value)
    joined_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    arrived_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    running_late = Column(Boolean, nullable=False, default=False, server_default="0")
    running_late_at = Column(DateTime(timezone=True), nullable=True)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now)

    __table_args__ = (UniqueConstraint("moment_id", "user_id", name="uq_connection_moment_user"),)
