# EatAgainMatch model: symmetric link created by mutual "eat again" feedback

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Integer, UniqueConstraint

from ginmai.models.base import Base, utc_now


class EatAgainMatch(Base):
    """user_a_id < user_b_id always (canonical pair), so (a, b) and (b, a) map to one row."""

    __tablename__ = "eat_again_matches"

    id = Column(Integer, primary_key=True, index=True)
    user_a_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    user_b_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    moment_id = Column(Integer, ForeignKey("moments.id", ondelete="CASCADE"), nullable=False)
    matched_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)

    __table_args__ = (
        UniqueConstraint("user_a_id", "user_b_id", "moment_id", name="uq_match_pair_moment"),
        CheckConstraint("user_a_id < user_b_id", name="ck_match_canonical_pair"),
    )


def canonical_pair(a: int, b: int) -> tuple[int, int]:
    return (a, b) if a < b else (b, a)
