"""
Database entity for AI usage records.
"""

from sqlalchemy import Column, String, ForeignKey, Index, Integer, Numeric

from common.db.base import Base, BigIntegerType, UTCDateTime, utcnow


class AiUsageEntity(Base):
    """
    One AI provider request.

    Append-only. ``cost_usd`` is fixed at insert time from the cost table
    in effect then, so later price changes never rewrite history.
    """

    __tablename__ = "ai_usage"

    id = Column(BigIntegerType, primary_key=True, index=True, autoincrement=True)
    user_id = Column(
        BigIntegerType,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    meeting_id = Column(
        BigIntegerType,
        ForeignKey("meetings.id", ondelete="SET NULL"),
        nullable=True,
    )

    provider_id = Column(String(100), nullable=False)
    input_tokens = Column(Integer, nullable=False, default=0)
    output_tokens = Column(Integer, nullable=False, default=0)
    cost_usd = Column(Numeric(12, 6), nullable=False)

    # transcription, suggestion, recap, fact-check, custom
    context = Column(String(50), nullable=False)

    created_at = Column(UTCDateTime, nullable=False, default=utcnow)

    __table_args__ = (Index("idx_ai_usage_user_date", "user_id", "created_at"),)
