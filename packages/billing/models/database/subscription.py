"""
Database entity for subscriptions.
"""

from sqlalchemy import Column, String, ForeignKey, Index

from common.db.base import Base, BigIntegerType, UTCDateTime, utcnow


class SubscriptionEntity(Base):
    """
    User subscription database entity.

    One row per provider subscription. A user may accumulate several over
    time; the newest one in a current status defines their billing period.
    """

    __tablename__ = "subscriptions"

    id = Column(BigIntegerType, primary_key=True, index=True, autoincrement=True)
    user_id = Column(
        BigIntegerType,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    provider = Column(String(50), nullable=False, default="lemonsqueezy")
    provider_subscription_id = Column(String(255), nullable=False, unique=True, index=True)

    plan_id = Column(String(50), nullable=False)  # free, plus, ultra
    status = Column(String(50), nullable=False, index=True)
    billing_interval = Column(String(20), nullable=False, default="monthly")

    # Renewal anchor; billing periods are aligned to it
    renew_at = Column(UTCDateTime, nullable=True)
    cancel_at = Column(UTCDateTime, nullable=True)

    created_at = Column(UTCDateTime, nullable=False, default=utcnow)
    updated_at = Column(UTCDateTime, nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index("idx_subscriptions_user_status", "user_id", "status"),
    )
