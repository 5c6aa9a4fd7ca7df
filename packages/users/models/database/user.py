from sqlalchemy import Column, String, Index

from common.db.base import Base, BigIntegerType, UTCDateTime, utcnow


class UserEntity(Base):
    __tablename__ = "users"

    id = Column(BigIntegerType, primary_key=True, index=True, autoincrement=True)
    email = Column(String, nullable=False, unique=True, index=True)

    # Denormalized cache of the current subscription's plan.
    # Written only by the subscription state machine.
    current_plan = Column(String(50), nullable=False, default="free", server_default="free")

    # Free tier: start of the most recent trial meeting (rolling 7-day window)
    last_free_trial_started_at = Column(UTCDateTime, nullable=True)

    # Billing provider customer id
    billing_customer_id = Column(String(255), nullable=True)

    created_at = Column(UTCDateTime, nullable=False, default=utcnow)
    updated_at = Column(UTCDateTime, nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (Index("idx_users_current_plan", "current_plan"),)
