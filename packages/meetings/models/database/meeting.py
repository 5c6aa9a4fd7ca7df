from sqlalchemy import Column, String, ForeignKey, Index, Integer, text

from common.db.base import Base, BigIntegerType, UTCDateTime, utcnow


class MeetingEntity(Base):
    """
    A metered meeting.

    Open while ``ended_at`` is NULL. The partial unique index below allows at
    most one open meeting per user; the database enforces it atomically.
    """

    __tablename__ = "meetings"

    id = Column(BigIntegerType, primary_key=True, index=True, autoincrement=True)
    user_id = Column(
        BigIntegerType,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    title = Column(String(255), nullable=True)

    started_at = Column(UTCDateTime, nullable=False, default=utcnow)
    ended_at = Column(UTCDateTime, nullable=True)

    # Frozen when the meeting closes
    duration_minutes = Column(Integer, nullable=True)
    end_reason = Column(String(20), nullable=True)  # user, time_limit, sweep

    # Set once when the corresponding warning has been emitted
    five_minute_warning_at = Column(UTCDateTime, nullable=True)
    one_minute_warning_at = Column(UTCDateTime, nullable=True)

    created_at = Column(UTCDateTime, nullable=False, default=utcnow)

    __table_args__ = (
        Index(
            "uq_meetings_one_open_per_user",
            "user_id",
            unique=True,
            sqlite_where=text("ended_at IS NULL"),
            postgresql_where=text("ended_at IS NULL"),
        ),
        Index("idx_meetings_user_ended", "user_id", "ended_at"),
        Index("idx_meetings_user_started", "user_id", "started_at"),
    )
