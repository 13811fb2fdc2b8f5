"""Weekly facilitator activity log table."""

from datetime import datetime

from sqlalchemy import JSON, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from coursewatch.db.base import Base, TimestampMixin, utcnow


class ActivityLogRow(Base, TimestampMixin):
    __tablename__ = "activity_logs"

    log_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    allocation_id: Mapped[str] = mapped_column(
        String(128), ForeignKey("course_offerings.allocation_id"), nullable=False, index=True
    )
    week_number: Mapped[int] = mapped_column(Integer, nullable=False)
    attendance: Mapped[list | None] = mapped_column(JSON, nullable=True)
    formative_one_grading: Mapped[str] = mapped_column(String(20), nullable=False, default="Not Started")
    formative_two_grading: Mapped[str] = mapped_column(String(20), nullable=False, default="Not Started")
    summative_grading: Mapped[str] = mapped_column(String(20), nullable=False, default="Not Started")
    course_moderation: Mapped[str] = mapped_column(String(20), nullable=False, default="Not Started")
    intranet_sync: Mapped[str] = mapped_column(String(20), nullable=False, default="Not Started")
    grade_book_status: Mapped[str] = mapped_column(String(20), nullable=False, default="Not Started")
    submitted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )

    __table_args__ = (
        UniqueConstraint("allocation_id", "week_number", name="uq_activity_log_allocation_week"),
    )
