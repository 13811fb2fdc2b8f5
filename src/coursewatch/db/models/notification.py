"""Notification storage table."""

from datetime import datetime

from sqlalchemy import JSON, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from coursewatch.db.base import Base, TimestampMixin
from coursewatch.db.models.course_offering import CourseOfferingRow
from coursewatch.db.models.user import UserRow


class NotificationRow(Base, TimestampMixin):
    __tablename__ = "notifications"

    notification_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    type: Mapped[str] = mapped_column(String(30), nullable=False, index=True)
    recipient_id: Mapped[str] = mapped_column(
        String(128), ForeignKey("users.user_id"), nullable=False, index=True
    )
    allocation_id: Mapped[str | None] = mapped_column(
        String(128), ForeignKey("course_offerings.allocation_id"), nullable=True
    )
    week_number: Mapped[int | None] = mapped_column(Integer, nullable=True)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending", index=True)
    scheduled_for: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True, index=True
    )
    sent_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    extra_data: Mapped[dict | None] = mapped_column("metadata", JSON, nullable=True)

    recipient: Mapped[UserRow] = relationship()
    course_offering: Mapped[CourseOfferingRow | None] = relationship()

    __table_args__ = (
        Index("ix_notifications_allocation_week", "allocation_id", "week_number"),
    )
