"""Pydantic models for weekly activity log submission."""

from pydantic import BaseModel, ConfigDict, Field

from coursewatch.models.enums import TaskStatus


class ActivityLogSubmit(BaseModel):
    model_config = ConfigDict(extra="forbid")

    week_number: int = Field(..., ge=1, le=53)
    attendance: list[bool] = Field(default_factory=list)
    formative_one_grading: TaskStatus = TaskStatus.NOT_STARTED
    formative_two_grading: TaskStatus = TaskStatus.NOT_STARTED
    summative_grading: TaskStatus = TaskStatus.NOT_STARTED
    course_moderation: TaskStatus = TaskStatus.NOT_STARTED
    intranet_sync: TaskStatus = TaskStatus.NOT_STARTED
    grade_book_status: TaskStatus = TaskStatus.NOT_STARTED
