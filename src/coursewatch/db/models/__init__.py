"""SQLAlchemy ORM models - import all to register with Base.metadata."""

from coursewatch.db.models.user import UserRow
from coursewatch.db.models.course_offering import ClassRow, CourseOfferingRow, ModuleRow
from coursewatch.db.models.activity_log import ActivityLogRow
from coursewatch.db.models.notification import NotificationRow

__all__ = [
    "UserRow",
    "ModuleRow",
    "ClassRow",
    "CourseOfferingRow",
    "ActivityLogRow",
    "NotificationRow",
]
