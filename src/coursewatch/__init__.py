"""CourseWatch: activity-log compliance notifications for course offerings."""

__version__ = "1.0.0"
