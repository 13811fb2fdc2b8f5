"""String enums shared by the notification engine."""

from enum import StrEnum


class UserRole(StrEnum):
    MANAGER = "manager"
    FACILITATOR = "facilitator"
    STUDENT = "student"


class NotificationType(StrEnum):
    FACILITATOR_REMINDER = "facilitator_reminder"
    MANAGER_ALERT = "manager_alert"
    DEADLINE_WARNING = "deadline_warning"


class NotificationStatus(StrEnum):
    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"


class AlertType(StrEnum):
    MISSING_SUBMISSION = "missing_submission"
    LATE_SUBMISSION = "late_submission"
    COMPLIANCE_WARNING = "compliance_warning"


class AlertSeverity(StrEnum):
    MEDIUM = "medium"
    HIGH = "high"


class QueueName(StrEnum):
    FACILITATOR_REMINDERS = "facilitatorReminders"
    MANAGER_ALERTS = "managerAlerts"
    DEADLINE_WARNINGS = "deadlineWarnings"


class JobKind(StrEnum):
    SEND_REMINDER = "send-reminder"
    SEND_ALERT = "send-alert"
    SEND_WARNING = "send-warning"


class JobState(StrEnum):
    WAITING = "waiting"
    DELAYED = "delayed"
    ACTIVE = "active"
    COMPLETED = "completed"
    FAILED = "failed"


class BackoffType(StrEnum):
    EXPONENTIAL = "exponential"
    FIXED = "fixed"


class TaskStatus(StrEnum):
    DONE = "Done"
    PENDING = "Pending"
    NOT_STARTED = "Not Started"


class Trimester(StrEnum):
    T1 = "T1"
    T2 = "T2"
    T3 = "T3"


class Intake(StrEnum):
    HT1 = "HT1"
    HT2 = "HT2"
    FT = "FT"
