"""Custom exception classes for CourseWatch."""


class CourseWatchError(Exception):
    """Base exception for CourseWatch."""

    def __init__(self, code: str, message: str, details=None, status_code: int = 500):
        self.code = code
        self.message = message
        self.details = details
        self.status_code = status_code
        super().__init__(message)


class ValidationError(CourseWatchError):
    """Notification input or job payload validation failure."""

    def __init__(self, message: str, details=None, code: str = "VALIDATION_ERROR"):
        super().__init__(code, message, details, status_code=400)


class InvalidAlertTypeError(ValidationError):
    """Manager alert subtype outside the known set."""

    def __init__(self, alert_type):
        super().__init__(
            f"Unknown alert type '{alert_type}'",
            details={"alert_type": alert_type},
            code="INVALID_ALERT_TYPE",
        )


class NotInitializedError(CourseWatchError):
    """Operation invoked before the owning service was initialized."""

    def __init__(self, component: str = "NotificationQueueService"):
        super().__init__("NOT_INITIALIZED", f"{component} not initialized", status_code=503)


class NotFoundError(CourseWatchError):
    """Resource not found."""

    def __init__(self, resource: str, resource_id: str):
        super().__init__(
            "NOT_FOUND",
            f"{resource} '{resource_id}' not found",
            status_code=404,
        )


class AllocationNotFoundError(NotFoundError):
    def __init__(self, allocation_id: str):
        super().__init__("Course offering", allocation_id)


class NotificationNotFoundError(NotFoundError):
    def __init__(self, notification_id: str):
        super().__init__("Notification", notification_id)


class DeliverySendError(CourseWatchError):
    """The notification transport rejected or could not deliver a message."""

    def __init__(self, message: str, details=None):
        super().__init__("DELIVERY_FAILED", message, details, status_code=502)


class AuthorizationError(CourseWatchError):
    """Insufficient permissions."""

    def __init__(self, message: str = "Insufficient scope"):
        super().__init__("AUTHORIZATION_ERROR", message, status_code=403)


class ConflictError(CourseWatchError):
    """Resource state conflict."""

    def __init__(self, message: str):
        super().__init__("CONFLICT", message, status_code=409)
