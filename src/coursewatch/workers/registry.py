"""Processor registry mapping job kinds to processor classes."""

from coursewatch.models.enums import JobKind
from coursewatch.workers.processor import NotificationJobProcessor

_registry: dict[str, type[NotificationJobProcessor]] = {
    JobKind.SEND_REMINDER.value: NotificationJobProcessor,
    JobKind.SEND_ALERT.value: NotificationJobProcessor,
    JobKind.SEND_WARNING.value: NotificationJobProcessor,
}


def register_processor(job_kind: str, processor_class: type[NotificationJobProcessor]) -> None:
    """Register a processor class for a job kind."""
    _registry[str(job_kind)] = processor_class


def get_processor_class(job_kind: str) -> type[NotificationJobProcessor] | None:
    return _registry.get(str(job_kind))
