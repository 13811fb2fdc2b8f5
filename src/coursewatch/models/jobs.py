"""Delivery job payloads as a tagged union keyed on ``kind``."""

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from coursewatch.errors.exceptions import ValidationError
from coursewatch.models.enums import AlertType
from coursewatch.models.notification import FacilitatorInfo


class _JobPayload(BaseModel):
    model_config = ConfigDict(extra="forbid")

    notification_id: str = Field(..., min_length=1)
    allocation_id: str | None = None
    week_number: int | None = None


class ReminderJob(_JobPayload):
    kind: Literal["send-reminder"] = "send-reminder"
    facilitator_id: str
    course_info: dict[str, Any] = Field(default_factory=dict)

    @property
    def recipient_id(self) -> str:
        return self.facilitator_id


class AlertJob(_JobPayload):
    kind: Literal["send-alert"] = "send-alert"
    manager_id: str
    facilitator_info: FacilitatorInfo
    alert_type: AlertType

    @property
    def recipient_id(self) -> str:
        return self.manager_id


class WarningJob(_JobPayload):
    kind: Literal["send-warning"] = "send-warning"
    recipient_id: str


DeliveryJob = Annotated[
    Union[ReminderJob, AlertJob, WarningJob],
    Field(discriminator="kind"),
]

_adapter: TypeAdapter[DeliveryJob] = TypeAdapter(DeliveryJob)


def decode_job(data: dict) -> ReminderJob | AlertJob | WarningJob:
    """Decode a raw queue payload into its concrete job type."""
    try:
        return _adapter.validate_python(data)
    except PydanticValidationError as exc:
        raise ValidationError("Invalid delivery job payload", details=str(exc)) from None


def encode_job(job: ReminderJob | AlertJob | WarningJob) -> dict:
    return job.model_dump(mode="json", by_alias=True)
