"""Read-only notification inspection."""

from fastapi import APIRouter, Query

from coursewatch.dependencies import DBSession
from coursewatch.errors.exceptions import NotificationNotFoundError
from coursewatch.models.notification import NotificationModel
from coursewatch.repositories.notification_repo import NotificationRepository

router = APIRouter(prefix="/notifications", tags=["Notifications"])


@router.get("", response_model=list[NotificationModel])
async def list_notifications(
    db: DBSession,
    recipient_id: str = Query(..., min_length=1),
    limit: int = Query(50, ge=1, le=200),
):
    rows = await NotificationRepository(db).list_by_recipient(recipient_id, limit=limit)
    return [NotificationModel.model_validate(row) for row in rows]


@router.get("/stats")
async def notification_stats(db: DBSession):
    return await NotificationRepository(db).count_by_status()


@router.get("/{notification_id}", response_model=NotificationModel)
async def get_notification(notification_id: str, db: DBSession):
    row = await NotificationRepository(db).get(notification_id)
    if row is None:
        raise NotificationNotFoundError(notification_id)
    return NotificationModel.model_validate(row)
