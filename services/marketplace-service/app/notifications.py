from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from shared.utils import SuccessResponse, NotFoundException

from app.dependencies import get_current_user, get_database
from app.helpers import UnitOfWork, str_to_oid, with_id
from app.models import NotificationDB, NotificationType
from app.schemas import NotificationResponse

router = APIRouter(prefix="/notifications", tags=["notifications"])


async def notify(
    uow: UnitOfWork,
    user_id: str,
    type: NotificationType,
    title: str,
    message: str,
    related_id: Optional[str] = None,
) -> None:
    notification = NotificationDB(
        user_id=user_id,
        type=type,
        title=title,
        message=message,
        related_id=related_id,
    )
    await uow.db.notifications.insert_one(notification.dict(by_alias=True, exclude={"id"}), **uow.opts)


@router.get("", response_model=SuccessResponse[List[NotificationResponse]])
async def list_notifications(
    unread_only: bool = Query(False),
    user: dict = Depends(get_current_user),
    db=Depends(get_database),
):
    query = {"user_id": user["sub"]}
    if unread_only:
        query["is_read"] = False
    docs = await db.notifications.find(query, sort=[("created_at", -1)]).to_list(length=None)
    return SuccessResponse(data=[NotificationResponse(**with_id(doc)) for doc in docs])


@router.put("/{notification_id}/read", response_model=SuccessResponse[NotificationResponse])
async def mark_read(notification_id: str, user: dict = Depends(get_current_user), db=Depends(get_database)):
    query = {"_id": str_to_oid(notification_id), "user_id": user["sub"]}
    result = await db.notifications.update_one(query, {"$set": {"is_read": True, "read_at": datetime.utcnow()}})
    if result.matched_count == 0:
        raise NotFoundException("Notification not found")
    doc = await db.notifications.find_one(query)
    return SuccessResponse(data=NotificationResponse(**with_id(doc)))
