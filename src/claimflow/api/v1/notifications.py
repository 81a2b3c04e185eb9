"""Notification inbox endpoints, always scoped to the caller."""

from beartype import beartype
from fastapi import APIRouter, Depends, Response

from ...models.notification import MarkAllReadResult, Notification, UnreadCount
from ...schemas.auth import CallerContext
from ...services.notification_service import NotificationService
from ..dependencies import get_caller, get_notification_service
from ..response_patterns import ErrorResponse, handle_result

router = APIRouter()


@router.get("/my")
@beartype
async def my_notifications(
    response: Response,
    caller: CallerContext = Depends(get_caller),
    service: NotificationService = Depends(get_notification_service),
) -> list[Notification] | ErrorResponse:
    """All of the caller's notifications, newest first."""
    return handle_result(await service.list_for_user(caller), response)


@router.get("/my/unread")
@beartype
async def my_unread_notifications(
    response: Response,
    caller: CallerContext = Depends(get_caller),
    service: NotificationService = Depends(get_notification_service),
) -> list[Notification] | ErrorResponse:
    return handle_result(await service.list_unread(caller), response)


@router.get("/my/unread/count")
@beartype
async def my_unread_count(
    response: Response,
    caller: CallerContext = Depends(get_caller),
    service: NotificationService = Depends(get_notification_service),
) -> UnreadCount | ErrorResponse:
    return handle_result(await service.unread_count(caller), response)


@router.put("/read-all")
@beartype
async def mark_all_notifications_read(
    response: Response,
    caller: CallerContext = Depends(get_caller),
    service: NotificationService = Depends(get_notification_service),
) -> MarkAllReadResult | ErrorResponse:
    return handle_result(await service.mark_all_read(caller), response)


@router.put("/{notification_id}/read")
@beartype
async def mark_notification_read(
    notification_id: int,
    response: Response,
    caller: CallerContext = Depends(get_caller),
    service: NotificationService = Depends(get_notification_service),
) -> Notification | ErrorResponse:
    return handle_result(await service.mark_read(caller, notification_id), response)
