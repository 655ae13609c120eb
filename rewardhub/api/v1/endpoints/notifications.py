from fastapi import APIRouter, Depends
from rewardhub.api import deps
from rewardhub.core.exceptions import NotFound
from rewardhub.schemas.notification import NotificationSnapshot
from rewardhub.services.notifications import NotificationQueue

router = APIRouter()

@router.get("/me", response_model=NotificationSnapshot)
async def get_my_notifications(
	queue: NotificationQueue = Depends(deps.get_notifications)
):
	"""Текущее уведомление и очередь"""
	queue.poll()
	return queue.snapshot()

@router.post("/{notification_id}/dismiss", response_model=NotificationSnapshot)
async def dismiss_notification(
	notification_id: str,
	queue: NotificationQueue = Depends(deps.get_notifications)
):
	"""Скрыть уведомление (текущее или из очереди)"""
	if not queue.dismiss(notification_id):
		raise NotFound("Notification not found", details={"notification_id": notification_id})
	return queue.snapshot()
