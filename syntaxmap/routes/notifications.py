from typing import Optional

from fastapi import APIRouter, Depends, Query

from syntaxmap.auth import Principal, require_user
from syntaxmap.notifications import NotificationService
from syntaxmap.routes.deps import get_notification_service

router = APIRouter(prefix="/notifications", tags=["Notifications"])


@router.get("")
def list_notifications(
    is_read: Optional[bool] = None,
    type: Optional[str] = None,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    principal: Principal = Depends(require_user),
    service: NotificationService = Depends(get_notification_service),
):
    notifications = service.list_for_user(principal.user_id, is_read, type, limit, offset)
    return {"success": True, "count": len(notifications), "notifications": notifications}


# declared before /{notification_id}/read so "read-all" is not taken for an id
@router.patch("/read-all")
def mark_all_read(principal: Principal = Depends(require_user),
                  service: NotificationService = Depends(get_notification_service)):
    return service.mark_all_as_read(principal.user_id)


@router.patch("/{notification_id}/read")
def mark_read(notification_id: str, principal: Principal = Depends(require_user),
              service: NotificationService = Depends(get_notification_service)):
    return {"success": True, "notification": service.mark_as_read(notification_id, principal.user_id)}


@router.delete("/{notification_id}")
def delete_notification(notification_id: str, principal: Principal = Depends(require_user),
                        service: NotificationService = Depends(get_notification_service)):
    return service.delete(notification_id, principal.user_id)
