from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from siteportal.api.deps import get_db, require_staff
from siteportal.schemas.common import ListResponse
from siteportal.schemas.site import (
    AdminNotificationRead,
    MarkReadRequest,
    UnreadCountResponse,
)
from siteportal.services.notification import admin_notifications

router = APIRouter(prefix="/admin-notifications", tags=["admin-notifications"])


@router.get("/unread-count", response_model=UnreadCountResponse)
def unread_count(auth: dict = Depends(require_staff), db: Session = Depends(get_db)):
    return {"count": admin_notifications.unread_count(db, auth["person_id"])}


@router.get("", response_model=ListResponse[AdminNotificationRead])
def list_notifications(
    type: str | None = None,
    is_read: bool | None = None,
    order_by: str = Query(default="created_at"),
    order_dir: str = Query(default="desc", pattern="^(asc|desc)$"),
    limit: int = Query(default=25, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    auth: dict = Depends(require_staff),
    db: Session = Depends(get_db),
):
    return admin_notifications.list_response(
        db, auth["person_id"], type, is_read, order_by, order_dir, limit, offset
    )


@router.post("/mark-read")
def mark_read(
    payload: MarkReadRequest,
    auth: dict = Depends(require_staff),
    db: Session = Depends(get_db),
):
    count = admin_notifications.mark_read(
        db, auth["person_id"], [str(nid) for nid in payload.notification_ids]
    )
    return {"marked": count}


@router.post("/mark-all-read")
def mark_all_read(auth: dict = Depends(require_staff), db: Session = Depends(get_db)):
    return {"marked": admin_notifications.mark_all_read(db, auth["person_id"])}


@router.get("/{notification_id}", response_model=AdminNotificationRead)
def get_notification(
    notification_id: str,
    auth: dict = Depends(require_staff),
    db: Session = Depends(get_db),
):
    return admin_notifications.get(db, notification_id, auth["person_id"])
