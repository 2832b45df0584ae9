from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import List

from fastapi import HTTPException
from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from siteportal.models.site import AdminNotification
from siteportal.services.common import apply_ordering, apply_pagination, coerce_uuid
from siteportal.services.response import ListResponseMixin

logger = logging.getLogger(__name__)


class AdminNotifications(ListResponseMixin):
    @staticmethod
    def get(db: Session, notification_id: str, person_id: str) -> AdminNotification:
        notification = db.get(AdminNotification, coerce_uuid(notification_id))
        if not notification or notification.person_id != coerce_uuid(person_id):
            raise HTTPException(status_code=404, detail="Notification not found")
        return notification

    @staticmethod
    def list(
        db: Session,
        person_id: str,
        type: str | None,
        is_read: bool | None,
        order_by: str,
        order_dir: str,
        limit: int,
        offset: int,
    ) -> List[AdminNotification]:
        stmt = select(AdminNotification).where(
            AdminNotification.person_id == coerce_uuid(person_id)
        )
        if type is not None:
            stmt = stmt.where(AdminNotification.type == type)
        if is_read is not None:
            stmt = stmt.where(AdminNotification.is_read == is_read)
        stmt = apply_ordering(
            stmt, order_by, order_dir, {"created_at": AdminNotification.created_at}
        )
        return db.scalars(apply_pagination(stmt, limit, offset)).all()

    @staticmethod
    def mark_read(db: Session, person_id: str, notification_ids: List[str]) -> int:
        now = datetime.now(timezone.utc)
        owner = coerce_uuid(person_id)
        count = 0
        for nid in notification_ids:
            notification = db.get(AdminNotification, coerce_uuid(nid))
            if notification and notification.person_id == owner and not notification.is_read:
                notification.is_read = True
                notification.read_at = now
                count += 1
        db.commit()
        logger.info("Marked %d admin notifications as read", count)
        return count

    @staticmethod
    def mark_all_read(db: Session, person_id: str) -> int:
        result = db.execute(
            update(AdminNotification)
            .where(
                AdminNotification.person_id == coerce_uuid(person_id),
                AdminNotification.is_read.is_(False),
            )
            .values(is_read=True, read_at=datetime.now(timezone.utc))
        )
        db.commit()
        logger.info(
            "Marked all %d admin notifications as read for person %s",
            result.rowcount,
            person_id,
        )
        return result.rowcount

    @staticmethod
    def unread_count(db: Session, person_id: str) -> int:
        return db.scalar(
            select(func.count())
            .select_from(AdminNotification)
            .where(
                AdminNotification.person_id == coerce_uuid(person_id),
                AdminNotification.is_read.is_(False),
            )
        )


admin_notifications = AdminNotifications()
