import logging

from sqlalchemy.orm import Session

from siteportal.celery_app import celery_app

logger = logging.getLogger(__name__)

# event type -> (notification type, title)
_ADMIN_EVENTS = {
    "enrollment.created": ("new_enrollment", "New project enrollment"),
    "document.signed": ("document_signed", "Document signed"),
}


@celery_app.task(
    name="siteportal.tasks.notifications.dispatch_admin_notifications",
    ignore_result=True,
)
def dispatch_admin_notifications(
    event_type: str,
    entity_type: str,
    entity_id: str,
    actor_id: str | None = None,
    project_id: str | None = None,
    payload: dict | None = None,
) -> None:
    """Create an admin notification per admin/manager for notable events.

    Best effort: failures are logged and never reach the caller.
    """
    if event_type not in _ADMIN_EVENTS:
        return

    from siteportal.db import session_scope

    try:
        with session_scope() as db:
            _dispatch(db, event_type, entity_type, entity_id, actor_id, project_id, payload)
    except Exception as e:
        logger.exception(
            "Failed to dispatch admin notifications for %s: %s", event_type, e
        )


def _dispatch(
    db: Session,
    event_type: str,
    entity_type: str,
    entity_id: str,
    actor_id: str | None,
    project_id: str | None,
    payload: dict | None,
) -> int:
    from siteportal.models.person import Person
    from siteportal.models.site import AdminNotification, Project
    from siteportal.services.authorization import authorization
    from siteportal.services.common import coerce_uuid

    if event_type not in _ADMIN_EVENTS:
        return 0
    notification_type, title = _ADMIN_EVENTS[event_type]
    payload = payload or {}

    subject_person_id = payload.get("person_id") or actor_id
    actor = db.get(Person, coerce_uuid(subject_person_id)) if subject_person_id else None
    project = db.get(Project, coerce_uuid(project_id)) if project_id else None
    who = actor.full_name if actor else "Someone"
    where = project.name if project else "a project"
    if event_type == "enrollment.created":
        message = f"{who} enrolled in {where}"
    else:
        subject = payload.get("title") or entity_type
        message = f"{who} signed {subject} for {where}"

    created = 0
    for admin_id in authorization.staff_ids(db):
        if actor_id and str(admin_id) == str(actor_id):
            continue
        db.add(
            AdminNotification(
                person_id=admin_id,
                type=notification_type,
                title=title,
                message=message,
                related_id=str(entity_id),
            )
        )
        created += 1

    db.commit()
    logger.info(
        "Dispatched %d admin notifications for event %s on %s %s",
        created,
        event_type,
        entity_type,
        entity_id,
    )
    return created
