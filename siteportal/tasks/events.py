import logging

from siteportal.celery_app import celery_app

logger = logging.getLogger(__name__)


@celery_app.task(name="siteportal.tasks.events.process_event", ignore_result=True)
def process_event(
    event_type: str,
    entity_type: str,
    entity_id: str,
    actor_id: str | None = None,
    project_id: str | None = None,
    payload: dict | None = None,
) -> None:
    """Central fan-out task for portal events."""
    event_data = {
        "event_type": event_type,
        "entity_type": entity_type,
        "entity_id": entity_id,
        "actor_id": actor_id,
        "project_id": project_id,
        "payload": payload or {},
    }
    logger.info("Processing event %s for %s/%s", event_type, entity_type, entity_id)

    _fanout_admin_notifications(event_data)


def _fanout_admin_notifications(event_data: dict) -> None:
    try:
        from siteportal.tasks.notifications import dispatch_admin_notifications

        dispatch_admin_notifications.delay(**event_data)
    except Exception as e:
        logger.exception("Failed to fan-out admin notifications: %s", e)
