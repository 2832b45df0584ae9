import enum
import logging
import uuid

logger = logging.getLogger(__name__)


class EventType(enum.Enum):
    project_created = "project.created"
    project_updated = "project.updated"
    project_deactivated = "project.deactivated"

    document_created = "document.created"
    document_updated = "document.updated"
    document_deactivated = "document.deactivated"
    document_assigned = "document.assigned"
    document_signed = "document.signed"

    enrollment_created = "enrollment.created"
    enrollment_status_changed = "enrollment.status_changed"

    signon_recorded = "signon.recorded"


def publish_event(
    event_type: EventType,
    entity_type: str,
    entity_id: str | uuid.UUID,
    actor_id: str | uuid.UUID | None = None,
    project_id: str | uuid.UUID | None = None,
    payload: dict | None = None,
) -> None:
    """Fire-and-forget event publishing.

    Queues a Celery task for fan-out to admin notifications.
    Never raises; failures are logged.
    """
    try:
        from siteportal.tasks.events import process_event

        process_event.delay(
            event_type=event_type.value,
            entity_type=entity_type,
            entity_id=str(entity_id),
            actor_id=str(actor_id) if actor_id else None,
            project_id=str(project_id) if project_id else None,
            payload=payload or {},
        )
        logger.debug(
            "Published event %s for %s/%s", event_type.value, entity_type, entity_id
        )
    except Exception as e:
        logger.exception("Failed to publish event %s: %s", event_type.value, e)
