import uuid
from unittest.mock import MagicMock, patch

from siteportal.services.event import EventType, publish_event


class TestEventType:
    def test_all_event_types_have_dotted_values(self) -> None:
        for et in EventType:
            assert "." in et.value, f"{et.name} value should contain a dot"

    def test_event_type_count(self) -> None:
        assert len(EventType) == 11

    def test_signing_events(self) -> None:
        assert EventType.signon_recorded.value == "signon.recorded"
        assert EventType.document_signed.value == "document.signed"

    def test_enrollment_events(self) -> None:
        assert EventType.enrollment_created.value == "enrollment.created"
        assert EventType.enrollment_status_changed.value == "enrollment.status_changed"

    def test_document_events(self) -> None:
        assert EventType.document_created.value == "document.created"
        assert EventType.document_assigned.value == "document.assigned"
        assert EventType.document_deactivated.value == "document.deactivated"


class TestPublishEvent:
    def test_publish_event_calls_delay(self, published_events: MagicMock) -> None:
        entity_id = uuid.uuid4()
        actor_id = uuid.uuid4()
        project_id = uuid.uuid4()
        publish_event(
            EventType.signon_recorded,
            entity_type="project_signon",
            entity_id=entity_id,
            actor_id=actor_id,
            project_id=project_id,
            payload={"signon_date": "2026-07-01"},
        )
        published_events.assert_called_once_with(
            event_type="signon.recorded",
            entity_type="project_signon",
            entity_id=str(entity_id),
            actor_id=str(actor_id),
            project_id=str(project_id),
            payload={"signon_date": "2026-07-01"},
        )

    def test_publish_event_none_actor_and_project(
        self, published_events: MagicMock
    ) -> None:
        entity_id = uuid.uuid4()
        publish_event(EventType.document_created, entity_type="site_document", entity_id=entity_id)
        published_events.assert_called_once_with(
            event_type="document.created",
            entity_type="site_document",
            entity_id=str(entity_id),
            actor_id=None,
            project_id=None,
            payload={},
        )

    def test_publish_event_never_raises(self, published_events: MagicMock) -> None:
        published_events.side_effect = RuntimeError("down")
        publish_event(
            EventType.document_signed,
            entity_type="site_document",
            entity_id=uuid.uuid4(),
        )
        # Should not raise


class TestProcessEventTask:
    @patch("siteportal.tasks.notifications.dispatch_admin_notifications.delay")
    def test_process_event_fans_out(self, mock_notif_delay: MagicMock) -> None:
        from siteportal.tasks.events import process_event

        process_event(
            event_type="document.signed",
            entity_type="site_document",
            entity_id="abc",
            actor_id="actor1",
            project_id="project1",
            payload={"title": "SWMS"},
        )
        mock_notif_delay.assert_called_once_with(
            event_type="document.signed",
            entity_type="site_document",
            entity_id="abc",
            actor_id="actor1",
            project_id="project1",
            payload={"title": "SWMS"},
        )

    @patch(
        "siteportal.tasks.notifications.dispatch_admin_notifications.delay",
        side_effect=RuntimeError("fail"),
    )
    def test_fanout_failure_does_not_raise(self, mock_notif_delay: MagicMock) -> None:
        from siteportal.tasks.events import process_event

        process_event(
            event_type="enrollment.created",
            entity_type="project_enrollment",
            entity_id="abc",
        )
        mock_notif_delay.assert_called_once()
