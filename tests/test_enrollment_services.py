import uuid
from unittest.mock import patch

import pytest
from fastapi import HTTPException
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from siteportal.models.site import EnrollmentStatus, ProjectEnrollment
from siteportal.schemas.site import EnrollmentCreate
from siteportal.services.enrollment import Enrollments


def _enrollment_count(db_session, project, person):
    return db_session.scalar(
        select(func.count())
        .select_from(ProjectEnrollment)
        .where(
            ProjectEnrollment.project_id == project.id,
            ProjectEnrollment.person_id == person.id,
        )
    )


class TestEnsureEnrolled:
    def test_creates_approved_enrollment(self, db_session, project, person):
        enrollment, created = Enrollments.ensure_enrolled(db_session, project.id, person.id)
        assert created is True
        assert enrollment.status == EnrollmentStatus.approved
        assert enrollment.approved_at is not None
        assert _enrollment_count(db_session, project, person) == 1

    def test_existing_enrollment_is_returned(self, db_session, project, person):
        first, _ = Enrollments.ensure_enrolled(db_session, project.id, person.id)
        second, created = Enrollments.ensure_enrolled(
            db_session, str(project.id), str(person.id)
        )
        assert created is False
        assert second.id == first.id
        assert _enrollment_count(db_session, project, person) == 1

    def test_existing_pending_enrollment_is_left_alone(self, db_session, project, person):
        db_session.add(
            ProjectEnrollment(
                project_id=project.id,
                person_id=person.id,
                status=EnrollmentStatus.pending,
            )
        )
        db_session.commit()
        enrollment, created = Enrollments.ensure_enrolled(db_session, project.id, person.id)
        assert created is False
        assert enrollment.status == EnrollmentStatus.pending

    def test_publishes_event_only_on_first_enrollment(
        self, db_session, project, person, published_events
    ):
        Enrollments.ensure_enrolled(db_session, project.id, person.id)
        Enrollments.ensure_enrolled(db_session, project.id, person.id)
        events = [
            c.kwargs["event_type"]
            for c in published_events.call_args_list
            if c.kwargs["event_type"] == "enrollment.created"
        ]
        assert events == ["enrollment.created"]
        call = published_events.call_args_list[0]
        assert call.kwargs["project_id"] == str(project.id)
        assert call.kwargs["actor_id"] == str(person.id)

    def test_concurrent_duplicate_insert_returns_winner(self, db_session, project, person):
        # Another request inserts between our lookup and our insert
        winner = ProjectEnrollment(
            project_id=project.id,
            person_id=person.id,
            status=EnrollmentStatus.approved,
        )
        db_session.add(winner)
        db_session.commit()
        winner_id = winner.id

        with patch("siteportal.services.enrollment._find", side_effect=[None, winner]):
            enrollment, created = Enrollments.ensure_enrolled(
                db_session, project.id, person.id
            )
        assert created is False
        assert enrollment.id == winner_id
        assert _enrollment_count(db_session, project, person) == 1

    def test_integrity_error_without_winner_propagates(self, db_session, project, person):
        db_session.add(
            ProjectEnrollment(project_id=project.id, person_id=person.id)
        )
        db_session.commit()
        with patch("siteportal.services.enrollment._find", return_value=None):
            with pytest.raises(IntegrityError):
                Enrollments.ensure_enrolled(db_session, project.id, person.id)

    def test_publish_failure_does_not_fail_enrollment(
        self, db_session, project, person, published_events
    ):
        published_events.side_effect = RuntimeError("broker down")
        enrollment, created = Enrollments.ensure_enrolled(db_session, project.id, person.id)
        assert created is True
        assert enrollment.id is not None


class TestEnrollmentAdmin:
    def test_manual_create_defaults_to_pending(self, db_session, project, person, admin):
        enrollment = Enrollments.create(
            db_session,
            EnrollmentCreate(project_id=project.id, person_id=person.id),
            actor_id=str(admin.id),
        )
        assert enrollment.status == EnrollmentStatus.pending
        assert enrollment.approved_by is None

    def test_manual_create_approved_records_approver(
        self, db_session, project, person, admin
    ):
        enrollment = Enrollments.create(
            db_session,
            EnrollmentCreate(project_id=project.id, person_id=person.id, status="approved"),
            actor_id=str(admin.id),
        )
        assert enrollment.status == EnrollmentStatus.approved
        assert enrollment.approved_by == admin.id

    def test_manual_create_duplicate(self, db_session, project, person):
        payload = EnrollmentCreate(project_id=project.id, person_id=person.id)
        Enrollments.create(db_session, payload)
        with pytest.raises(HTTPException) as exc:
            Enrollments.create(db_session, payload)
        assert exc.value.status_code == 409

    def test_manual_create_unknown_project(self, db_session, person):
        with pytest.raises(HTTPException) as exc:
            Enrollments.create(
                db_session, EnrollmentCreate(project_id=uuid.uuid4(), person_id=person.id)
            )
        assert exc.value.status_code == 404

    def test_manual_create_invalid_status(self, db_session, project, person):
        with pytest.raises(HTTPException) as exc:
            Enrollments.create(
                db_session,
                EnrollmentCreate(project_id=project.id, person_id=person.id, status="maybe"),
            )
        assert exc.value.status_code == 400

    def test_set_status(self, db_session, project, person, admin, published_events):
        enrollment = Enrollments.create(
            db_session, EnrollmentCreate(project_id=project.id, person_id=person.id)
        )
        approved = Enrollments.set_status(
            db_session, str(enrollment.id), "approved", actor_id=str(admin.id)
        )
        assert approved.status == EnrollmentStatus.approved
        assert approved.approved_by == admin.id
        rejected = Enrollments.set_status(db_session, str(enrollment.id), "rejected")
        assert rejected.status == EnrollmentStatus.rejected
        assert rejected.approved_at is None
        types = [c.kwargs["event_type"] for c in published_events.call_args_list]
        assert types.count("enrollment.status_changed") == 2

    def test_list_filters(self, db_session, project, person, make_person):
        other = make_person("Sam Contractor", roles=("contractor",))
        Enrollments.create(
            db_session, EnrollmentCreate(project_id=project.id, person_id=person.id)
        )
        Enrollments.create(
            db_session,
            EnrollmentCreate(project_id=project.id, person_id=other.id, status="approved"),
        )
        approved = Enrollments.list(
            db_session, str(project.id), None, "approved", "enrolled_at", "desc", 50, 0
        )
        assert [e.person_id for e in approved] == [other.id]
        mine = Enrollments.list(
            db_session, None, str(person.id), None, "enrolled_at", "desc", 50, 0
        )
        assert len(mine) == 1

    def test_delete(self, db_session, project, person):
        enrollment, _ = Enrollments.ensure_enrolled(db_session, project.id, person.id)
        Enrollments.delete(db_session, str(enrollment.id))
        with pytest.raises(HTTPException) as exc:
            Enrollments.get(db_session, str(enrollment.id))
        assert exc.value.status_code == 404
