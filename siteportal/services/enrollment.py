"""Project enrollment: the auto-approving gate used by sign-on and admin management."""
import logging
import uuid
from datetime import datetime, timezone

from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from siteportal.metrics import ENROLLMENTS_TOTAL
from siteportal.models.person import Person
from siteportal.models.site import Asset, EnrollmentStatus, Project, ProjectEnrollment
from siteportal.schemas.site import EnrollmentCreate
from siteportal.services.common import apply_ordering, apply_pagination, coerce_uuid
from siteportal.services.event import EventType, publish_event
from siteportal.services.response import ListResponseMixin

logger = logging.getLogger(__name__)


def _status(value: str) -> EnrollmentStatus:
    try:
        return EnrollmentStatus(value)
    except ValueError as exc:
        allowed = [s.value for s in EnrollmentStatus]
        raise HTTPException(
            status_code=400, detail=f"Invalid status. Allowed: {allowed}"
        ) from exc


def _find(
    db: Session, project_id: uuid.UUID, person_id: uuid.UUID
) -> ProjectEnrollment | None:
    return db.scalar(
        select(ProjectEnrollment).where(
            ProjectEnrollment.project_id == project_id,
            ProjectEnrollment.person_id == person_id,
        )
    )


class Enrollments(ListResponseMixin):
    @staticmethod
    def ensure_enrolled(
        db: Session, project_id: str | uuid.UUID, person_id: str | uuid.UUID
    ) -> tuple[ProjectEnrollment, bool]:
        """Return the person's enrollment on the project, creating it approved.

        The second element is True only for the request that inserted the row.
        A concurrent duplicate insert loses on the unique constraint and gets
        the winner's row back.
        """
        project_uuid = coerce_uuid(project_id)
        person_uuid = coerce_uuid(person_id)

        enrollment = _find(db, project_uuid, person_uuid)
        if enrollment is not None:
            return enrollment, False

        enrollment = ProjectEnrollment(
            project_id=project_uuid,
            person_id=person_uuid,
            status=EnrollmentStatus.approved,
            approved_at=datetime.now(timezone.utc),
        )
        db.add(enrollment)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            logger.info(
                "Enrollment for project %s person %s already created concurrently",
                project_uuid,
                person_uuid,
            )
            existing = _find(db, project_uuid, person_uuid)
            if existing is None:
                raise
            return existing, False

        db.refresh(enrollment)
        logger.info("Auto-enrolled person %s on project %s", person_uuid, project_uuid)
        ENROLLMENTS_TOTAL.inc()
        publish_event(
            EventType.enrollment_created,
            entity_type="project_enrollment",
            entity_id=enrollment.id,
            actor_id=person_uuid,
            project_id=project_uuid,
            payload={"person_id": str(person_uuid), "source": "sign_on"},
        )
        return enrollment, True

    @staticmethod
    def get(db: Session, enrollment_id: str) -> ProjectEnrollment:
        enrollment = db.get(ProjectEnrollment, coerce_uuid(enrollment_id, "enrollment id"))
        if not enrollment:
            raise HTTPException(status_code=404, detail="Enrollment not found")
        return enrollment

    @staticmethod
    def list(
        db: Session,
        project_id: str | None,
        person_id: str | None,
        status: str | None,
        order_by: str,
        order_dir: str,
        limit: int,
        offset: int,
    ) -> list[ProjectEnrollment]:
        stmt = select(ProjectEnrollment)
        if project_id is not None:
            stmt = stmt.where(ProjectEnrollment.project_id == coerce_uuid(project_id))
        if person_id is not None:
            stmt = stmt.where(ProjectEnrollment.person_id == coerce_uuid(person_id))
        if status is not None:
            stmt = stmt.where(ProjectEnrollment.status == _status(status))
        stmt = apply_ordering(
            stmt,
            order_by,
            order_dir,
            {
                "enrolled_at": ProjectEnrollment.enrolled_at,
                "approved_at": ProjectEnrollment.approved_at,
            },
        )
        return db.scalars(apply_pagination(stmt, limit, offset)).all()

    @staticmethod
    def create(
        db: Session, payload: EnrollmentCreate, actor_id: str | None = None
    ) -> ProjectEnrollment:
        """Manual enrollment from the admin panel."""
        if not db.get(Project, payload.project_id):
            raise HTTPException(status_code=404, detail="Project not found")
        if not db.get(Person, payload.person_id):
            raise HTTPException(status_code=404, detail="Person not found")
        if payload.asset_id is not None and not db.get(Asset, payload.asset_id):
            raise HTTPException(status_code=404, detail="Asset not found")
        if _find(db, payload.project_id, payload.person_id) is not None:
            raise HTTPException(
                status_code=409, detail="Person is already enrolled on this project"
            )

        status = _status(payload.status)
        enrollment = ProjectEnrollment(
            project_id=payload.project_id,
            person_id=payload.person_id,
            status=status,
            asset_id=payload.asset_id,
        )
        if status is EnrollmentStatus.approved:
            enrollment.approved_at = datetime.now(timezone.utc)
            enrollment.approved_by = coerce_uuid(actor_id) if actor_id else None
        db.add(enrollment)
        try:
            db.flush()
        except IntegrityError as exc:
            db.rollback()
            raise HTTPException(
                status_code=409, detail="Person is already enrolled on this project"
            ) from exc
        db.refresh(enrollment)
        logger.info(
            "Enrolled person %s on project %s (%s)",
            enrollment.person_id,
            enrollment.project_id,
            status.value,
        )
        ENROLLMENTS_TOTAL.inc()
        publish_event(
            EventType.enrollment_created,
            entity_type="project_enrollment",
            entity_id=enrollment.id,
            actor_id=actor_id,
            project_id=enrollment.project_id,
            payload={"person_id": str(enrollment.person_id), "source": "admin"},
        )
        return enrollment

    @staticmethod
    def set_status(
        db: Session, enrollment_id: str, status: str, actor_id: str | None = None
    ) -> ProjectEnrollment:
        enrollment = Enrollments.get(db, enrollment_id)
        new_status = _status(status)
        previous = enrollment.status
        enrollment.status = new_status
        if new_status is EnrollmentStatus.approved:
            enrollment.approved_at = datetime.now(timezone.utc)
            enrollment.approved_by = coerce_uuid(actor_id) if actor_id else None
        else:
            enrollment.approved_at = None
            enrollment.approved_by = None
        db.flush()
        db.refresh(enrollment)
        logger.info(
            "Enrollment %s status %s -> %s",
            enrollment.id,
            previous.value,
            new_status.value,
        )
        publish_event(
            EventType.enrollment_status_changed,
            entity_type="project_enrollment",
            entity_id=enrollment.id,
            actor_id=actor_id,
            project_id=enrollment.project_id,
            payload={"from": previous.value, "to": new_status.value},
        )
        return enrollment

    @staticmethod
    def delete(db: Session, enrollment_id: str) -> None:
        enrollment = Enrollments.get(db, enrollment_id)
        db.delete(enrollment)
        db.flush()
        logger.info("Deleted enrollment %s", enrollment_id)


enrollments = Enrollments()
