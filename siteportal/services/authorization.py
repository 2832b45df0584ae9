"""Single authority for role and document-access decisions.

Route guards and services ask this module; nothing else queries roles.
"""
import logging
import uuid

from sqlalchemy import select
from sqlalchemy.orm import Session

from siteportal.models.rbac import STAFF_ROLES, PersonRole, Role
from siteportal.models.site import (
    DocumentAssignment,
    EnrollmentStatus,
    ProjectEnrollment,
    SiteDocument,
)
from siteportal.services.common import coerce_uuid

logger = logging.getLogger(__name__)


class Authorization:
    @staticmethod
    def roles_for(db: Session, person_id: str | uuid.UUID) -> set[str]:
        stmt = (
            select(Role.name)
            .join(PersonRole, PersonRole.role_id == Role.id)
            .where(PersonRole.person_id == coerce_uuid(person_id))
            .where(Role.is_active.is_(True))
        )
        return set(db.scalars(stmt).all())

    @staticmethod
    def has_any_role(
        db: Session, person_id: str | uuid.UUID, roles: set[str] | frozenset[str]
    ) -> bool:
        return bool(Authorization.roles_for(db, person_id) & set(roles))

    @staticmethod
    def is_staff(db: Session, person_id: str | uuid.UUID) -> bool:
        return Authorization.has_any_role(db, person_id, STAFF_ROLES)

    @staticmethod
    def staff_ids(db: Session) -> list[uuid.UUID]:
        stmt = (
            select(PersonRole.person_id)
            .join(Role, PersonRole.role_id == Role.id)
            .where(Role.name.in_(STAFF_ROLES))
            .where(Role.is_active.is_(True))
            .distinct()
        )
        return list(db.scalars(stmt).all())

    @staticmethod
    def assignment_for(
        db: Session, document_id: str | uuid.UUID, person_id: str | uuid.UUID
    ) -> DocumentAssignment | None:
        return db.scalar(
            select(DocumentAssignment).where(
                DocumentAssignment.document_id == coerce_uuid(document_id),
                DocumentAssignment.person_id == coerce_uuid(person_id),
            )
        )

    @staticmethod
    def can_view_document(
        db: Session, document: SiteDocument, person_id: str | uuid.UUID
    ) -> bool:
        if Authorization.is_staff(db, person_id):
            return True
        if Authorization.assignment_for(db, document.id, person_id):
            return True
        enrollment = db.scalar(
            select(ProjectEnrollment).where(
                ProjectEnrollment.project_id == document.project_id,
                ProjectEnrollment.person_id == coerce_uuid(person_id),
                ProjectEnrollment.status == EnrollmentStatus.approved,
            )
        )
        return enrollment is not None

    @staticmethod
    def can_sign_document(
        db: Session, document: SiteDocument, person_id: str | uuid.UUID
    ) -> bool:
        if Authorization.is_staff(db, person_id):
            return True
        assignment = Authorization.assignment_for(db, document.id, person_id)
        return bool(assignment and assignment.can_sign)


authorization = Authorization()
