import logging

from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from siteportal.models.person import Person
from siteportal.models.site import DocumentAssignment
from siteportal.schemas.site import AssignmentCreate
from siteportal.services.common import coerce_uuid
from siteportal.services.event import EventType, publish_event
from siteportal.services.site_documents import SiteDocuments

logger = logging.getLogger(__name__)


class Assignments:
    @staticmethod
    def assign(
        db: Session,
        document_id: str,
        payload: AssignmentCreate,
        actor_id: str | None = None,
    ) -> list[DocumentAssignment]:
        """Grant people access to a document.

        Existing assignments are updated in place with the new ``can_sign``.
        """
        document = SiteDocuments.get(db, document_id)
        person_ids = list(dict.fromkeys(payload.person_ids))
        known = set(db.scalars(select(Person.id).where(Person.id.in_(person_ids))).all())
        missing = [str(pid) for pid in person_ids if pid not in known]
        if missing:
            raise HTTPException(
                status_code=404, detail=f"Person not found: {', '.join(missing)}"
            )

        existing = {
            a.person_id: a
            for a in db.scalars(
                select(DocumentAssignment).where(
                    DocumentAssignment.document_id == document.id,
                    DocumentAssignment.person_id.in_(person_ids),
                )
            ).all()
        }
        result = []
        for person_id in person_ids:
            assignment = existing.get(person_id)
            if assignment is None:
                assignment = DocumentAssignment(
                    document_id=document.id,
                    person_id=person_id,
                    can_sign=payload.can_sign,
                    assigned_by=coerce_uuid(actor_id) if actor_id else None,
                )
                db.add(assignment)
            else:
                assignment.can_sign = payload.can_sign
            result.append(assignment)
        try:
            db.flush()
        except IntegrityError as exc:
            db.rollback()
            raise HTTPException(
                status_code=409, detail="Assignment changed concurrently, retry"
            ) from exc

        logger.info(
            "Assigned document %s to %d people", document.id, len(result)
        )
        publish_event(
            EventType.document_assigned,
            entity_type="site_document",
            entity_id=document.id,
            actor_id=actor_id,
            project_id=document.project_id,
            payload={
                "person_ids": [str(pid) for pid in person_ids],
                "can_sign": payload.can_sign,
            },
        )
        return result

    @staticmethod
    def list_for_document(db: Session, document_id: str) -> list[DocumentAssignment]:
        document = SiteDocuments.get(db, document_id)
        stmt = (
            select(DocumentAssignment)
            .where(DocumentAssignment.document_id == document.id)
            .order_by(DocumentAssignment.assigned_at)
        )
        return db.scalars(stmt).all()

    @staticmethod
    def revoke(db: Session, document_id: str, person_id: str) -> None:
        assignment = db.scalar(
            select(DocumentAssignment).where(
                DocumentAssignment.document_id == coerce_uuid(document_id),
                DocumentAssignment.person_id == coerce_uuid(person_id),
            )
        )
        if not assignment:
            raise HTTPException(status_code=404, detail="Assignment not found")
        db.delete(assignment)
        db.flush()
        logger.info("Revoked assignment of document %s from %s", document_id, person_id)


assignments = Assignments()
