"""Project sign-on and document signature flows.

Both follow the same shape: ``not_signed`` until a record exists for the key,
then ``signed``. A project sign-on is keyed by site-local calendar day, a
document signature by (document, person) for life. Writes are
insert-or-get: the unique constraint decides the winner of a race and the
loser is handed the existing row.
"""
import enum
import logging
import uuid
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo

from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from siteportal.config import settings
from siteportal.metrics import DOCUMENT_SIGNATURES_TOTAL, SIGNONS_TOTAL
from siteportal.models.site import (
    DocumentAssignment,
    DocumentSignature,
    Project,
    ProjectSignOn,
    SiteDocument,
)
from siteportal.schemas.signon import SignatureSubmission
from siteportal.services.authorization import authorization
from siteportal.services.common import apply_pagination, coerce_uuid
from siteportal.services.enrollment import Enrollments
from siteportal.services.event import EventType, publish_event
from siteportal.services.projects import Projects
from siteportal.services.signature_canvas import (
    CanvasRect,
    SignatureCanvas,
    SignatureTooLarge,
    image_has_ink,
    is_image_data_uri,
    load_signature_image,
)
from siteportal.services.site_documents import SiteDocuments

logger = logging.getLogger(__name__)

PROJECT_ACKNOWLEDGEMENT = (
    "I confirm that I am signing onto this project site. I acknowledge that I "
    "have read and understood all relevant safety documentation and will comply "
    "with all site safety requirements."
)
DOCUMENT_ACKNOWLEDGEMENT = (
    "I confirm that I have read and understood this document in its entirety. "
    "I acknowledge that my electronic signature below constitutes my legal "
    "signature and acceptance of the terms and conditions contained within."
)


class SignOnState(enum.Enum):
    not_signed = "not_signed"
    # In-flight submission; only the signature dialog holds this state.
    # The server answers not_signed or signed.
    signing = "signing"
    signed = "signed"



@dataclass(frozen=True)
class SignOnStatus:
    state: SignOnState
    signed_at: datetime | None = None
    record_id: uuid.UUID | None = None
    can_sign: bool = True

    @property
    def next_action(self) -> str | None:
        if self.state is SignOnState.not_signed and self.can_sign:
            return "sign"
        return None

    def as_dict(self) -> dict:
        return {
            "state": self.state.value,
            "signed_at": self.signed_at,
            "record_id": self.record_id,
            "next_action": self.next_action,
        }


def can_submit(acknowledged: bool, has_signature: bool) -> bool:
    """Submission is allowed only with both the acknowledgement and a signature."""
    return bool(acknowledged) and bool(has_signature)


def site_timezone() -> ZoneInfo:
    return ZoneInfo(settings.site_timezone)


def today_window(
    now: datetime | None = None, tz: ZoneInfo | None = None
) -> tuple[date, datetime, datetime]:
    """Site-local calendar day containing ``now`` and its bounds in UTC."""
    tz = tz or site_timezone()
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    local_day = now.astimezone(tz).date()
    start = datetime.combine(local_day, time.min, tzinfo=tz)
    end = datetime.combine(local_day + timedelta(days=1), time.min, tzinfo=tz)
    return local_day, start.astimezone(timezone.utc), end.astimezone(timezone.utc)


def extract_signature(submission: SignatureSubmission) -> str | None:
    """Return the PNG data URI to store, or None when nothing was drawn.

    A supplied data URI must decode to an image; a blank image counts as no
    signature. Raw strokes are replayed onto a canvas and exported.
    """
    if submission.signature_data:
        value = submission.signature_data
        if len(value) > settings.signature_max_bytes:
            raise HTTPException(status_code=413, detail="Signature image is too large")
        if not is_image_data_uri(value):
            raise HTTPException(
                status_code=400, detail="Signature must be an image data URI"
            )
        try:
            image = load_signature_image(value)
        except SignatureTooLarge as exc:
            raise HTTPException(
                status_code=413, detail="Signature image is too large"
            ) from exc
        except ValueError as exc:
            raise HTTPException(
                status_code=400, detail=f"Invalid signature image: {exc}"
            ) from exc
        return value if image_has_ink(image) else None

    if submission.strokes:
        rect = None
        if submission.rect is not None:
            rect = CanvasRect(**submission.rect.model_dump())
        canvas = SignatureCanvas.from_strokes(
            submission.strokes,
            rect=rect,
            width=submission.canvas_width,
            height=submission.canvas_height,
        )
        if canvas.has_content:
            return canvas.export()
    return None


def _gate(submission: SignatureSubmission, counter) -> str:
    signature = extract_signature(submission)
    if not can_submit(submission.acknowledged, signature is not None):
        counter.labels(outcome="rejected").inc()
        if not submission.acknowledged:
            detail = "Please confirm the acknowledgement before signing"
        else:
            detail = "Please provide your signature"
        raise HTTPException(status_code=400, detail=detail)
    return signature


def _storage_failure(db: Session, exc: SQLAlchemyError, counter) -> HTTPException:
    db.rollback()
    counter.labels(outcome="failed").inc()
    logger.exception("Sign on write failed: %s", exc)
    message = str(getattr(exc, "orig", None) or exc)
    return HTTPException(
        status_code=503, detail={"message": "Sign on failed", "details": message}
    )


# ---------------------------------------------------------------------------
# Project sign-on
# ---------------------------------------------------------------------------


def _find_signon(
    db: Session, project_id: uuid.UUID, person_id: uuid.UUID, day: date
) -> ProjectSignOn | None:
    return db.scalar(
        select(ProjectSignOn).where(
            ProjectSignOn.project_id == project_id,
            ProjectSignOn.person_id == person_id,
            ProjectSignOn.signon_date == day,
        )
    )


class ProjectSignOns:
    @staticmethod
    def status(
        db: Session, project_id: str, person_id: str, now: datetime | None = None
    ) -> SignOnStatus:
        project = Projects.get_active(db, project_id)
        local_day, _start, _end = today_window(now)
        record = _find_signon(db, project.id, coerce_uuid(person_id), local_day)
        if record is None:
            return SignOnStatus(SignOnState.not_signed)
        return SignOnStatus(SignOnState.signed, record.signed_at, record.id)

    @staticmethod
    def sign_on(
        db: Session,
        project_id: str,
        person_id: str,
        submission: SignatureSubmission,
        now: datetime | None = None,
    ) -> tuple[ProjectSignOn, bool]:
        project = Projects.get_active(db, project_id)
        person_uuid = coerce_uuid(person_id)
        signature = _gate(submission, SIGNONS_TOTAL)
        now = now or datetime.now(timezone.utc)
        local_day, _start, _end = today_window(now)

        try:
            Enrollments.ensure_enrolled(db, project.id, person_uuid)
            record = ProjectSignOn(
                project_id=project.id,
                person_id=person_uuid,
                signed_at=now,
                signon_date=local_day,
                signature_data=signature,
            )
            db.add(record)
            try:
                db.commit()
            except IntegrityError:
                db.rollback()
                existing = _find_signon(db, project.id, person_uuid, local_day)
                if existing is None:
                    raise
                logger.info(
                    "Person %s already signed on to project %s on %s",
                    person_uuid,
                    project.id,
                    local_day,
                )
                SIGNONS_TOTAL.labels(outcome="duplicate").inc()
                return existing, False
        except SQLAlchemyError as exc:
            raise _storage_failure(db, exc, SIGNONS_TOTAL) from exc

        db.refresh(record)
        logger.info(
            "Person %s signed on to project %s for %s", person_uuid, project.id, local_day
        )
        SIGNONS_TOTAL.labels(outcome="created").inc()
        publish_event(
            EventType.signon_recorded,
            entity_type="project_signon",
            entity_id=record.id,
            actor_id=person_uuid,
            project_id=project.id,
            payload={"signon_date": local_day.isoformat()},
        )
        return record, True

    @staticmethod
    def list_for_project(db: Session, project_id: str) -> list[ProjectSignOn]:
        """Every sign-on for the project, newest first."""
        project = Projects.get(db, project_id)
        stmt = (
            select(ProjectSignOn)
            .where(ProjectSignOn.project_id == project.id)
            .order_by(ProjectSignOn.signed_at.desc())
        )
        return db.scalars(stmt).all()

    @staticmethod
    def list_for_person(
        db: Session, person_id: str, limit: int = 50, offset: int = 0
    ) -> list[ProjectSignOn]:
        stmt = (
            select(ProjectSignOn)
            .where(ProjectSignOn.person_id == coerce_uuid(person_id))
            .order_by(ProjectSignOn.signed_at.desc())
        )
        return db.scalars(apply_pagination(stmt, limit, offset)).all()


# ---------------------------------------------------------------------------
# Document signatures
# ---------------------------------------------------------------------------


def _find_signature(
    db: Session, document_id: uuid.UUID, person_id: uuid.UUID
) -> DocumentSignature | None:
    return db.scalar(
        select(DocumentSignature).where(
            DocumentSignature.document_id == document_id,
            DocumentSignature.person_id == person_id,
        )
    )


class DocumentSignatures:
    @staticmethod
    def visible_document(db: Session, document_id: str, person_id: str) -> SiteDocument:
        """Active document the person may view; anything else is "not found"."""
        document = SiteDocuments.get_active(db, document_id)
        if not authorization.can_view_document(db, document, person_id):
            raise HTTPException(status_code=404, detail="Document not found")
        return document

    @staticmethod
    def status(db: Session, document_id: str, person_id: str) -> SignOnStatus:
        document = DocumentSignatures.visible_document(db, document_id, person_id)
        can_sign = document.requires_signature and authorization.can_sign_document(
            db, document, person_id
        )
        record = _find_signature(db, document.id, coerce_uuid(person_id))
        if record is None:
            return SignOnStatus(SignOnState.not_signed, can_sign=can_sign)
        return SignOnStatus(
            SignOnState.signed, record.signed_at, record.id, can_sign=can_sign
        )

    @staticmethod
    def sign(
        db: Session,
        document_id: str,
        person_id: str,
        submission: SignatureSubmission,
        now: datetime | None = None,
    ) -> tuple[DocumentSignature, bool]:
        document = SiteDocuments.get_active(db, document_id)
        person_uuid = coerce_uuid(person_id)
        if not authorization.can_sign_document(db, document, person_uuid):
            raise HTTPException(status_code=404, detail="Document not found")
        if not document.requires_signature:
            raise HTTPException(
                status_code=400, detail="This document does not require a signature"
            )
        signature = _gate(submission, DOCUMENT_SIGNATURES_TOTAL)
        now = now or datetime.now(timezone.utc)

        try:
            Enrollments.ensure_enrolled(db, document.project_id, person_uuid)
            record = DocumentSignature(
                document_id=document.id,
                person_id=person_uuid,
                signed_at=now,
                signature_data=signature,
            )
            db.add(record)
            try:
                db.commit()
            except IntegrityError:
                db.rollback()
                existing = _find_signature(db, document.id, person_uuid)
                if existing is None:
                    raise
                logger.info(
                    "Person %s already signed document %s", person_uuid, document.id
                )
                DOCUMENT_SIGNATURES_TOTAL.labels(outcome="duplicate").inc()
                return existing, False
        except SQLAlchemyError as exc:
            raise _storage_failure(db, exc, DOCUMENT_SIGNATURES_TOTAL) from exc

        db.refresh(record)
        logger.info("Person %s signed document %s", person_uuid, document.id)
        DOCUMENT_SIGNATURES_TOTAL.labels(outcome="created").inc()
        publish_event(
            EventType.document_signed,
            entity_type="site_document",
            entity_id=document.id,
            actor_id=person_uuid,
            project_id=document.project_id,
            payload={"title": document.title, "signature_id": str(record.id)},
        )
        return record, True

    @staticmethod
    def list_for_document(db: Session, document_id: str) -> list[DocumentSignature]:
        """Every signature on the document, oldest first."""
        document = SiteDocuments.get(db, document_id)
        stmt = (
            select(DocumentSignature)
            .where(DocumentSignature.document_id == document.id)
            .order_by(DocumentSignature.signed_at.asc())
        )
        return db.scalars(stmt).all()

    @staticmethod
    def list_for_person(
        db: Session, person_id: str, limit: int = 50, offset: int = 0
    ) -> list[DocumentSignature]:
        stmt = (
            select(DocumentSignature)
            .where(DocumentSignature.person_id == coerce_uuid(person_id))
            .order_by(DocumentSignature.signed_at.desc())
        )
        return db.scalars(apply_pagination(stmt, limit, offset)).all()

    @staticmethod
    def my_documents(db: Session, person_id: str) -> list[dict]:
        """Active documents assigned to the person with their signed state."""
        person_uuid = coerce_uuid(person_id)
        rows = db.execute(
            select(DocumentAssignment, SiteDocument, Project.name)
            .join(SiteDocument, DocumentAssignment.document_id == SiteDocument.id)
            .join(Project, SiteDocument.project_id == Project.id)
            .where(DocumentAssignment.person_id == person_uuid)
            .where(SiteDocument.is_active.is_(True))
            .order_by(SiteDocument.created_at.desc())
        ).all()
        document_ids = [document.id for _assignment, document, _name in rows]
        signed = {}
        if document_ids:
            signed = {
                sig.document_id: sig.signed_at
                for sig in db.scalars(
                    select(DocumentSignature).where(
                        DocumentSignature.person_id == person_uuid,
                        DocumentSignature.document_id.in_(document_ids),
                    )
                ).all()
            }
        return [
            {
                "document": document,
                "project_name": project_name,
                "can_sign": assignment.can_sign,
                "signed": document.id in signed,
                "signed_at": signed.get(document.id),
            }
            for assignment, document, project_name in rows
        ]


project_signons = ProjectSignOns()
document_signatures = DocumentSignatures()
