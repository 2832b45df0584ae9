from __future__ import annotations

import logging

from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.orm import Session

from siteportal.models.site import DocumentType, Project, SiteDocument
from siteportal.schemas.site import SiteDocumentCreate, SiteDocumentUpdate
from siteportal.services.common import apply_ordering, apply_pagination, coerce_uuid
from siteportal.services.event import EventType, publish_event
from siteportal.services.response import ListResponseMixin
from siteportal.services.storage import StorageNotConfigured, storage

logger = logging.getLogger(__name__)

_VALID_TYPES = {e.value for e in DocumentType}


def _document_type(value: str) -> DocumentType:
    if value not in _VALID_TYPES:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid document_type. Allowed: {sorted(_VALID_TYPES)}",
        )
    return DocumentType(value)


def _storage_unavailable(exc: StorageNotConfigured) -> HTTPException:
    logger.warning("File storage unavailable: %s", exc)
    return HTTPException(status_code=503, detail="File storage is not configured")


class SiteDocuments(ListResponseMixin):
    @staticmethod
    def create(
        db: Session, payload: SiteDocumentCreate, actor_id: str | None = None
    ) -> SiteDocument:
        if not db.get(Project, coerce_uuid(payload.project_id)):
            raise HTTPException(status_code=404, detail="Project not found")

        data = payload.model_dump()
        data["document_type"] = _document_type(data["document_type"])
        document = SiteDocument(**data)
        db.add(document)
        db.flush()
        db.refresh(document)
        logger.info("Created site document %s", document.id)
        publish_event(
            EventType.document_created,
            entity_type="site_document",
            entity_id=document.id,
            actor_id=actor_id,
            project_id=document.project_id,
        )
        return document

    @staticmethod
    def get(db: Session, document_id: str) -> SiteDocument:
        document = db.get(SiteDocument, coerce_uuid(document_id, "document id"))
        if not document:
            raise HTTPException(status_code=404, detail="Document not found")
        return document

    @staticmethod
    def get_active(db: Session, document_id: str) -> SiteDocument:
        document = db.get(SiteDocument, coerce_uuid(document_id, "document id"))
        if not document or not document.is_active:
            raise HTTPException(status_code=404, detail="Document not found")
        return document

    @staticmethod
    def list(
        db: Session,
        project_id: str | None,
        document_type: str | None,
        requires_signature: bool | None,
        is_active: bool | None,
        order_by: str,
        order_dir: str,
        limit: int,
        offset: int,
    ) -> list[SiteDocument]:
        stmt = select(SiteDocument)
        if project_id is not None:
            stmt = stmt.where(SiteDocument.project_id == coerce_uuid(project_id))
        if document_type is not None:
            stmt = stmt.where(
                SiteDocument.document_type == _document_type(document_type)
            )
        if requires_signature is not None:
            stmt = stmt.where(SiteDocument.requires_signature == requires_signature)
        if is_active is None:
            stmt = stmt.where(SiteDocument.is_active.is_(True))
        else:
            stmt = stmt.where(SiteDocument.is_active == is_active)
        stmt = apply_ordering(
            stmt,
            order_by,
            order_dir,
            {
                "created_at": SiteDocument.created_at,
                "title": SiteDocument.title,
                "updated_at": SiteDocument.updated_at,
            },
        )
        return db.scalars(apply_pagination(stmt, limit, offset)).all()

    @staticmethod
    def update(
        db: Session,
        document_id: str,
        payload: SiteDocumentUpdate,
        actor_id: str | None = None,
    ) -> SiteDocument:
        document = SiteDocuments.get(db, document_id)
        data = payload.model_dump(exclude_unset=True)
        if "document_type" in data:
            if data["document_type"] is None:
                raise HTTPException(status_code=400, detail="document_type is required")
            data["document_type"] = _document_type(data["document_type"])
        for key, value in data.items():
            setattr(document, key, value)
        db.flush()
        db.refresh(document)
        logger.info("Updated site document %s", document.id)
        publish_event(
            EventType.document_updated,
            entity_type="site_document",
            entity_id=document.id,
            actor_id=actor_id,
            project_id=document.project_id,
            payload={"fields": sorted(data)},
        )
        return document

    @staticmethod
    def deactivate(db: Session, document_id: str, actor_id: str | None = None) -> None:
        document = SiteDocuments.get(db, document_id)
        document.is_active = False
        db.flush()
        logger.info("Deactivated site document %s", document_id)
        publish_event(
            EventType.document_deactivated,
            entity_type="site_document",
            entity_id=document.id,
            actor_id=actor_id,
            project_id=document.project_id,
        )

    @staticmethod
    def prepare_upload(
        db: Session, document_id: str, file_name: str, mime_type: str
    ) -> tuple[str, str]:
        """Reserve a storage key for the document file and return an upload URL."""
        document = SiteDocuments.get(db, document_id)
        storage_key = storage.document_key(document.project_id, document.id, file_name)
        try:
            url = storage.upload_url(storage_key, mime_type)
        except StorageNotConfigured as exc:
            raise _storage_unavailable(exc) from exc
        document.file_url = storage_key
        db.flush()
        logger.info("Prepared upload for site document %s", document.id)
        return storage_key, url

    @staticmethod
    def download_url(db: Session, document_id: str) -> str:
        document = SiteDocuments.get(db, document_id)
        if not document.file_url:
            raise HTTPException(status_code=404, detail="Document has no file")
        try:
            # Key tail is "<nonce>-<file name>"
            file_name = document.file_url.rsplit("/", 1)[-1].split("-", 1)[-1]
            return storage.download_url(document.file_url, file_name)
        except StorageNotConfigured as exc:
            raise _storage_unavailable(exc) from exc


site_documents = SiteDocuments()
