import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from siteportal.api.deps import attachment, get_db, require_staff, require_user_auth
from siteportal.config import settings
from siteportal.schemas.common import ListResponse
from siteportal.schemas.signon import SignLinkRead
from siteportal.schemas.site import (
    AssignmentCreate,
    AssignmentRead,
    DocumentSignatureRead,
    DownloadURLResponse,
    SiteDocumentCreate,
    SiteDocumentRead,
    SiteDocumentUpdate,
    UploadURLRequest,
    UploadURLResponse,
)
from siteportal.services import reports
from siteportal.services.assignments import assignments
from siteportal.services.authorization import authorization
from siteportal.services.sign_links import (
    SignLinkKind,
    download_name,
    qr_data_uri,
    render_qr_png,
    sign_link,
)
from siteportal.services.signon import document_signatures
from siteportal.services.site_documents import site_documents

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/site-documents", tags=["site-documents"])


# ------------------------------------------------------------------
# Document CRUD
# ------------------------------------------------------------------


@router.post("", response_model=SiteDocumentRead, status_code=status.HTTP_201_CREATED)
def create_document(
    payload: SiteDocumentCreate,
    auth: dict = Depends(require_staff),
    db: Session = Depends(get_db),
):
    return site_documents.create(db, payload, actor_id=auth["person_id"])


@router.get("/{document_id}", response_model=SiteDocumentRead)
def get_document(
    document_id: str,
    auth: dict = Depends(require_user_auth),
    db: Session = Depends(get_db),
):
    document = site_documents.get(db, document_id)
    if not authorization.can_view_document(db, document, auth["person_id"]):
        raise HTTPException(status_code=404, detail="Document not found")
    return document


@router.get("", response_model=ListResponse[SiteDocumentRead])
def list_documents(
    project_id: str | None = None,
    document_type: str | None = None,
    requires_signature: bool | None = None,
    is_active: bool | None = None,
    order_by: str = Query(default="created_at"),
    order_dir: str = Query(default="desc", pattern="^(asc|desc)$"),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    auth: dict = Depends(require_staff),
    db: Session = Depends(get_db),
):
    return site_documents.list_response(
        db,
        project_id,
        document_type,
        requires_signature,
        is_active,
        order_by,
        order_dir,
        limit,
        offset,
    )


@router.patch("/{document_id}", response_model=SiteDocumentRead)
def update_document(
    document_id: str,
    payload: SiteDocumentUpdate,
    auth: dict = Depends(require_staff),
    db: Session = Depends(get_db),
):
    return site_documents.update(db, document_id, payload, actor_id=auth["person_id"])


@router.delete("/{document_id}", status_code=status.HTTP_204_NO_CONTENT)
def deactivate_document(
    document_id: str,
    auth: dict = Depends(require_staff),
    db: Session = Depends(get_db),
):
    site_documents.deactivate(db, document_id, actor_id=auth["person_id"])


# ------------------------------------------------------------------
# File storage
# ------------------------------------------------------------------


@router.post("/{document_id}/upload-url", response_model=UploadURLResponse)
def get_upload_url(
    document_id: str,
    payload: UploadURLRequest,
    auth: dict = Depends(require_staff),
    db: Session = Depends(get_db),
):
    storage_key, url = site_documents.prepare_upload(
        db, document_id, payload.file_name, payload.mime_type
    )
    return UploadURLResponse(
        upload_url=url,
        storage_key=storage_key,
        expires_in=settings.s3_presigned_url_expiry,
    )


@router.get("/{document_id}/download-url", response_model=DownloadURLResponse)
def get_download_url(
    document_id: str,
    auth: dict = Depends(require_user_auth),
    db: Session = Depends(get_db),
):
    document = site_documents.get_active(db, document_id)
    if not authorization.can_view_document(db, document, auth["person_id"]):
        raise HTTPException(status_code=404, detail="Document not found")
    url = site_documents.download_url(db, document_id)
    return DownloadURLResponse(
        download_url=url, expires_in=settings.s3_presigned_url_expiry
    )


# ------------------------------------------------------------------
# Assignments
# ------------------------------------------------------------------


@router.post(
    "/{document_id}/assignments",
    response_model=list[AssignmentRead],
    status_code=status.HTTP_201_CREATED,
)
def assign_document(
    document_id: str,
    payload: AssignmentCreate,
    auth: dict = Depends(require_staff),
    db: Session = Depends(get_db),
):
    return assignments.assign(db, document_id, payload, actor_id=auth["person_id"])


@router.get("/{document_id}/assignments", response_model=list[AssignmentRead])
def list_assignments(
    document_id: str,
    auth: dict = Depends(require_staff),
    db: Session = Depends(get_db),
):
    return assignments.list_for_document(db, document_id)


@router.delete(
    "/{document_id}/assignments/{person_id}", status_code=status.HTTP_204_NO_CONTENT
)
def revoke_assignment(
    document_id: str,
    person_id: str,
    auth: dict = Depends(require_staff),
    db: Session = Depends(get_db),
):
    assignments.revoke(db, document_id, person_id)


# ------------------------------------------------------------------
# Sign-on link, signatures and reports
# ------------------------------------------------------------------


@router.get("/{document_id}/sign-link", response_model=SignLinkRead)
def get_sign_link(
    document_id: str,
    auth: dict = Depends(require_staff),
    db: Session = Depends(get_db),
):
    document = site_documents.get(db, document_id)
    link = sign_link(SignLinkKind.document, document.id)
    return SignLinkRead(
        kind=link.kind.value,
        entity_id=link.entity_id,
        url=link.url,
        qr_code=qr_data_uri(link.url),
        filename=download_name(link.kind, document.title),
    )


@router.get("/{document_id}/sign-link/qr.png")
def download_sign_link_qr(
    document_id: str,
    auth: dict = Depends(require_staff),
    db: Session = Depends(get_db),
):
    document = site_documents.get(db, document_id)
    link = sign_link(SignLinkKind.document, document.id)
    try:
        png = render_qr_png(link.url)
    except Exception as e:
        logger.exception("QR rendering failed for document %s: %s", document.id, e)
        raise HTTPException(status_code=500, detail="Failed to generate QR code")
    return attachment(png, "image/png", download_name(link.kind, document.title))


@router.get("/{document_id}/signatures", response_model=list[DocumentSignatureRead])
def list_signatures(
    document_id: str,
    auth: dict = Depends(require_staff),
    db: Session = Depends(get_db),
):
    return document_signatures.list_for_document(db, document_id)


def _render(generate, document_id: str):
    try:
        report = generate()
    except HTTPException:
        raise
    except Exception as e:
        logger.exception("Report generation failed for document %s: %s", document_id, e)
        raise HTTPException(status_code=500, detail="Failed to generate report")
    return attachment(report.content, report.media_type, report.filename)


@router.get("/{document_id}/signon-report.pdf")
def document_signon_report(
    document_id: str,
    auth: dict = Depends(require_staff),
    db: Session = Depends(get_db),
):
    return _render(
        lambda: reports.generate_signon_report(db, SignLinkKind.document, document_id),
        document_id,
    )


@router.get("/{document_id}/sign-sheet.pdf")
def document_sign_sheet(
    document_id: str,
    auth: dict = Depends(require_staff),
    db: Session = Depends(get_db),
):
    return _render(
        lambda: reports.generate_document_sign_sheet(db, document_id), document_id
    )
