"""Sign-on deep links, the targets of the printed QR codes.

Paths and query parameter names come from ``SIGN_ROUTES`` so they match the
URLs produced by ``build_sign_on_url``.
"""
from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status
from sqlalchemy.orm import Session

from siteportal.api.deps import get_db, optional_user, require_user_auth
from siteportal.models.site import Project
from siteportal.schemas.signon import (
    DocumentSignPage,
    DocumentSignResult,
    DocumentSummary,
    ProjectSignPage,
    ProjectSignResult,
    ProjectSummary,
    SignatureSubmission,
    SignOnStatusRead,
)
from siteportal.schemas.site import DocumentSignatureRead, SignOnRead
from siteportal.services.auth_dependencies import login_redirect
from siteportal.services.projects import projects
from siteportal.services.sign_links import SIGN_ROUTES, SignLinkKind
from siteportal.services.signon import (
    DOCUMENT_ACKNOWLEDGEMENT,
    PROJECT_ACKNOWLEDGEMENT,
    SignOnState,
    SignOnStatus,
    document_signatures,
    project_signons,
)

router = APIRouter(tags=["sign-on"])

_PROJECT = SIGN_ROUTES[SignLinkKind.project]
_DOCUMENT = SIGN_ROUTES[SignLinkKind.document]


def _required(value: str | None, param: str) -> str:
    if not value:
        raise HTTPException(status_code=400, detail=f"Missing '{param}' parameter")
    return value


def _status_read(status_: SignOnStatus) -> SignOnStatusRead:
    return SignOnStatusRead(**status_.as_dict())


def _signed(record) -> SignOnStatusRead:
    return _status_read(SignOnStatus(SignOnState.signed, record.signed_at, record.id))


# ------------------------------------------------------------------
# Project sign-on
# ------------------------------------------------------------------


@router.get(f"/{_PROJECT.path}", response_model=ProjectSignPage)
def project_sign_page(
    request: Request,
    project_id: str | None = Query(default=None, alias=_PROJECT.param),
    auth: dict | None = Depends(optional_user),
    db: Session = Depends(get_db),
):
    if auth is None:
        return login_redirect(request)
    project_id = _required(project_id, _PROJECT.param)
    state = project_signons.status(db, project_id, auth["person_id"])
    project: Project = projects.get_active(db, project_id)
    return ProjectSignPage(
        project=ProjectSummary(
            id=project.id,
            name=project.name,
            address=project.address,
            project_number=project.project_number,
            client_name=project.client.name if project.client else None,
        ),
        status=_status_read(state),
        acknowledgement=PROJECT_ACKNOWLEDGEMENT,
    )


@router.post(f"/{_PROJECT.path}", response_model=ProjectSignResult)
def project_sign(
    payload: SignatureSubmission,
    response: Response,
    project_id: str | None = Query(default=None, alias=_PROJECT.param),
    auth: dict = Depends(require_user_auth),
    db: Session = Depends(get_db),
):
    project_id = _required(project_id, _PROJECT.param)
    record, created = project_signons.sign_on(
        db, project_id, auth["person_id"], payload
    )
    response.status_code = status.HTTP_201_CREATED if created else status.HTTP_200_OK
    return ProjectSignResult(
        created=created,
        status=_signed(record),
        record=SignOnRead.model_validate(record),
    )


# ------------------------------------------------------------------
# Document signature
# ------------------------------------------------------------------


@router.get(f"/{_DOCUMENT.path}", response_model=DocumentSignPage)
def document_sign_page(
    request: Request,
    document_id: str | None = Query(default=None, alias=_DOCUMENT.param),
    auth: dict | None = Depends(optional_user),
    db: Session = Depends(get_db),
):
    if auth is None:
        return login_redirect(request)
    document_id = _required(document_id, _DOCUMENT.param)
    person_id = auth["person_id"]
    state = document_signatures.status(db, document_id, person_id)
    document = document_signatures.visible_document(db, document_id, person_id)
    project = document.project
    return DocumentSignPage(
        document=DocumentSummary(
            id=document.id,
            title=document.title,
            description=document.description,
            document_type=document.document_type.value,
            version=document.version,
            requires_signature=document.requires_signature,
            project_id=document.project_id,
            project_name=project.name if project else "",
        ),
        status=_status_read(state),
        acknowledgement=DOCUMENT_ACKNOWLEDGEMENT,
        can_sign=state.can_sign,
    )


@router.post(f"/{_DOCUMENT.path}", response_model=DocumentSignResult)
def document_sign(
    payload: SignatureSubmission,
    response: Response,
    document_id: str | None = Query(default=None, alias=_DOCUMENT.param),
    auth: dict = Depends(require_user_auth),
    db: Session = Depends(get_db),
):
    document_id = _required(document_id, _DOCUMENT.param)
    record, created = document_signatures.sign(
        db, document_id, auth["person_id"], payload
    )
    response.status_code = status.HTTP_201_CREATED if created else status.HTTP_200_OK
    return DocumentSignResult(
        created=created,
        status=_signed(record),
        record=DocumentSignatureRead.model_validate(record),
    )
