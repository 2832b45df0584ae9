from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from siteportal.api.deps import get_db, require_user_auth
from siteportal.schemas.site import DocumentSignatureRead, MyDocumentRead, SignOnRead
from siteportal.services.signon import document_signatures, project_signons

router = APIRouter(prefix="/me", tags=["me"])


@router.get("/documents", response_model=list[MyDocumentRead])
def my_documents(
    pending_only: bool = False,
    auth: dict = Depends(require_user_auth),
    db: Session = Depends(get_db),
):
    items = document_signatures.my_documents(db, auth["person_id"])
    if pending_only:
        items = [item for item in items if item["can_sign"] and not item["signed"]]
    return items


@router.get("/signatures", response_model=list[DocumentSignatureRead])
def my_signatures(
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    auth: dict = Depends(require_user_auth),
    db: Session = Depends(get_db),
):
    return document_signatures.list_for_person(db, auth["person_id"], limit, offset)


@router.get("/signons", response_model=list[SignOnRead])
def my_signons(
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    auth: dict = Depends(require_user_auth),
    db: Session = Depends(get_db),
):
    return project_signons.list_for_person(db, auth["person_id"], limit, offset)
