import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from siteportal.api.deps import attachment, get_db, require_staff
from siteportal.schemas.common import ListResponse
from siteportal.schemas.signon import SignLinkRead
from siteportal.schemas.site import ProjectCreate, ProjectRead, ProjectUpdate, SignOnRead
from siteportal.services import reports
from siteportal.services.projects import projects
from siteportal.services.sign_links import (
    SignLinkKind,
    download_name,
    qr_data_uri,
    render_qr_png,
    sign_link,
)
from siteportal.services.signon import project_signons

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/projects", tags=["projects"])


@router.post("", response_model=ProjectRead, status_code=status.HTTP_201_CREATED)
def create_project(
    payload: ProjectCreate,
    auth: dict = Depends(require_staff),
    db: Session = Depends(get_db),
):
    return projects.create(db, payload, actor_id=auth["person_id"])


@router.get("/{project_id}", response_model=ProjectRead)
def get_project(project_id: str, db: Session = Depends(get_db)):
    return projects.get(db, project_id)


@router.get("", response_model=ListResponse[ProjectRead])
def list_projects(
    client_id: str | None = None,
    is_active: bool | None = None,
    search: str | None = None,
    order_by: str = Query(default="created_at"),
    order_dir: str = Query(default="desc", pattern="^(asc|desc)$"),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
):
    return projects.list_response(
        db, client_id, is_active, search, order_by, order_dir, limit, offset
    )


@router.patch("/{project_id}", response_model=ProjectRead)
def update_project(
    project_id: str,
    payload: ProjectUpdate,
    auth: dict = Depends(require_staff),
    db: Session = Depends(get_db),
):
    return projects.update(db, project_id, payload, actor_id=auth["person_id"])


@router.delete("/{project_id}", status_code=status.HTTP_204_NO_CONTENT)
def deactivate_project(
    project_id: str,
    auth: dict = Depends(require_staff),
    db: Session = Depends(get_db),
):
    projects.deactivate(db, project_id, actor_id=auth["person_id"])


# ------------------------------------------------------------------
# Sign-on link, QR code and records
# ------------------------------------------------------------------


@router.get("/{project_id}/sign-link", response_model=SignLinkRead)
def get_sign_link(project_id: str, db: Session = Depends(get_db)):
    project = projects.get(db, project_id)
    link = sign_link(SignLinkKind.project, project.id)
    return SignLinkRead(
        kind=link.kind.value,
        entity_id=link.entity_id,
        url=link.url,
        qr_code=qr_data_uri(link.url),
        filename=download_name(link.kind, project.name),
    )


@router.get("/{project_id}/sign-link/qr.png")
def download_sign_link_qr(project_id: str, db: Session = Depends(get_db)):
    project = projects.get(db, project_id)
    link = sign_link(SignLinkKind.project, project.id)
    try:
        png = render_qr_png(link.url)
    except Exception as e:
        logger.exception("QR rendering failed for project %s: %s", project.id, e)
        raise HTTPException(status_code=500, detail="Failed to generate QR code")
    return attachment(png, "image/png", download_name(link.kind, project.name))


@router.get("/{project_id}/signons", response_model=list[SignOnRead])
def list_project_signons(project_id: str, db: Session = Depends(get_db)):
    return project_signons.list_for_project(db, project_id)


@router.get("/{project_id}/signon-report.pdf")
def project_signon_report(project_id: str, db: Session = Depends(get_db)):
    try:
        report = reports.generate_signon_report(db, SignLinkKind.project, project_id)
    except HTTPException:
        raise
    except Exception as e:
        logger.exception("Sign-on report failed for project %s: %s", project_id, e)
        raise HTTPException(status_code=500, detail="Failed to generate report")
    return attachment(report.content, report.media_type, report.filename)
