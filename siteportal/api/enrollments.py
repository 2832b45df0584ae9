from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from siteportal.api.deps import get_db, require_staff
from siteportal.schemas.common import ListResponse
from siteportal.schemas.site import EnrollmentCreate, EnrollmentRead, EnrollmentStatusUpdate
from siteportal.services.enrollment import enrollments

router = APIRouter(prefix="/enrollments", tags=["enrollments"])


@router.post("", response_model=EnrollmentRead, status_code=status.HTTP_201_CREATED)
def create_enrollment(
    payload: EnrollmentCreate,
    auth: dict = Depends(require_staff),
    db: Session = Depends(get_db),
):
    return enrollments.create(db, payload, actor_id=auth["person_id"])


@router.get("/{enrollment_id}", response_model=EnrollmentRead)
def get_enrollment(enrollment_id: str, db: Session = Depends(get_db)):
    return enrollments.get(db, enrollment_id)


@router.get("", response_model=ListResponse[EnrollmentRead])
def list_enrollments(
    project_id: str | None = None,
    person_id: str | None = None,
    status_filter: str | None = Query(default=None, alias="status"),
    order_by: str = Query(default="enrolled_at"),
    order_dir: str = Query(default="desc", pattern="^(asc|desc)$"),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
):
    return enrollments.list_response(
        db, project_id, person_id, status_filter, order_by, order_dir, limit, offset
    )


@router.patch("/{enrollment_id}/status", response_model=EnrollmentRead)
def set_enrollment_status(
    enrollment_id: str,
    payload: EnrollmentStatusUpdate,
    auth: dict = Depends(require_staff),
    db: Session = Depends(get_db),
):
    return enrollments.set_status(
        db, enrollment_id, payload.status, actor_id=auth["person_id"]
    )


@router.delete("/{enrollment_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_enrollment(enrollment_id: str, db: Session = Depends(get_db)):
    enrollments.delete(db, enrollment_id)
