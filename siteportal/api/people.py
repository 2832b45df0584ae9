from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from siteportal.api.deps import get_db
from siteportal.schemas.common import ListResponse
from siteportal.schemas.rbac import PersonRead
from siteportal.services.people import people

router = APIRouter(prefix="/people", tags=["people"])


@router.get("/{person_id}", response_model=PersonRead)
def get_person(person_id: str, db: Session = Depends(get_db)):
    return people.get(db, person_id)


@router.get("", response_model=ListResponse[PersonRead])
def list_people(
    search: str | None = None,
    role: str | None = None,
    is_active: bool | None = None,
    order_by: str = Query(default="full_name"),
    order_dir: str = Query(default="asc", pattern="^(asc|desc)$"),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
):
    return people.list_response(
        db, search, role, is_active, order_by, order_dir, limit, offset
    )
