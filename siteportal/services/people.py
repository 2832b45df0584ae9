import logging

from fastapi import HTTPException
from sqlalchemy import or_, select
from sqlalchemy.orm import Session, selectinload

from siteportal.models.person import Person
from siteportal.models.rbac import AppRole, PersonRole, Role
from siteportal.services.common import apply_ordering, apply_pagination, coerce_uuid
from siteportal.services.response import ListResponseMixin

logger = logging.getLogger(__name__)


def _with_roles(stmt):
    return stmt.options(selectinload(Person.roles).selectinload(PersonRole.role))


def _read(person: Person) -> dict:
    roles = sorted(
        link.role.name for link in person.roles if link.role and link.role.is_active
    )
    return {
        "id": person.id,
        "full_name": person.full_name,
        "email": person.email,
        "phone": person.phone,
        "is_active": person.is_active,
        "roles": roles,
        "created_at": person.created_at,
    }


class People(ListResponseMixin):
    """Read-only profile directory; profiles are managed by the identity provider."""

    @staticmethod
    def get(db: Session, person_id: str) -> dict:
        stmt = select(Person).where(Person.id == coerce_uuid(person_id, "person id"))
        person = db.scalar(_with_roles(stmt))
        if not person:
            raise HTTPException(status_code=404, detail="Person not found")
        return _read(person)

    @staticmethod
    def list(
        db: Session,
        search: str | None,
        role: str | None,
        is_active: bool | None,
        order_by: str,
        order_dir: str,
        limit: int,
        offset: int,
    ) -> list[dict]:
        stmt = select(Person)
        if search:
            pattern = f"%{search}%"
            stmt = stmt.where(
                or_(Person.full_name.ilike(pattern), Person.email.ilike(pattern))
            )
        if role:
            if role not in {r.value for r in AppRole}:
                raise HTTPException(status_code=400, detail=f"Invalid role: {role}")
            stmt = stmt.where(
                Person.id.in_(
                    select(PersonRole.person_id)
                    .join(Role, PersonRole.role_id == Role.id)
                    .where(Role.name == role, Role.is_active.is_(True))
                )
            )
        if is_active is not None:
            stmt = stmt.where(Person.is_active.is_(is_active))
        stmt = apply_ordering(
            stmt,
            order_by,
            order_dir,
            {
                "full_name": Person.full_name,
                "email": Person.email,
                "created_at": Person.created_at,
            },
        )
        stmt = _with_roles(apply_pagination(stmt, limit, offset))
        return [_read(person) for person in db.scalars(stmt).all()]


people = People()
