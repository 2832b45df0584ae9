import logging

from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.orm import Session

from siteportal.models.site import Client, Project
from siteportal.schemas.site import ProjectCreate, ProjectUpdate
from siteportal.services.common import apply_ordering, apply_pagination, coerce_uuid
from siteportal.services.event import EventType, publish_event
from siteportal.services.response import ListResponseMixin

logger = logging.getLogger(__name__)


def _check_client(db: Session, client_id) -> None:
    if client_id is not None and not db.get(Client, coerce_uuid(client_id)):
        raise HTTPException(status_code=404, detail="Client not found")


class Projects(ListResponseMixin):
    @staticmethod
    def create(db: Session, payload: ProjectCreate, actor_id: str | None = None) -> Project:
        _check_client(db, payload.client_id)
        project = Project(**payload.model_dump())
        db.add(project)
        db.flush()
        db.refresh(project)
        logger.info("Created project %s", project.id)
        publish_event(
            EventType.project_created,
            entity_type="project",
            entity_id=project.id,
            actor_id=actor_id,
            project_id=project.id,
        )
        return project

    @staticmethod
    def get(db: Session, project_id: str) -> Project:
        project = db.get(Project, coerce_uuid(project_id, "project id"))
        if not project:
            raise HTTPException(status_code=404, detail="Project not found")
        return project

    @staticmethod
    def get_active(db: Session, project_id: str) -> Project:
        """Projects that are inactive are reported as missing."""
        project = db.get(Project, coerce_uuid(project_id, "project id"))
        if not project or not project.is_active:
            raise HTTPException(status_code=404, detail="Project not found")
        return project

    @staticmethod
    def list(
        db: Session,
        client_id: str | None,
        is_active: bool | None,
        search: str | None,
        order_by: str,
        order_dir: str,
        limit: int,
        offset: int,
    ) -> list[Project]:
        stmt = select(Project)
        if client_id is not None:
            stmt = stmt.where(Project.client_id == coerce_uuid(client_id))
        if is_active is None:
            stmt = stmt.where(Project.is_active.is_(True))
        else:
            stmt = stmt.where(Project.is_active == is_active)
        if search:
            stmt = stmt.where(Project.name.ilike(f"%{search}%"))
        stmt = apply_ordering(
            stmt,
            order_by,
            order_dir,
            {
                "created_at": Project.created_at,
                "name": Project.name,
                "project_number": Project.project_number,
            },
        )
        return db.scalars(apply_pagination(stmt, limit, offset)).all()

    @staticmethod
    def update(
        db: Session, project_id: str, payload: ProjectUpdate, actor_id: str | None = None
    ) -> Project:
        project = Projects.get(db, project_id)
        data = payload.model_dump(exclude_unset=True)
        if "client_id" in data:
            _check_client(db, data["client_id"])
        for key, value in data.items():
            setattr(project, key, value)
        db.flush()
        db.refresh(project)
        logger.info("Updated project %s", project.id)
        publish_event(
            EventType.project_updated,
            entity_type="project",
            entity_id=project.id,
            actor_id=actor_id,
            project_id=project.id,
            payload={"fields": sorted(data)},
        )
        return project

    @staticmethod
    def deactivate(db: Session, project_id: str, actor_id: str | None = None) -> None:
        project = Projects.get(db, project_id)
        project.is_active = False
        db.flush()
        logger.info("Deactivated project %s", project_id)
        publish_event(
            EventType.project_deactivated,
            entity_type="project",
            entity_id=project.id,
            actor_id=actor_id,
            project_id=project.id,
        )


projects = Projects()
