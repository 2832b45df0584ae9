import logging

from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.orm import Session

from siteportal.models.site import Client, Project
from siteportal.schemas.site import ClientCreate, ClientUpdate
from siteportal.services.common import apply_ordering, apply_pagination, coerce_uuid
from siteportal.services.response import ListResponseMixin

logger = logging.getLogger(__name__)


class Clients(ListResponseMixin):
    @staticmethod
    def create(db: Session, payload: ClientCreate) -> Client:
        client = Client(**payload.model_dump())
        db.add(client)
        db.flush()
        db.refresh(client)
        logger.info("Created client %s", client.id)
        return client

    @staticmethod
    def get(db: Session, client_id: str) -> Client:
        client = db.get(Client, coerce_uuid(client_id))
        if not client:
            raise HTTPException(status_code=404, detail="Client not found")
        return client

    @staticmethod
    def list(
        db: Session,
        search: str | None,
        order_by: str,
        order_dir: str,
        limit: int,
        offset: int,
    ) -> list[Client]:
        stmt = select(Client)
        if search:
            stmt = stmt.where(Client.name.ilike(f"%{search}%"))
        stmt = apply_ordering(
            stmt,
            order_by,
            order_dir,
            {"name": Client.name, "created_at": Client.created_at},
        )
        return db.scalars(apply_pagination(stmt, limit, offset)).all()

    @staticmethod
    def update(db: Session, client_id: str, payload: ClientUpdate) -> Client:
        client = Clients.get(db, client_id)
        for key, value in payload.model_dump(exclude_unset=True).items():
            setattr(client, key, value)
        db.flush()
        db.refresh(client)
        logger.info("Updated client %s", client.id)
        return client

    @staticmethod
    def delete(db: Session, client_id: str) -> None:
        client = Clients.get(db, client_id)
        in_use = db.scalar(select(Project.id).where(Project.client_id == client.id))
        if in_use:
            raise HTTPException(
                status_code=409, detail="Client still has projects assigned"
            )
        db.delete(client)
        db.flush()
        logger.info("Deleted client %s", client_id)


clients = Clients()
