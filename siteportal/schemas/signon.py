from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from siteportal.schemas.site import DocumentSignatureRead, SignOnRead


class CanvasRectIn(BaseModel):
    left: float = 0.0
    top: float = 0.0
    width: float = Field(gt=0)
    height: float = Field(gt=0)


class SignatureSubmission(BaseModel):
    """What the signature dialog posts.

    Either an exported PNG data URI or the raw pointer strokes (viewport
    coordinates plus the canvas element's bounding rect) may be sent.
    """

    acknowledged: bool = False
    signature_data: str | None = None
    strokes: list[list[tuple[float, float]]] | None = None
    rect: CanvasRectIn | None = None
    canvas_width: int | None = Field(default=None, ge=1, le=4000)
    canvas_height: int | None = Field(default=None, ge=1, le=4000)


class SignOnStatusRead(BaseModel):
    state: str
    signed_at: datetime | None = None
    record_id: UUID | None = None
    next_action: str | None = None


class ProjectSummary(BaseModel):
    id: UUID
    name: str
    address: str | None = None
    project_number: str | None = None
    client_name: str | None = None


class DocumentSummary(BaseModel):
    id: UUID
    title: str
    description: str | None = None
    document_type: str
    version: str | None = None
    requires_signature: bool
    project_id: UUID
    project_name: str


class ProjectSignPage(BaseModel):
    project: ProjectSummary
    status: SignOnStatusRead
    acknowledgement: str


class DocumentSignPage(BaseModel):
    document: DocumentSummary
    status: SignOnStatusRead
    acknowledgement: str
    can_sign: bool


class ProjectSignResult(BaseModel):
    created: bool
    status: SignOnStatusRead
    record: SignOnRead


class DocumentSignResult(BaseModel):
    created: bool
    status: SignOnStatusRead
    record: DocumentSignatureRead


class SignLinkRead(BaseModel):
    kind: str
    entity_id: str
    url: str
    qr_code: str | None = None
    filename: str
