from __future__ import annotations

from datetime import date, datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from siteportal.models.site import DocumentType, EnrollmentStatus


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------


class ClientBase(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    contact_person: str | None = Field(default=None, max_length=160)
    contact_email: str | None = Field(default=None, max_length=255)
    contact_phone: str | None = Field(default=None, max_length=40)
    address: str | None = None


class ClientCreate(ClientBase):
    pass


class ClientUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    contact_person: str | None = Field(default=None, max_length=160)
    contact_email: str | None = Field(default=None, max_length=255)
    contact_phone: str | None = Field(default=None, max_length=40)
    address: str | None = None


class ClientRead(ClientBase):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    created_at: datetime
    updated_at: datetime


# ---------------------------------------------------------------------------
# Project
# ---------------------------------------------------------------------------


class ProjectBase(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    address: str | None = None
    client_id: UUID | None = None
    project_number: str | None = Field(default=None, max_length=80)
    is_active: bool = True


class ProjectCreate(ProjectBase):
    pass


class ProjectUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    address: str | None = None
    client_id: UUID | None = None
    project_number: str | None = Field(default=None, max_length=80)
    is_active: bool | None = None


class ProjectRead(ProjectBase):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    created_at: datetime
    updated_at: datetime


# ---------------------------------------------------------------------------
# Site document
# ---------------------------------------------------------------------------


class SiteDocumentBase(BaseModel):
    project_id: UUID
    document_type: str = DocumentType.other.value
    title: str = Field(min_length=1, max_length=500)
    description: str | None = None
    file_url: str | None = Field(default=None, max_length=1024)
    requires_signature: bool = True
    version: str | None = Field(default=None, max_length=40)
    is_active: bool = True


class SiteDocumentCreate(SiteDocumentBase):
    pass


class SiteDocumentUpdate(BaseModel):
    document_type: str | None = None
    title: str | None = Field(default=None, min_length=1, max_length=500)
    description: str | None = None
    file_url: str | None = Field(default=None, max_length=1024)
    requires_signature: bool | None = None
    version: str | None = Field(default=None, max_length=40)
    is_active: bool | None = None


class SiteDocumentRead(SiteDocumentBase):
    model_config = ConfigDict(from_attributes=True)

    document_type: DocumentType
    id: UUID
    created_at: datetime
    updated_at: datetime


class UploadURLRequest(BaseModel):
    file_name: str = Field(min_length=1, max_length=255)
    mime_type: str = Field(default="application/pdf", min_length=1, max_length=255)


class UploadURLResponse(BaseModel):
    upload_url: str
    storage_key: str
    expires_in: int


class DownloadURLResponse(BaseModel):
    download_url: str
    expires_in: int


# ---------------------------------------------------------------------------
# Assignment
# ---------------------------------------------------------------------------


class AssignmentCreate(BaseModel):
    person_ids: list[UUID] = Field(min_length=1)
    can_sign: bool = True


class AssignmentRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    document_id: UUID
    person_id: UUID
    can_sign: bool
    assigned_by: UUID | None = None
    assigned_at: datetime


# ---------------------------------------------------------------------------
# Enrollment
# ---------------------------------------------------------------------------


class EnrollmentCreate(BaseModel):
    project_id: UUID
    person_id: UUID
    status: str = EnrollmentStatus.pending.value
    asset_id: UUID | None = None


class EnrollmentStatusUpdate(BaseModel):
    status: str


class EnrollmentRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    project_id: UUID
    person_id: UUID
    status: EnrollmentStatus
    asset_id: UUID | None = None
    enrolled_at: datetime
    approved_at: datetime | None = None
    approved_by: UUID | None = None


# ---------------------------------------------------------------------------
# Sign-on records
# ---------------------------------------------------------------------------


class SignOnRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    project_id: UUID
    person_id: UUID
    signed_at: datetime
    signon_date: date


class DocumentSignatureRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    document_id: UUID
    person_id: UUID
    signed_at: datetime


class MyDocumentRead(BaseModel):
    document: SiteDocumentRead
    project_name: str
    can_sign: bool
    signed: bool
    signed_at: datetime | None = None


# ---------------------------------------------------------------------------
# Admin notifications
# ---------------------------------------------------------------------------


class AdminNotificationRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    person_id: UUID
    type: str
    title: str
    message: str | None = None
    related_id: str | None = None
    is_read: bool
    read_at: datetime | None = None
    created_at: datetime


class MarkReadRequest(BaseModel):
    notification_ids: list[UUID]


class UnreadCountResponse(BaseModel):
    count: int
