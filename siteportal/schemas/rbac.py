from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel


class PersonRead(BaseModel):
    """Directory entry used when picking document assignees."""

    id: UUID
    full_name: str
    email: str
    phone: str | None = None
    is_active: bool
    roles: list[str] = []
    created_at: datetime | None = None
