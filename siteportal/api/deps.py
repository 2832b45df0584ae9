from collections.abc import Generator

from sqlalchemy.orm import Session
from starlette.responses import Response

from siteportal.db import SessionLocal
from siteportal.services.auth_dependencies import (
    optional_user,
    require_role,
    require_staff,
    require_user_auth,
)

__all__ = [
    "attachment",
    "get_db",
    "optional_user",
    "require_role",
    "require_staff",
    "require_user_auth",
]


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def attachment(content: bytes, media_type: str, filename: str) -> Response:
    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
