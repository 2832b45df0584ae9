from urllib.parse import urlencode

from fastapi import Depends, HTTPException, Request
from fastapi.responses import RedirectResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from siteportal.config import settings
from siteportal.db import SessionLocal
from siteportal.models.person import Person
from siteportal.models.rbac import STAFF_ROLES
from siteportal.services.auth import auth_service
from siteportal.services.authorization import authorization
from siteportal.services.common import coerce_uuid

_bearer = HTTPBearer(auto_error=False)


def _get_auth_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def _resolve_session(db: Session, token: str) -> dict:
    payload = auth_service.decode_token(token)
    try:
        person_id = coerce_uuid(payload["sub"])
    except HTTPException:
        raise HTTPException(status_code=401, detail="Invalid session token")
    person = db.get(Person, person_id)
    if not person or not person.is_active:
        raise HTTPException(status_code=401, detail="Unknown or inactive user")
    return {
        "person_id": str(person.id),
        "roles": sorted(authorization.roles_for(db, person.id)),
    }


def optional_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer),
    db: Session = Depends(_get_auth_db),
) -> dict | None:
    if credentials is None:
        return None
    try:
        return _resolve_session(db, credentials.credentials)
    except HTTPException as exc:
        if exc.status_code == 401:
            return None
        raise


def require_user_auth(
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer),
    db: Session = Depends(_get_auth_db),
) -> dict:
    if credentials is None:
        raise HTTPException(
            status_code=401,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return _resolve_session(db, credentials.credentials)


def require_role(*roles: str):
    allowed = set(roles)

    def dependency(auth: dict = Depends(require_user_auth)) -> dict:
        if not allowed & set(auth["roles"]):
            raise HTTPException(status_code=403, detail="Insufficient permissions")
        return auth

    return dependency


require_staff = require_role(*sorted(STAFF_ROLES))


def login_redirect(request: Request) -> RedirectResponse:
    """Send an anonymous visitor to sign in, remembering where they were going."""
    original = request.url.path
    if request.url.query:
        original = f"{original}?{request.url.query}"
    target = f"{settings.auth_route}?{urlencode({'redirect': original})}"
    return RedirectResponse(url=target, status_code=307)
