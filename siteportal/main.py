from fastapi import Depends, FastAPI
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from starlette.responses import Response

from siteportal.api.clients import router as clients_router
from siteportal.api.deps import require_staff, require_user_auth
from siteportal.api.enrollments import router as enrollments_router
from siteportal.api.me import router as me_router
from siteportal.api.notifications import router as notifications_router
from siteportal.api.people import router as people_router
from siteportal.api.projects import router as projects_router
from siteportal.api.sign_on import router as sign_on_router
from siteportal.api.site_documents import router as site_documents_router
from siteportal.config import settings
from siteportal.errors import register_error_handlers
from siteportal.logging import configure_logging

app = FastAPI(title="Site Portal API")

configure_logging()
register_error_handlers(app)


def _include_api_router(router, dependencies=None):
    app.include_router(router, dependencies=dependencies)
    app.include_router(router, prefix="/api/v1", dependencies=dependencies)


_include_api_router(clients_router, dependencies=[Depends(require_staff)])
_include_api_router(projects_router, dependencies=[Depends(require_staff)])
_include_api_router(enrollments_router, dependencies=[Depends(require_staff)])
_include_api_router(notifications_router, dependencies=[Depends(require_staff)])
_include_api_router(people_router, dependencies=[Depends(require_staff)])
_include_api_router(site_documents_router, dependencies=[Depends(require_user_auth)])
_include_api_router(me_router, dependencies=[Depends(require_user_auth)])

# Deep links handle anonymous visitors themselves (redirect to sign in)
app.include_router(sign_on_router)
app.include_router(sign_on_router, prefix="/api/v1")
if settings.app_base_path.strip("/"):
    app.include_router(sign_on_router, prefix="/" + settings.app_base_path.strip("/"))


@app.get("/health")
def health_check():
    return {"status": "ok"}


@app.get("/metrics")
def metrics():
    data = generate_latest()
    return Response(content=data, media_type=CONTENT_TYPE_LATEST)
