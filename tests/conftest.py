import os
import tempfile

# Settings are read at import time
os.environ.setdefault(
    "DATABASE_URL",
    f"sqlite:///{os.path.join(tempfile.gettempdir(), 'siteportal-import.db')}",
)
os.environ.setdefault("JWT_SECRET", "test-secret-for-site-portal-session-tokens")
os.environ.setdefault("SITE_TIMEZONE", "Australia/Sydney")
os.environ.setdefault("APP_ORIGIN", "https://portal.example.com")
os.environ.setdefault("APP_BASE_PATH", "/tfsapp")

from unittest.mock import patch  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine, select  # noqa: E402

import siteportal.models  # noqa: E402,F401
from siteportal.db import Base, SessionLocal  # noqa: E402
from siteportal.models.person import Person  # noqa: E402
from siteportal.models.rbac import PersonRole, Role  # noqa: E402
from siteportal.models.site import Client, DocumentType, Project, SiteDocument  # noqa: E402
from siteportal.services.auth import auth_service  # noqa: E402


@pytest.fixture()
def engine(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'test.db'}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(engine)
    SessionLocal.configure(bind=engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture()
def db_session(engine):
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(autouse=True)
def published_events():
    """Captures ``publish_event`` calls instead of queueing Celery tasks."""
    with patch("siteportal.tasks.events.process_event.delay") as delay:
        yield delay


@pytest.fixture()
def client(engine):
    from siteportal.main import app

    return TestClient(app)


@pytest.fixture()
def make_person(db_session):
    def _make(full_name="Pat Driver", email=None, roles=()):
        person = Person(
            full_name=full_name,
            email=email or f"{full_name.lower().replace(' ', '.')}@example.com",
        )
        db_session.add(person)
        db_session.flush()
        for role_name in roles:
            role = db_session.scalar(select(Role).where(Role.name == role_name))
            if role is None:
                role = Role(name=role_name)
                db_session.add(role)
                db_session.flush()
            db_session.add(PersonRole(person_id=person.id, role_id=role.id))
        db_session.commit()
        db_session.refresh(person)
        return person

    return _make


@pytest.fixture()
def person(make_person):
    return make_person("Pat Driver", roles=("driver",))


@pytest.fixture()
def admin(make_person):
    return make_person("Alex Admin", roles=("admin",))


def _headers(person):
    return {"Authorization": f"Bearer {auth_service.create_access_token(person.id)}"}


@pytest.fixture()
def auth_headers(person):
    return _headers(person)


@pytest.fixture()
def admin_headers(admin):
    return _headers(admin)


@pytest.fixture()
def project(db_session):
    site_client = Client(name="Acme Builders")
    db_session.add(site_client)
    db_session.flush()
    project = Project(
        name="Harbour Bridge Works",
        address="1 Bridge Rd, Sydney",
        client_id=site_client.id,
        project_number="P-1001",
    )
    db_session.add(project)
    db_session.commit()
    db_session.refresh(project)
    return project


@pytest.fixture()
def site_document(db_session, project):
    document = SiteDocument(
        project_id=project.id,
        document_type=DocumentType.swms,
        title="Working at Heights SWMS",
        version="2",
        requires_signature=True,
    )
    db_session.add(document)
    db_session.commit()
    db_session.refresh(document)
    return document
