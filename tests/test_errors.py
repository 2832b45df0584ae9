from fastapi import FastAPI, HTTPException
from fastapi.testclient import TestClient
from sqlalchemy.exc import IntegrityError, OperationalError

from siteportal.errors import register_error_handlers


def _client():
    app = FastAPI()
    register_error_handlers(app)

    @app.get("/detail-dict")
    def detail_dict():
        raise HTTPException(
            status_code=503, detail={"message": "Sign on failed", "details": "disk full"}
        )

    @app.get("/conflict")
    def conflict():
        raise IntegrityError("INSERT", {}, Exception("duplicate key"))

    @app.get("/db-down")
    def db_down():
        raise OperationalError("SELECT 1", {}, Exception("connection refused"))

    @app.get("/boom")
    def boom():
        raise RuntimeError("boom")

    return TestClient(app, raise_server_exceptions=False)


class TestErrorEnvelope:
    def test_dict_detail_is_unpacked(self) -> None:
        resp = _client().get("/detail-dict")
        assert resp.status_code == 503
        assert resp.json() == {
            "code": "http_503",
            "message": "Sign on failed",
            "details": "disk full",
        }

    def test_integrity_error_is_conflict(self) -> None:
        resp = _client().get("/conflict")
        assert resp.status_code == 409
        assert resp.json()["code"] == "conflict"

    def test_operational_error_is_unavailable(self) -> None:
        resp = _client().get("/db-down")
        assert resp.status_code == 503
        assert resp.json()["code"] == "database_unavailable"

    def test_unhandled_error_hides_details(self) -> None:
        resp = _client().get("/boom")
        assert resp.status_code == 500
        assert resp.json() == {
            "code": "internal_error",
            "message": "Internal server error",
            "details": None,
        }

