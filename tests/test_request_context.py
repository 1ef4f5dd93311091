"""Tests for gateway header parsing and HTTP error mapping"""
import pytest
from fastapi import Depends, FastAPI
from fastapi.testclient import TestClient

from civic_core_lib.auth import RequestContext, get_request_context, register_exception_handlers
from civic_core_lib.errors import AuthorizationError, ConflictError, NotFoundError, ValidationError


@pytest.fixture
def app() -> FastAPI:
    app = FastAPI()
    register_exception_handlers(app)

    @app.get("/whoami")
    async def whoami(context: RequestContext = Depends(get_request_context)):
        return {
            "id": context.actor.id,
            "role": context.actor.role.value,
            "department": context.actor.department,
            "active": context.actor.is_active,
            "correlation_id": context.correlation_id,
        }

    @app.get("/fail/{kind}")
    async def fail(kind: str):
        if kind == "validation":
            raise ValidationError("Validation failed", details=[{"field": "latitude", "message": "out of range"}])
        if kind == "forbidden":
            raise AuthorizationError("update", field="priority", reason="role TEAM_MEMBER")
        if kind == "conflict":
            raise ConflictError("Concurrent modification during update_issue; retry")
        raise NotFoundError("Issue", kind)

    return app


@pytest.fixture
def client(app) -> TestClient:
    return TestClient(app)


class TestRequestContext:
    def test_department_head_headers(self, client):
        response = client.get(
            "/whoami",
            headers={
                "X-User-ID": "usr_head",
                "X-User-Email": "Head@City.gov",
                "X-User-Role": "department_head",
                "X-User-Department": "Public Works",
                "X-Correlation-ID": "req-1",
            },
        )
        assert response.status_code == 200
        assert response.json() == {
            "id": "usr_head",
            "role": "DEPARTMENT_HEAD",
            "department": "Public Works",
            "active": True,
            "correlation_id": "req-1",
        }

    def test_admin_department_is_dropped(self, client):
        response = client.get(
            "/whoami",
            headers={
                "X-User-ID": "usr_admin",
                "X-User-Email": "admin@city.gov",
                "X-User-Role": "ADMIN",
                "X-User-Department": "Public Works",
            },
        )
        assert response.json()["department"] is None

    def test_inactive_flag(self, client):
        response = client.get(
            "/whoami",
            headers={
                "X-User-ID": "usr_admin",
                "X-User-Email": "admin@city.gov",
                "X-User-Role": "ADMIN",
                "X-User-Active": "false",
            },
        )
        assert response.json()["active"] is False

    def test_missing_identity(self, client):
        assert client.get("/whoami").status_code == 401

    @pytest.mark.parametrize(
        "headers",
        [
            {"X-User-Role": "SUPERUSER"},
            {"X-User-Role": "TEAM_MEMBER"},
        ],
    )
    def test_malformed_identity(self, client, headers):
        """Unknown roles and department-less team members are rejected"""
        response = client.get(
            "/whoami",
            headers={"X-User-ID": "usr_x", "X-User-Email": "x@city.gov", **headers},
        )
        assert response.status_code == 401


class TestExceptionHandlers:
    def test_validation_error(self, client):
        response = client.get("/fail/validation")
        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert body["code"] == "validation_error"
        assert body["details"] == [{"field": "latitude", "message": "out of range"}]

    def test_authorization_error_names_field(self, client):
        response = client.get("/fail/forbidden")
        assert response.status_code == 403
        assert response.json()["field"] == "priority"

    def test_conflict_is_retryable(self, client):
        response = client.get("/fail/conflict")
        assert response.status_code == 409
        assert response.headers["Retry-After"] == "1"

    def test_not_found(self, client):
        response = client.get("/fail/iss_missing")
        assert response.status_code == 404
        assert response.json()["error"] == "Issue not found: iss_missing"
