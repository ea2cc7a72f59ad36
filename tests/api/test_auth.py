import pytest
from httpx import AsyncClient

from src.edumesh_backend.database import models as db_models
from src.edumesh_backend.services.security import JWTHandler
from src.edumesh_backend.models import auth as auth_models

from tests.constants import TEST_OTP_CODE, TEST_SCHOOL_CODE, TEST_ADMIN_ID


# Helper to create auth headers
def auth_headers_for_user(user: db_models.Users) -> dict:
    """Creates an access token for the given user and returns auth headers."""
    token = JWTHandler.create_access_token(user)
    return {"Authorization": f"Bearer {token}"}


async def _send_and_verify(client: AsyncClient, contact: str, method: str = "email") -> dict:
    response = await client.post("/api/auth/send-otp", json={"contact": contact, "method": method})
    assert response.status_code == 200, response.json()

    response = await client.post("/api/auth/verify-otp", json={"contact": contact, "method": method, "otp": TEST_OTP_CODE})
    assert response.status_code == 200, response.json()
    return response.json()["data"]


@pytest.mark.anyio
class TestHealthAPI:

    async def test_health(self, client: AsyncClient):
        response = await client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "ok"
        assert "timestamp" in body
        assert "version" in body


@pytest.mark.anyio
class TestAuthFlowAPI:
    """send-otp -> verify-otp -> login / register, and the token endpoints."""

    async def test_send_otp(self, client: AsyncClient, fake_redis):
        response = await client.post("/api/auth/send-otp", json={"contact": "admin@greenfield.edu", "method": "email"})

        assert response.status_code == 200, response.json()
        body = response.json()
        assert body["success"] is True
        assert body["data"]["expires_in"] > 0
        assert fake_redis.store, "no OTP was stored"

    async def test_send_otp_mismatched_method(self, client: AsyncClient):
        response = await client.post("/api/auth/send-otp", json={"contact": "not-a-phone", "method": "phone"})

        assert response.status_code == 400
        assert response.json()["message"] == "Validation failed"

    async def test_verify_wrong_code(self, client: AsyncClient):
        await client.post("/api/auth/send-otp", json={"contact": "admin@greenfield.edu", "method": "email"})
        response = await client.post(
            "/api/auth/verify-otp", json={"contact": "admin@greenfield.edu", "method": "email", "otp": "999999"}
        )

        assert response.status_code == 400
        assert response.json() == {"success": False, "message": "Invalid or expired OTP"}

    async def test_login_flow(self, client: AsyncClient):
        print("\n--- Testing OTP login flow ---")
        verified = await _send_and_verify(client, "admin@greenfield.edu")
        assert verified["user_exists"] is True

        response = await client.post("/api/auth/login", json={"contact": "admin@greenfield.edu", "method": "email"})

        assert response.status_code == 200, response.json()
        session = auth_models.AuthSession(**response.json()["data"])
        assert session.user.id == TEST_ADMIN_ID
        assert session.token_type == "bearer"

        # the access token works against a protected route
        profile = await client.get("/api/auth/profile", headers={"Authorization": f"Bearer {session.access_token}"})
        assert profile.status_code == 200, profile.json()
        assert profile.json()["data"]["school_code"] == TEST_SCHOOL_CODE

    async def test_login_without_otp(self, client: AsyncClient):
        response = await client.post("/api/auth/login", json={"contact": "admin@greenfield.edu", "method": "email"})

        assert response.status_code == 401
        assert response.headers.get("www-authenticate") == "Bearer"

    async def test_register_flow(self, client: AsyncClient):
        email = "peter.parent@example.com"
        verified = await _send_and_verify(client, email)
        assert verified["requires_registration"] is True

        payload = {"name": "Peter Parent", "email": email, "role": "parent", "school_code": TEST_SCHOOL_CODE}
        response = await client.post("/api/auth/register", json=payload)

        assert response.status_code == 201, response.json()
        data = response.json()["data"]
        assert data["user"]["role"] == "parent"
        assert data["access_token"]

        # the verification was consumed by the registration
        again = await client.post("/api/auth/login", json={"contact": email, "method": "email"})
        assert again.status_code == 401

    async def test_register_missing_school_code(self, client: AsyncClient):
        payload = {"name": "Tess Teacher", "email": "tess@greenfield.edu", "role": "teacher"}
        response = await client.post("/api/auth/register", json=payload)

        assert response.status_code == 400
        assert response.json()["message"] == "Validation failed"

    async def test_refresh(self, client: AsyncClient, test_admin_orm: db_models.Users):
        refresh_token = JWTHandler.create_refresh_token(test_admin_orm)
        response = await client.post("/api/auth/refresh", json={"refresh_token": refresh_token})

        assert response.status_code == 200, response.json()
        assert response.json()["data"]["user"]["id"] == str(TEST_ADMIN_ID)

    async def test_refresh_with_garbage(self, client: AsyncClient):
        response = await client.post("/api/auth/refresh", json={"refresh_token": "not-a-jwt"})
        assert response.status_code == 401

    async def test_logout(self, client: AsyncClient, test_parent_orm: db_models.Users):
        response = await client.post("/api/auth/logout", headers=auth_headers_for_user(test_parent_orm))

        assert response.status_code == 200
        assert response.json()["success"] is True


@pytest.mark.anyio
class TestAccessGuardAPI:

    async def test_missing_token(self, client: AsyncClient):
        response = await client.get("/api/auth/profile")

        assert response.status_code == 401
        assert response.json()["success"] is False

    async def test_refresh_token_is_not_an_access_token(self, client: AsyncClient, test_admin_orm: db_models.Users):
        token = JWTHandler.create_refresh_token(test_admin_orm)
        response = await client.get("/api/auth/profile", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401

    async def test_deactivated_user(self, client: AsyncClient, test_inactive_teacher_orm: db_models.Users):
        response = await client.get("/api/auth/profile", headers=auth_headers_for_user(test_inactive_teacher_orm))

        assert response.status_code == 403
        assert response.json()["message"] == "Account is deactivated"
