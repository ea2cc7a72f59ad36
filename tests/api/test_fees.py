import pytest
import datetime
from httpx import AsyncClient

from src.edumesh_backend.database import models as db_models
from src.edumesh_backend.services.security import JWTHandler

from tests.constants import (
    TEST_STUDENT_ID,
    TEST_FEE_PENDING_ID,
    TEST_FEE_PAID_ID,
    OTHER_FEE_ID,
    OTHER_STUDENT_ID,
)

PAYMENT = {"payment_method": "card", "transaction_id": "TXN-7001"}


# Helper to create auth headers
def auth_headers_for_user(user: db_models.Users) -> dict:
    """Creates an access token for the given user and returns auth headers."""
    token = JWTHandler.create_access_token(user)
    return {"Authorization": f"Bearer {token}"}


@pytest.mark.anyio
class TestFeesAPI:

    async def test_list_for_parent(self, client: AsyncClient, test_parent_orm: db_models.Users):
        headers = auth_headers_for_user(test_parent_orm)
        response = await client.get("/api/fees/", headers=headers)

        assert response.status_code == 200, response.json()
        assert len(response.json()["data"]) == 3

        response = await client.get("/api/fees/", headers=headers, params={"status": "paid"})
        assert [f["id"] for f in response.json()["data"]] == [str(TEST_FEE_PAID_ID)]

    async def test_summary(self, client: AsyncClient, test_parent_orm: db_models.Users):
        headers = auth_headers_for_user(test_parent_orm)
        response = await client.get("/api/fees/summary", headers=headers)

        assert response.status_code == 200, response.json()
        summary = response.json()["data"]
        assert summary["paid"]["count"] == 1
        assert summary["pending"]["count"] == 1
        assert summary["overdue"]["count"] == 1

    async def test_create(self, client: AsyncClient, test_admin_orm: db_models.Users):
        headers = auth_headers_for_user(test_admin_orm)
        payload = {
            "student_id": str(TEST_STUDENT_ID),
            "title": "Lab fee",
            "amount": "35.50",
            "due_date": (datetime.date.today() + datetime.timedelta(days=30)).isoformat(),
        }
        response = await client.post("/api/fees/", headers=headers, json=payload)

        assert response.status_code == 201, response.json()
        assert response.json()["data"]["status"] == "pending"

    async def test_create_negative_amount(self, client: AsyncClient, test_admin_orm: db_models.Users):
        headers = auth_headers_for_user(test_admin_orm)
        payload = {"student_id": str(TEST_STUDENT_ID), "title": "Refund?", "amount": -5, "due_date": "2030-01-01"}
        response = await client.post("/api/fees/", headers=headers, json=payload)

        assert response.status_code == 400
        assert "amount" in {error["field"] for error in response.json()["errors"]}

    async def test_create_for_other_school_student(self, client: AsyncClient, test_admin_orm: db_models.Users):
        headers = auth_headers_for_user(test_admin_orm)
        payload = {"student_id": str(OTHER_STUDENT_ID), "title": "Tuition", "amount": 10, "due_date": "2030-01-01"}
        response = await client.post("/api/fees/", headers=headers, json=payload)
        assert response.status_code == 404

    async def test_pay_then_pay_again(self, client: AsyncClient, test_parent_orm: db_models.Users):
        print("\n--- Testing POST /api/fees/{id}/pay twice ---")
        headers = auth_headers_for_user(test_parent_orm)

        response = await client.post(f"/api/fees/{TEST_FEE_PENDING_ID}/pay", headers=headers, json=PAYMENT)
        assert response.status_code == 200, response.json()
        assert response.json()["message"] == "Payment successful"
        assert response.json()["data"]["status"] == "paid"
        assert response.json()["data"]["transaction_id"] == "TXN-7001"

        response = await client.post(
            f"/api/fees/{TEST_FEE_PENDING_ID}/pay", headers=headers,
            json={"payment_method": "cash", "transaction_id": "TXN-7002"}
        )
        assert response.status_code == 409
        assert response.json()["success"] is False

    async def test_pay_other_school_fee(self, client: AsyncClient, test_parent_orm: db_models.Users):
        headers = auth_headers_for_user(test_parent_orm)
        response = await client.post(f"/api/fees/{OTHER_FEE_ID}/pay", headers=headers, json=PAYMENT)
        assert response.status_code == 404
