"""Tests for the user profile endpoints."""

import uuid

import pytest

from fleet_api.models.user import Role
from tests.conftest import auth_headers


class TestUserProfile:
    """Tests for /api/users."""

    @pytest.mark.asyncio
    async def test_profile(self, async_client, customer):
        response = await async_client.get("/api/users/profile", headers=auth_headers(customer))

        assert response.status_code == 200
        assert response.json()["data"]["id"] == str(customer.id)

    @pytest.mark.asyncio
    async def test_profile_requires_auth(self, async_client):
        response = await async_client.get("/api/users/profile")
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_get_self(self, async_client, customer):
        response = await async_client.get(
            f"/api/users/{customer.id}", headers=auth_headers(customer)
        )
        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_get_other_user_forbidden(self, async_client, customer, owner):
        response = await async_client.get(f"/api/users/{owner.id}", headers=auth_headers(customer))

        assert response.status_code == 403
        assert response.json()["error"] == "Forbidden"

    @pytest.mark.asyncio
    async def test_admin_reads_any_user(self, async_client, admin, owner):
        response = await async_client.get(f"/api/users/{owner.id}", headers=auth_headers(admin))

        assert response.status_code == 200
        assert response.json()["data"]["email"] == owner.email

    @pytest.mark.asyncio
    async def test_admin_missing_user(self, async_client, admin):
        response = await async_client.get(f"/api/users/{uuid.uuid4()}", headers=auth_headers(admin))

        assert response.status_code == 404
        assert response.json()["message"] == "User not found"

    @pytest.mark.asyncio
    async def test_update_driver_fields(self, async_client, make_user):
        driver = await make_user(Role.DRIVER)

        response = await async_client.put(
            f"/api/users/{driver.id}",
            headers=auth_headers(driver),
            json={"experience": 4, "licenseNumber": "DL-999", "businessName": "ignored"},
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["experience"] == 4
        assert data["licenseNumber"] == "DL-999"
        assert data["businessName"] is None

    @pytest.mark.asyncio
    async def test_customer_cannot_set_driver_fields(self, async_client, customer):
        response = await async_client.put(
            f"/api/users/{customer.id}",
            headers=auth_headers(customer),
            json={"name": "Casey", "licenseNumber": "DL-1"},
        )

        assert response.status_code == 200
        assert customer.name == "Casey"
        assert customer.license_number is None

    @pytest.mark.asyncio
    async def test_update_other_user_forbidden(self, async_client, customer, owner):
        response = await async_client.put(
            f"/api/users/{owner.id}", headers=auth_headers(customer), json={"name": "Hijack"}
        )

        assert response.status_code == 403
        assert owner.name == "Olive Owner"

    @pytest.mark.asyncio
    async def test_license_number_held_by_another_driver(self, async_client, make_user):
        first = await make_user(Role.DRIVER)
        second = await make_user(Role.DRIVER)
        original = second.license_number

        response = await async_client.put(
            f"/api/users/{second.id}",
            headers=auth_headers(second),
            json={"licenseNumber": first.license_number},
        )

        assert response.status_code == 409
        assert response.json() == {
            "success": False,
            "message": "License number already registered",
            "error": "Conflict",
        }
        assert second.license_number == original

    @pytest.mark.asyncio
    async def test_resubmitting_own_license_number(self, async_client, make_user):
        driver = await make_user(Role.DRIVER)

        response = await async_client.put(
            f"/api/users/{driver.id}",
            headers=auth_headers(driver),
            json={"licenseNumber": driver.license_number, "experience": 2},
        )

        assert response.status_code == 200
        assert driver.experience == 2
