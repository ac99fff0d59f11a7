"""
End-to-end flows across the auth and profile endpoints.
"""
import pytest
from httpx import AsyncClient

from conftest import api_path, cookie_value


pytestmark = [pytest.mark.integration, pytest.mark.e2e]


class TestIntegration:
    """Complete login, profile setup, refresh and logout flows."""

    @pytest.mark.asyncio
    async def test_login_and_profile_setup_flow(self, async_client: AsyncClient, mongo_db, outbox):
        # Step 1: request an OTP for a new address
        response = await async_client.post(api_path("/send-otp"), json={"email": "a@x.com"})
        assert response.status_code == 200
        assert outbox[-1]["email"] == "a@x.com"

        # Step 2: verify it
        response = await async_client.post(
            api_path("/verify-otp"), json={"email": "a@x.com", "otp": outbox[-1]["otp"]}
        )
        assert response.status_code == 200
        body = response.json()
        assert body["redirectToProfileSetup"] is True
        assert cookie_value(response)
        headers = {"Authorization": f"Bearer {body['accessToken']}"}

        # Step 3: complete the profile
        response = await async_client.post(
            api_path("/profile"), json={"fullName": "A", "college": "X"}, headers=headers
        )
        assert response.status_code == 200

        # Step 4: read it back
        response = await async_client.get(api_path("/me"), headers=headers)
        assert response.status_code == 200
        user = response.json()["user"]
        assert user["fullName"] == "A"
        assert user["college"] == "X"
        assert user["isEmailVerified"] is True

        # A later login no longer routes to profile setup
        response = await async_client.post(api_path("/send-otp"), json={"email": "a@x.com"})
        assert response.status_code == 200
        response = await async_client.post(
            api_path("/verify-otp"), json={"email": "a@x.com", "otp": outbox[-1]["otp"]}
        )
        assert response.json()["redirectToProfileSetup"] is False
        assert await mongo_db.users.count_documents({}) == 1

    @pytest.mark.asyncio
    async def test_wrong_code_then_correct_code(self, async_client: AsyncClient, mongo_db, outbox, email):
        await async_client.post(api_path("/send-otp"), json={"email": email})
        code = outbox[-1]["otp"]
        wrong = "000000" if code != "000000" else "111111"

        response = await async_client.post(api_path("/verify-otp"), json={"email": email, "otp": wrong})
        assert response.status_code == 400
        assert response.json()["detail"] == "Invalid OTP"
        assert await mongo_db.otps.count_documents({}) == 1

        response = await async_client.post(api_path("/verify-otp"), json={"email": email, "otp": code})
        assert response.status_code == 200
        assert await mongo_db.otps.count_documents({}) == 0

    @pytest.mark.asyncio
    async def test_session_lifecycle_with_cookie_jar(self, async_client: AsyncClient, login, email):
        """The client's own cookie jar carries the refresh token through refresh and logout."""
        session = await login(email)
        assert async_client.cookies.get("refresh_token") == session["refresh_token"]

        response = await async_client.post(api_path("/refresh-token"))
        assert response.status_code == 200
        rotated = response.json()["refreshToken"]
        assert async_client.cookies.get("refresh_token") == rotated

        response = await async_client.post(api_path("/logout"))
        assert response.status_code == 200
        assert async_client.cookies.get("refresh_token") is None

        response = await async_client.post(api_path("/refresh-token"), json={"refreshToken": rotated})
        assert response.status_code == 401
