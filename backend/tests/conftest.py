"""
Pytest configuration and fixtures for the backend tests.

Mongo is replaced by an in-memory mongomock-motor database and the mail
transport is patched, so no external services are needed.
"""
import os
import tempfile

os.environ.setdefault("SECRET_KEY", "test-secret-key-not-for-production")
os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="findex-auth-logs-"))
os.environ.setdefault("ENVIRONMENT", "development")
os.environ.pop("MONGO_URI", None)

import pytest
from typing import AsyncGenerator
from unittest.mock import patch
from faker import Faker
from httpx import AsyncClient, ASGITransport
from mongomock_motor import AsyncMongoMockClient

from main import app
from core.config import settings
from db import mongodb

# Initialize Faker for test data generation
fake = Faker()


def api_path(path: str) -> str:
    return f"{settings.API_PREFIX}{path}"


def cookie_value(response, name: str = None):
    """Value of a cookie from the raw Set-Cookie header, None if absent"""
    name = name or settings.REFRESH_TOKEN_COOKIE_NAME
    for header in response.headers.get_list("set-cookie"):
        pair = header.split(";", 1)[0]
        key, _, value = pair.partition("=")
        if key.strip() == name:
            return value.strip().strip('"')
    return None


@pytest.fixture
def mongo_db():
    """Fresh in-memory database per test, served through db.mongodb.get_mongo_db()."""
    client = AsyncMongoMockClient()
    db = client["findex_auth_test"]
    mongodb._mongo_db = db
    yield db
    mongodb._mongo_db = None


@pytest.fixture
def outbox():
    """Captures OTP mails instead of sending them."""
    sent = []

    def _capture(to_email, otp_code):
        sent.append({"email": to_email, "otp": otp_code})
        return True

    with patch("services.otp_service.send_otp_email", side_effect=_capture):
        yield sent


@pytest.fixture
async def async_client(mongo_db, outbox) -> AsyncGenerator[AsyncClient, None]:
    """Async test client bound to the app and the in-memory database."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture
def email() -> str:
    return f"{fake.unique.user_name()}@mail.findex.io"


@pytest.fixture
def login(async_client: AsyncClient, outbox):
    """Request and verify an OTP for an email; returns tokens and the response body."""

    async def _login(address: str) -> dict:
        response = await async_client.post(api_path("/send-otp"), json={"email": address})
        assert response.status_code == 200, response.text
        code = outbox[-1]["otp"]
        response = await async_client.post(api_path("/verify-otp"), json={"email": address, "otp": code})
        assert response.status_code == 200, response.text
        body = response.json()
        return {
            "access_token": body["accessToken"],
            "refresh_token": cookie_value(response),
            "body": body,
            "response": response,
        }

    return _login
