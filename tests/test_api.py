"""
HTTP API tests.

The app runs against a throwaway SQLite file with a fake recognition
agent; requests go through FastAPI's TestClient, cookies included.
"""

import asyncio
import datetime as dt

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import text

from cashbook.api import create_app
from cashbook.audit import AuditLogger
from cashbook.config import get_settings
from cashbook.errors import UpstreamError
from cashbook.models.finance import Session, User, utcnow
from cashbook.orchestrator import create_app_components
from cashbook.services import Database, SqlSessionStorage, SqlUserStorage
from cashbook.services.auth import hash_password

from conftest import TEST_PASSWORD, FakeAgent


COOKIE = get_settings().session.cookie_name


async def seed_user(database_url: str, username: str = "alice") -> User:
    db = Database(database_url)
    try:
        await db.create_all()
        return await SqlUserStorage(db).create_user(username, hash_password(TEST_PASSWORD, rounds=4))
    finally:
        await db.dispose()


@pytest.fixture
def agent():
    return FakeAgent()


@pytest.fixture
def client(tmp_path, agent):
    database_url = f"sqlite+aiosqlite:///{tmp_path / 'cashbook.db'}"
    asyncio.run(seed_user(database_url))

    components = create_app_components(
        database_url=database_url,
        agent=agent,
        audit_logger=AuditLogger().keep_history(),
    )
    with TestClient(create_app(components)) as test_client:
        yield test_client


@pytest.fixture
def logged_in(client):
    response = client.post("/api/auth/login", json={"username": "alice", "password": TEST_PASSWORD})
    assert response.status_code == 200
    return client


def expense_body(**overrides) -> dict:
    body = {"type": "expense", "amount": 50, "category": "food", "description": "午餐", "date": "2024-01-15"}
    return {**body, **overrides}


class TestAuthEndpoints:
    """Tests for login, logout and session checks."""

    def test_wrong_password_sets_no_cookie(self, client):
        response = client.post("/api/auth/login", json={"username": "alice", "password": "wrong"})

        assert response.status_code == 401
        assert response.json() == {"success": False, "error": "Invalid username or password"}
        assert "set-cookie" not in response.headers

        me = client.get("/api/auth/me")
        assert me.status_code == 401
        assert me.json()["success"] is False

    def test_missing_fields(self, client):
        response = client.post("/api/auth/login", json={"username": "alice"})
        assert response.status_code == 400

    def test_login_sets_session_cookie(self, client):
        response = client.post("/api/auth/login", json={"username": "alice", "password": TEST_PASSWORD})

        assert response.status_code == 200
        assert response.json()["user"]["username"] == "alice"
        cookie = response.headers["set-cookie"]
        assert cookie.startswith(f"{COOKIE}=")
        assert "HttpOnly" in cookie
        assert "samesite=lax" in cookie.lower()
        assert "Path=/" in cookie

        me = client.get("/api/auth/me")
        assert me.json() == {"success": True, "user": response.json()["user"]}

    def test_logout_ends_session(self, logged_in):
        token = logged_in.cookies.get(COOKIE)
        assert logged_in.post("/api/auth/logout").json() == {"success": True}

        logged_in.cookies.set(COOKIE, token)
        assert logged_in.get("/api/auth/me").status_code == 401

    def test_privileged_route_without_cookie(self, client):
        response = client.get("/api/transactions")
        assert response.status_code == 401
        assert response.json() == {"success": False, "error": "Not logged in"}

    def test_privileged_route_with_unknown_token(self, client):
        client.cookies.set(COOKIE, "forged")
        response = client.get("/api/transactions")
        assert response.status_code == 401
        assert "expired or invalid" in response.json()["error"]

    def test_health_is_public(self, client):
        assert client.get("/api/health").json() == {"success": True, "database": "ok"}


class TestTransactionEndpoints:
    """Tests for transaction CRUD over HTTP."""

    def test_crud(self, logged_in):
        created = logged_in.post("/api/transactions", json=expense_body(category="food:餐饮"))
        assert created.status_code == 200
        transaction = created.json()["transaction"]
        assert transaction["category"] == "food"
        assert transaction["amount"] == 50.0

        listed = logged_in.get("/api/transactions").json()["transactions"]
        assert [t["id"] for t in listed] == [transaction["id"]]

        patched = logged_in.patch(f"/api/transactions/{transaction['id']}", json={"amount": "42.5"})
        assert patched.json()["transaction"]["amount"] == 42.5

        assert logged_in.delete(f"/api/transactions/{transaction['id']}").json() == {"success": True}
        missing = logged_in.delete(f"/api/transactions/{transaction['id']}")
        assert missing.status_code == 404
        assert missing.json()["success"] is False

    def test_invalid_body(self, logged_in):
        response = logged_in.post("/api/transactions", json=expense_body(amount=0))
        assert response.status_code == 400
        assert response.json()["success"] is False
        assert "amount" in response.json()["error"]

    def test_sub_cent_amounts_are_rejected(self, logged_in):
        created = logged_in.post("/api/transactions", json=expense_body(amount="0.004"))
        assert created.status_code == 400
        assert created.json()["success"] is False
        assert "at least 0.01" in created.json()["error"]

        transaction = logged_in.post("/api/transactions", json=expense_body()).json()["transaction"]
        patched = logged_in.patch(f"/api/transactions/{transaction['id']}", json={"amount": 0.001})
        assert patched.status_code == 400
        assert "amount" in patched.json()["error"]
        assert logged_in.get("/api/transactions").json()["transactions"][0]["amount"] == 50.0

    def test_batch_stops_at_first_failure(self, logged_in):
        response = logged_in.post("/api/transactions/batch", json={"transactions": [
            expense_body(),
            expense_body(type="refund"),
            expense_body(amount=5),
        ]})

        body = response.json()
        assert response.status_code == 500
        assert body["success"] is False
        assert body["failedIndex"] == 1
        assert len(body["transactions"]) == 1
        assert len(logged_in.get("/api/transactions").json()["transactions"]) == 1

    def test_batch_success(self, logged_in):
        response = logged_in.post("/api/transactions/batch", json={"transactions": [
            expense_body(), expense_body(type="income", category="salary", amount=3000),
        ]})
        assert response.status_code == 200
        assert len(response.json()["transactions"]) == 2


class TestCategoryEndpoints:
    """Tests for category management over HTTP."""

    def test_list_by_type(self, logged_in):
        expenses = logged_in.get("/api/categories", params={"type": "expense"}).json()["categories"]
        assert len(expenses) == 8
        assert all(c["type"] == "expense" for c in expenses)
        assert len(logged_in.get("/api/categories").json()["categories"]) == 13

    def test_custom_category_lifecycle(self, logged_in):
        created = logged_in.post(
            "/api/categories",
            json={"type": "expense", "name": "房租", "icon": "🏠", "color": "#123456"},
        ).json()["category"]
        assert created["id"].startswith("custom-")

        assert logged_in.patch(f"/api/categories/{created['id']}", json={"name": "房贷"}).json() == {"success": True}

        logged_in.post("/api/transactions", json=expense_body(category=created["id"]))
        in_use = logged_in.delete(f"/api/categories/{created['id']}")
        assert in_use.status_code == 409
        assert "cannot be deleted" in in_use.json()["error"]

    def test_system_category_is_read_only(self, logged_in):
        assert logged_in.patch("/api/categories/food", json={"name": "吃饭"}).status_code == 409
        assert logged_in.delete("/api/categories/salary").status_code == 409


class TestRecognizeEndpoint:
    """Tests for recognition over HTTP."""

    def test_returns_proposals_without_saving(self, logged_in, agent):
        response = logged_in.post("/api/recognize", json={"imageBase64": "abc", "model": "gemini-1.5-pro"})

        assert response.status_code == 200
        proposals = response.json()["transactions"]
        assert proposals[0]["originalInfo"] == "2024-01-15 12:30 餐厅 ¥50.00"
        assert agent.calls[0]["model"] == "gemini-1.5-pro"
        assert logged_in.get("/api/transactions").json()["transactions"] == []

    def test_upstream_failure(self, client, agent):
        agent.error = UpstreamError("Vision API call failed: 429 quota")
        client.post("/api/auth/login", json={"username": "alice", "password": TEST_PASSWORD})

        response = client.post("/api/recognize", json={"imageBase64": "abc"})
        assert response.status_code == 502
        assert response.json() == {"success": False, "error": "Vision API call failed: 429 quota"}


async def seed_expired_session(database_url: str, user_id: str) -> None:
    db = Database(database_url)
    try:
        await SqlSessionStorage(db).save_session(Session(
            user_id=user_id,
            token="stale",
            expires_at=utcnow() - dt.timedelta(days=1),
        ))
    finally:
        await db.dispose()


async def count_sessions(database_url: str) -> int:
    db = Database(database_url)
    try:
        async with db.engine.connect() as conn:
            return (await conn.execute(text("SELECT COUNT(*) FROM sessions"))).scalar_one()
    finally:
        await db.dispose()


class TestStartup:
    """Tests for work done when the app starts."""

    def test_expired_sessions_are_purged(self, tmp_path):
        database_url = f"sqlite+aiosqlite:///{tmp_path / 'cashbook.db'}"
        user = asyncio.run(seed_user(database_url))
        asyncio.run(seed_expired_session(database_url, user.id))
        assert asyncio.run(count_sessions(database_url)) == 1

        components = create_app_components(database_url=database_url, agent=FakeAgent())
        with TestClient(create_app(components)) as test_client:
            assert test_client.get("/api/health").status_code == 200

        assert asyncio.run(count_sessions(database_url)) == 0
