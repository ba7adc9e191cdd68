"""Tests for the login, check-token and logout endpoints."""

import inspect
from datetime import datetime

from jose.exceptions import JWSError

import api.auth
import api.users
import config
from core.security import create_access_token, decode_access_token


class TestLogin:

    def test_login_success_returns_token_and_stores_session(self, create_user, login, session_store):
        create_user("alice", "secret1")
        response = login("alice", "secret1")

        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "success"
        assert body["token"]
        assert session_store.get("alice") == body["token"]

    def test_token_embeds_client_metadata(self, create_user, client):
        create_user("alice", "secret1")
        response = client.post(
            "/login",
            json={"username": "alice", "password": "secret1"},
            headers={"User-Agent": "school-app/1.0"},
        )
        data = decode_access_token(response.json()["token"])
        assert data.username == "alice"
        assert data.user_agent == "school-app/1.0"
        assert data.ip == "testclient"

    def test_wrong_password(self, create_user, login, session_store):
        create_user("alice", "secret1")
        response = login("alice", "wrong-pass")
        assert response.status_code == 501
        assert response.json() == {"message": "username_incorrect"}
        assert session_store.get("alice") is None

    def test_unknown_user(self, login):
        response = login("ghost", "secret1")
        assert response.status_code == 501
        assert response.json() == {"message": "username_incorrect"}

    def test_deleted_user_cannot_login(self, create_user, login):
        create_user("alice", "secret1", deleted_at=datetime(2024, 1, 1))
        response = login("alice", "secret1")
        assert response.status_code == 501
        assert response.json() == {"message": "username_incorrect"}

    def test_malformed_body(self, client):
        response = client.post("/login", content=b"not json", headers={"Content-Type": "application/json"})
        assert response.status_code == 501
        assert response.json() == {"message": "username_incorrect"}

    def test_missing_fields(self, client):
        response = client.post("/login", json={"username": "alice"})
        assert response.status_code == 501
        assert response.json() == {"message": "username_incorrect"}

    def test_token_signing_failure_is_system_error(self, create_user, login, session_store, monkeypatch):
        create_user("alice", "secret1")

        def failing_token(*args, **kwargs):
            raise JWSError("signing failed")

        monkeypatch.setattr(api.auth, "create_access_token", failing_token)
        response = login("alice", "secret1")

        assert response.status_code == 501
        assert response.json() == {"message": "system_error"}
        assert session_store.get("alice") is None

    def test_blocking_handlers_run_in_threadpool(self):
        # Sync endpoints are dispatched to the threadpool, keeping bcrypt and
        # database work off the event loop
        assert not inspect.iscoroutinefunction(api.auth.login)
        assert not inspect.iscoroutinefunction(api.users.delete_user)

    def test_second_login_replaces_first_token(self, create_user, login, client, session_store):
        create_user("alice", "secret1")
        first = login("alice", "secret1").json()["token"]
        second = login("alice", "secret1").json()["token"]

        assert first != second
        assert session_store.get("alice") == second

        assert client.post("/user/check-token", headers={"token": first}).status_code == 401
        assert client.post("/user/check-token", headers={"token": second}).status_code == 200


class TestCheckToken:

    def test_valid_token(self, client, auth_headers):
        response = client.post("/user/check-token", headers=auth_headers)
        assert response.status_code == 200
        assert response.json() == {"message": "Token is correct"}

    def test_bearer_header_is_accepted(self, client, auth_headers):
        response = client.post(
            "/user/check-token",
            headers={"Authorization": f"Bearer {auth_headers['token']}"},
        )
        assert response.status_code == 200

    def test_missing_token(self, client):
        response = client.post("/user/check-token")
        assert response.status_code == 401
        assert response.json() == {"message": "token_invalid"}

    def test_garbage_token(self, client):
        response = client.post("/user/check-token", headers={"token": "garbage"})
        assert response.status_code == 401
        assert response.json() == {"message": "token_invalid"}

    def test_signed_token_without_session_is_rejected(self, client, create_user):
        create_user("alice", "secret1")
        token = create_access_token("alice", "ua", "ip")
        response = client.post("/user/check-token", headers={"token": token})
        assert response.status_code == 401


class TestLogout:

    def test_logout_removes_session(self, client, auth_headers, session_store):
        response = client.post("/user/logout", headers=auth_headers)
        assert response.status_code == 200
        assert response.json() == {"message": "success"}
        assert session_store.get("admin") is None

    def test_old_token_rejected_after_logout(self, client, auth_headers):
        client.post("/user/logout", headers=auth_headers)
        response = client.post("/user/check-token", headers=auth_headers)
        assert response.status_code == 401

    def test_logout_with_unparseable_token(self, client):
        response = client.post("/user/logout", headers={"token": "garbage"})
        assert response.status_code == 401
        assert response.json() == {"message": "token_invalid"}


class TestAppKey:

    def test_app_key_not_required_when_unset(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert response.json() == {"message": "Welcome"}

    def test_app_key_required_when_configured(self, client, monkeypatch):
        monkeypatch.setattr(config, "APP_KEY", "k3y")
        assert client.get("/").status_code == 401
        assert client.get("/").json() == {"message": "app_key_invalid"}
        assert client.get("/", headers={"appKey": "k3y"}).status_code == 200

    def test_app_key_checked_on_login(self, client, create_user, monkeypatch):
        monkeypatch.setattr(config, "APP_KEY", "k3y")
        create_user("alice", "secret1")
        response = client.post("/login", json={"username": "alice", "password": "secret1"})
        assert response.status_code == 401
