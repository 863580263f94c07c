"""
tests/test_auth.py
==================
Login, token authentication and role gating.
"""
import asyncio
import json
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest
from fastapi import HTTPException

from courierdesk.core.permissions import authenticate_token
from courierdesk.models.user import AuthUser, UserRole

from conftest import COURIER_ID


def supabase_with_user(user_id=COURIER_ID, email="karim@example.com"):
    client = MagicMock()
    user = SimpleNamespace(id=user_id, email=email)
    client.auth.get_user.return_value = SimpleNamespace(user=user)
    client.auth.sign_in_with_password.return_value = SimpleNamespace(
        user=user,
        session=SimpleNamespace(access_token="access-token-123", refresh_token="refresh-token-456"),
    )
    return client


class TestAuthenticateToken:

    def test_cached_session_skips_auth_provider(self, store, fake_redis):
        profile = {"id": COURIER_ID, "email": "karim@example.com", "name": "Karim Hassan", "role": "courier"}
        fake_redis.get.side_effect = lambda key: {
            "active_session:tok": COURIER_ID,
            f"profile:{COURIER_ID}": json.dumps(profile),
        }.get(key)

        with patch("courierdesk.core.permissions.get_supabase") as get_supabase:
            user = asyncio.run(authenticate_token("tok", store))

        get_supabase.assert_not_called()
        assert user.role == UserRole.COURIER
        assert user.name == "Karim Hassan"

    def test_new_token_bootstraps_profile_and_session(self, store, fake_redis):
        with patch("courierdesk.core.permissions.get_supabase", return_value=supabase_with_user()):
            user = asyncio.run(authenticate_token("fresh-token", store))

        assert user.role == UserRole.COURIER
        assert not user.degraded
        assert fake_redis.hset.called
        cached_keys = [c.args[0] for c in fake_redis.setex.call_args_list]
        assert f"profile:{COURIER_ID}" in cached_keys
        assert "active_session:fresh-token" in cached_keys

    def test_missing_profile_gives_degraded_user_without_session(self, store, fake_redis):
        with patch("courierdesk.core.permissions.get_supabase", return_value=supabase_with_user("ghost", "ghost@example.com")):
            user = asyncio.run(authenticate_token("ghost-token", store))

        assert user.degraded
        assert user.role is None
        assert user.name == "ghost"
        fake_redis.hset.assert_not_called()
        fake_redis.setex.assert_not_called()

    def test_rejected_token(self, store):
        client = MagicMock()
        client.auth.get_user.side_effect = Exception("invalid JWT")

        with patch("courierdesk.core.permissions.get_supabase", return_value=client):
            with pytest.raises(HTTPException) as exc_info:
                asyncio.run(authenticate_token("bad", store))

        assert exc_info.value.status_code == 401


class TestLogin:

    def test_login(self, store, app_client):
        with patch("courierdesk.api.auth.get_supabase", return_value=supabase_with_user()):
            response = app_client().post(
                "/auth/login", json={"email": "karim@example.com", "password": "secret-pass"}
            )

        assert response.status_code == 200
        body = response.json()
        assert body["access_token"] == "access-token-123"
        assert body["token_type"] == "bearer"
        assert body["user"]["role"] == "courier"
        assert store.activities[-1]["action"] == "login"

    def test_bad_credentials(self, app_client):
        client = MagicMock()
        client.auth.sign_in_with_password.side_effect = Exception("Invalid login credentials")

        with patch("courierdesk.api.auth.get_supabase", return_value=client):
            response = app_client().post(
                "/auth/login", json={"email": "karim@example.com", "password": "wrong"}
            )

        assert response.status_code == 401

    def test_login_rate_limited(self, app_client, fake_redis):
        fake_redis.incr.return_value = 6

        response = app_client().post("/auth/login", json={"email": "karim@example.com", "password": "x"})

        assert response.status_code == 429

    def test_rate_limit_skipped_when_redis_down(self, store, app_client, fake_redis):
        import redis

        fake_redis.incr.side_effect = redis.ConnectionError("down")

        with patch("courierdesk.api.auth.get_supabase", return_value=supabase_with_user()):
            response = app_client().post(
                "/auth/login", json={"email": "karim@example.com", "password": "secret-pass"}
            )

        assert response.status_code == 200


class TestCurrentUser:

    def test_me(self, app_client, courier_user):
        response = app_client(courier_user).get("/auth/me")

        assert response.status_code == 200
        assert response.json()["id"] == COURIER_ID
        assert response.json()["degraded"] is False

    def test_degraded_user_is_authenticated_but_powerless(self, app_client):
        degraded = AuthUser(id="u9", email="u9@example.com", name="u9", degraded=True)
        client = app_client(degraded)

        assert client.get("/auth/me").json()["degraded"] is True
        assert client.get("/orders").status_code == 403
        assert client.get("/courier/orders").status_code == 403

    def test_logout_drops_session(self, app_client, courier_user, fake_redis):
        with patch("courierdesk.api.auth.get_supabase"):
            response = app_client(courier_user).post(
                "/auth/logout", headers={"Authorization": "Bearer access-token-123"}
            )

        assert response.status_code == 200
        deleted = [arg for c in fake_redis.delete.call_args_list for arg in c.args]
        assert "active_session:access-token-123" in deleted
