"""
Unit Tests for the Login Gate
=============================

Tests for gate_proxy/app/accounts/login_gate.py through POST /api/login

Test Coverage:
--------------
1. Pre-check refuses a deleted email without calling the upstream
2. Successful logins of live accounts pass through untouched
3. Post-check refuses a deleted identity and logs the new session out
4. Upstream failures are relayed without touching the store
5. Transport failures become 502

Run tests:
----------
    pytest gate_proxy/app/tests/test_login_gate.py -v
"""

from unittest.mock import AsyncMock

import httpx
import pytest
from fastapi import status

from gate_proxy.app import messages
from gate_proxy.app.errors import StoreLookupError


DENIAL = {"message": messages.ACCOUNT_DELETED_DENIAL}


def login_ok(body: dict, cookie: str = "sid=new; Path=/; HttpOnly") -> httpx.Response:
    return httpx.Response(200, json=body, headers=[("set-cookie", cookie)])


# ============================================================================
# Pre-check
# ============================================================================

def test_deleted_email_is_refused_before_upstream(client, upstream, add_tombstone):
    add_tombstone("42", "a@x.com")

    response = client.post("/api/login", json={"email": "a@x.com", "password": "p"})

    assert response.status_code == status.HTTP_403_FORBIDDEN
    assert response.json() == DENIAL
    upstream.client.request.assert_not_awaited()


def test_urlencoded_login_is_pre_checked(client, upstream, add_tombstone):
    add_tombstone("42", "a@x.com")

    response = client.post("/api/login", data={"email": "a@x.com", "password": "p"})

    assert response.status_code == status.HTTP_403_FORBIDDEN
    upstream.client.request.assert_not_awaited()


def test_pre_check_compares_email_exactly(client, upstream, add_tombstone):
    add_tombstone("42", "a@x.com")
    upstream.on("POST", "/api/login", login_ok({"id": 7, "email": "A@x.com"}))

    response = client.post("/api/login", json={"email": "A@x.com", "password": "p"})

    assert response.status_code == status.HTTP_200_OK


# ============================================================================
# Pass-through
# ============================================================================

def test_live_account_login_is_relayed(client, upstream, add_tombstone):
    add_tombstone("99", "gone@x.com")
    upstream.on("POST", "/api/login", login_ok({"id": 7, "email": "b@x.com"}))

    response = client.post("/api/login", json={"email": "b@x.com", "password": "p"})

    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {"id": 7, "email": "b@x.com"}
    assert response.headers["set-cookie"] == "sid=new; Path=/; HttpOnly"
    assert upstream.calls_to("POST", "/api/logout") == []

    login_call = upstream.calls_to("POST", "/api/login")[0]
    assert login_call.kwargs["content"] == b'{"email":"b@x.com","password":"p"}'


def test_login_without_identity_in_body_is_relayed(client, upstream, add_tombstone):
    add_tombstone("42", "a@x.com")
    upstream.on("POST", "/api/login", httpx.Response(200, json={"ok": True}))

    response = client.post("/api/login", json={"username": "alice", "password": "p"})

    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {"ok": True}


def test_login_with_non_json_success_is_relayed(client, upstream):
    upstream.on("POST", "/api/login", httpx.Response(200, text="OK"))

    response = client.post("/api/login", json={"email": "b@x.com", "password": "p"})

    assert response.status_code == status.HTTP_200_OK
    assert response.text == "OK"


def test_failed_login_is_relayed_without_store_lookup(app, client, upstream):
    upstream.on("POST", "/api/login", httpx.Response(401, json={"message": "Identifiants invalides"}))
    store = app.state.app_state.store
    store.find_tombstone = AsyncMock(return_value=None)

    response = client.post("/api/login", json={"email": "b@x.com", "password": "bad"})

    assert response.status_code == status.HTTP_401_UNAUTHORIZED
    assert response.json() == {"message": "Identifiants invalides"}
    store.find_tombstone.assert_not_awaited()


# ============================================================================
# Post-check
# ============================================================================

def test_deleted_identity_is_refused_and_logged_out(client, upstream, add_tombstone):
    add_tombstone("42", "old@x.com")
    # logged in with another identifier; only the id gives the account away
    upstream.on("POST", "/api/login", login_ok({"id": 42, "email": "new@x.com"}, "sid=fresh; Path=/"))
    upstream.on("POST", "/api/logout", httpx.Response(200, json={}))

    response = client.post(
        "/api/login",
        json={"email": "new@x.com", "password": "p"},
        headers={"Cookie": "sid=stale"},
    )

    assert response.status_code == status.HTTP_403_FORBIDDEN
    assert response.json() == DENIAL
    assert "set-cookie" not in response.headers

    logout_calls = upstream.calls_to("POST", "/api/logout")
    assert len(logout_calls) == 1
    assert logout_calls[0].kwargs["headers"]["cookie"] == "sid=fresh"


def test_logout_falls_back_to_inbound_credentials(client, upstream, add_tombstone):
    add_tombstone("42", None)
    upstream.on("POST", "/api/login", httpx.Response(200, json={"id": 42}))

    response = client.post(
        "/api/login",
        json={"username": "alice", "password": "p"},
        headers={"Authorization": "Bearer abc"},
    )

    assert response.status_code == status.HTTP_403_FORBIDDEN
    logout_headers = upstream.calls_to("POST", "/api/logout")[0].kwargs["headers"]
    assert logout_headers["authorization"] == "Bearer abc"
    assert logout_headers["host"] == "upstream.test"


@pytest.mark.parametrize(
    "body",
    [
        {"user": {"id": "42", "email": "x@x.com"}},
        {"_id": "42"},
        {"user": {"email": "old@x.com"}},
    ],
)
def test_post_check_understands_identity_shapes(client, upstream, add_tombstone, body):
    add_tombstone("42", "old@x.com")
    upstream.on("POST", "/api/login", login_ok(body))

    response = client.post("/api/login", json={"username": "alice", "password": "p"})

    assert response.status_code == status.HTTP_403_FORBIDDEN
    assert response.json() == DENIAL


def test_logout_failure_still_denies(client, upstream, add_tombstone):
    add_tombstone("42", None)
    upstream.on("POST", "/api/login", login_ok({"id": 42}))
    upstream.on("POST", "/api/logout", error=httpx.ConnectError("refused"))

    response = client.post("/api/login", json={"username": "alice", "password": "p"})

    assert response.status_code == status.HTTP_403_FORBIDDEN
    assert response.json() == DENIAL


def test_logout_error_status_still_denies(client, upstream, add_tombstone):
    add_tombstone("42", None)
    upstream.on("POST", "/api/login", login_ok({"id": 42}))
    upstream.on("POST", "/api/logout", httpx.Response(500))

    response = client.post("/api/login", json={"username": "alice", "password": "p"})

    assert response.status_code == status.HTTP_403_FORBIDDEN


# ============================================================================
# Error Handling
# ============================================================================

def test_unreachable_upstream_returns_502(client, upstream):
    upstream.on("POST", "/api/login", error=httpx.ConnectTimeout("timed out"))

    response = client.post("/api/login", json={"email": "b@x.com", "password": "p"})

    assert response.status_code == status.HTTP_502_BAD_GATEWAY
    assert response.json() == {"message": messages.UPSTREAM_UNREACHABLE}


def test_store_failure_fails_closed(app, client, upstream):
    app.state.app_state.store.find_by_email = AsyncMock(side_effect=StoreLookupError("down"))

    response = client.post("/api/login", json={"email": "b@x.com", "password": "p"})

    assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
    assert response.json() == {"message": messages.STORE_UNAVAILABLE}
    upstream.client.request.assert_not_awaited()
