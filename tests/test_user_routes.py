"""
tests/test_user_routes.py -- Integration tests for the /users endpoints.

Every test builds its own users through the make_user fixture and sends the
token as a Bearer header, so the (caller role, target id) combinations are
explicit in each test.

Coverage:
  - GET /users: admin 200 with count; user 403; anonymous 401
  - GET /users/{id}: owner 200, admin 200, other user 403, bad id, missing 404
  - PUT /users/{id}: owner/admin rules, role changes admin-only, 400/404/409
  - DELETE /users/{id}: admin deletes others; self-delete 403 for everyone
  - no response ever includes a password
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from core.errors import DataAccessError


def bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def _assert_no_password(user: dict) -> None:
    assert "password" not in user
    assert "hashed_password" not in user


class TestListUsers:
    def test_admin_lists_all_users(self, api_client, make_user) -> None:
        client, _store, _tokens = api_client
        _admin, token = make_user(role="admin")
        make_user()
        make_user()
        resp = client.get("/users", headers=bearer(token))
        assert resp.status_code == 200, resp.text
        data = resp.json()
        assert data["message"] == "Successfully retrieved all users"
        assert data["count"] == 3
        assert len(data["users"]) == 3
        for user in data["users"]:
            _assert_no_password(user)
            assert set(user) == {"id", "name", "email", "role", "created_at", "updated_at"}

    def test_non_admin_is_forbidden(self, api_client, make_user) -> None:
        client, _store, _tokens = api_client
        _user, token = make_user()
        resp = client.get("/users", headers=bearer(token))
        assert resp.status_code == 403
        assert resp.json() == {"error": "Forbidden", "message": "Admin access required"}

    def test_anonymous_is_unauthorized(self, api_client) -> None:
        client, _store, _tokens = api_client
        resp = client.get("/users")
        assert resp.status_code == 401
        assert resp.json() == {"error": "Unauthorized", "message": "Access token is required"}


class TestGetUser:
    def test_owner_reads_own_record(self, api_client, make_user) -> None:
        client, _store, _tokens = api_client
        user, token = make_user()
        resp = client.get(f"/users/{user.id}", headers=bearer(token))
        assert resp.status_code == 200
        data = resp.json()
        assert data["message"] == "User retrieved successfully"
        assert data["user"]["id"] == user.id
        _assert_no_password(data["user"])

    def test_admin_reads_any_record(self, api_client, make_user) -> None:
        client, _store, _tokens = api_client
        _admin, token = make_user(role="admin")
        other, _ = make_user()
        assert client.get(f"/users/{other.id}", headers=bearer(token)).status_code == 200

    def test_other_user_is_forbidden(self, api_client, make_user) -> None:
        client, _store, _tokens = api_client
        _me, token = make_user()
        other, _ = make_user()
        resp = client.get(f"/users/{other.id}", headers=bearer(token))
        assert resp.status_code == 403
        assert resp.json() == {"error": "Forbidden", "message": "You can only access your own resources"}

    def test_admin_missing_user_is_404(self, api_client, make_user) -> None:
        client, _store, _tokens = api_client
        _admin, token = make_user(role="admin")
        resp = client.get("/users/9999", headers=bearer(token))
        assert resp.status_code == 404
        assert resp.json() == {"error": "Not Found", "message": "User not found"}

    def test_admin_non_numeric_id_is_400(self, api_client, make_user) -> None:
        client, _store, _tokens = api_client
        _admin, token = make_user(role="admin")
        resp = client.get("/users/abc", headers=bearer(token))
        assert resp.status_code == 400
        assert resp.json()["details"][0]["field"] == "id"

    def test_user_non_numeric_id_is_403(self, api_client, make_user) -> None:
        """Ownership is decided before the id is validated."""
        client, _store, _tokens = api_client
        _me, token = make_user()
        assert client.get("/users/abc", headers=bearer(token)).status_code == 403


class TestUpdateUser:
    def test_owner_updates_own_profile(self, api_client, make_user) -> None:
        client, store, _tokens = api_client
        user, token = make_user()
        resp = client.put(f"/users/{user.id}", json={"name": "Renamed"}, headers=bearer(token))
        assert resp.status_code == 200, resp.text
        data = resp.json()
        assert data["message"] == "User updated successfully"
        assert data["user"]["name"] == "Renamed"
        _assert_no_password(data["user"])
        assert store.get_user(user.id).name == "Renamed"

    def test_owner_password_change_allows_signin(self, api_client, make_user) -> None:
        client, _store, _tokens = api_client
        user, token = make_user(email="ada@acme.io")
        resp = client.put(f"/users/{user.id}", json={"password": "brandnew99"}, headers=bearer(token))
        assert resp.status_code == 200
        signin = client.post("/auth/signin", json={"email": "ada@acme.io", "password": "brandnew99"})
        assert signin.status_code == 200

    def test_admin_updates_any_profile(self, api_client, make_user) -> None:
        client, _store, _tokens = api_client
        _admin, token = make_user(role="admin")
        other, _ = make_user()
        resp = client.put(f"/users/{other.id}", json={"email": "moved@acme.io"}, headers=bearer(token))
        assert resp.status_code == 200
        assert resp.json()["user"]["email"] == "moved@acme.io"

    def test_admin_changes_role(self, api_client, make_user) -> None:
        client, _store, _tokens = api_client
        _admin, token = make_user(role="admin")
        other, _ = make_user()
        resp = client.put(f"/users/{other.id}", json={"role": "admin"}, headers=bearer(token))
        assert resp.status_code == 200
        assert resp.json()["user"]["role"] == "admin"

    def test_other_user_is_forbidden(self, api_client, make_user) -> None:
        client, store, _tokens = api_client
        _me, token = make_user()
        other, _ = make_user(name="Original")
        resp = client.put(f"/users/{other.id}", json={"name": "Hijacked"}, headers=bearer(token))
        assert resp.status_code == 403
        assert resp.json() == {"error": "Forbidden", "message": "You can only update your own profile"}
        assert store.get_user(other.id).name == "Original"

    def test_owner_cannot_change_own_role(self, api_client, make_user) -> None:
        client, store, _tokens = api_client
        user, token = make_user()
        resp = client.put(
            f"/users/{user.id}",
            json={"name": "Valid Name", "role": "admin"},
            headers=bearer(token),
        )
        assert resp.status_code == 403
        assert resp.json() == {"error": "Forbidden", "message": "Only administrators can change user roles"}
        assert store.get_user(user.id).role == "user"

    def test_owner_sending_current_role_is_still_forbidden(self, api_client, make_user) -> None:
        client, _store, _tokens = api_client
        user, token = make_user()
        resp = client.put(f"/users/{user.id}", json={"role": "user"}, headers=bearer(token))
        assert resp.status_code == 403

    def test_invalid_body_is_400(self, api_client, make_user) -> None:
        client, _store, _tokens = api_client
        user, token = make_user()
        resp = client.put(f"/users/{user.id}", json={"email": "not-an-email"}, headers=bearer(token))
        assert resp.status_code == 400
        assert resp.json()["details"][0]["field"] == "email"

    def test_empty_body_is_400(self, api_client, make_user) -> None:
        client, _store, _tokens = api_client
        user, token = make_user()
        resp = client.put(f"/users/{user.id}", json={}, headers=bearer(token))
        assert resp.status_code == 400

    def test_invalid_id_is_400(self, api_client, make_user) -> None:
        client, _store, _tokens = api_client
        _user, token = make_user()
        resp = client.put("/users/0", json={"name": "X"}, headers=bearer(token))
        assert resp.status_code == 400
        assert resp.json()["details"][0]["field"] == "id"

    def test_admin_missing_user_is_404(self, api_client, make_user) -> None:
        client, _store, _tokens = api_client
        _admin, token = make_user(role="admin")
        resp = client.put("/users/9999", json={"name": "Ghost"}, headers=bearer(token))
        assert resp.status_code == 404
        assert resp.json() == {"error": "Not Found", "message": "User not found"}

    def test_email_collision_is_409(self, api_client, make_user) -> None:
        client, _store, _tokens = api_client
        make_user(email="taken@acme.io")
        user, token = make_user()
        resp = client.put(f"/users/{user.id}", json={"email": "taken@acme.io"}, headers=bearer(token))
        assert resp.status_code == 409
        assert resp.json() == {"error": "User with this email already exists"}

    def test_anonymous_is_unauthorized(self, api_client, make_user) -> None:
        client, _store, _tokens = api_client
        user, _token = make_user()
        assert client.put(f"/users/{user.id}", json={"name": "X"}).status_code == 401


class TestDeleteUser:
    def test_admin_deletes_other_user(self, api_client, make_user) -> None:
        client, store, _tokens = api_client
        _admin, token = make_user(role="admin")
        other, _ = make_user(email="gone@acme.io")
        resp = client.delete(f"/users/{other.id}", headers=bearer(token))
        assert resp.status_code == 200, resp.text
        data = resp.json()
        assert data["message"] == "User deleted successfully"
        assert data["user"]["id"] == other.id
        assert data["user"]["email"] == "gone@acme.io"
        _assert_no_password(data["user"])
        assert store.get_by_email("gone@acme.io") is None

    def test_admin_cannot_delete_self(self, api_client, make_user) -> None:
        client, store, _tokens = api_client
        admin, token = make_user(role="admin")
        resp = client.delete(f"/users/{admin.id}", headers=bearer(token))
        assert resp.status_code == 403
        assert resp.json()["message"] == "You cannot delete your own account. Please contact an administrator."
        assert store.get_user(admin.id).id == admin.id

    def test_user_cannot_delete_self(self, api_client, make_user) -> None:
        client, _store, _tokens = api_client
        user, token = make_user()
        resp = client.delete(f"/users/{user.id}", headers=bearer(token))
        assert resp.status_code == 403
        assert resp.json()["message"] == "You cannot delete your own account. Please contact an administrator."

    def test_user_cannot_delete_others(self, api_client, make_user) -> None:
        client, store, _tokens = api_client
        _me, token = make_user()
        other, _ = make_user()
        resp = client.delete(f"/users/{other.id}", headers=bearer(token))
        assert resp.status_code == 403
        assert resp.json() == {"error": "Forbidden", "message": "You can only delete your own account"}
        assert store.get_user(other.id).id == other.id

    def test_admin_missing_user_is_404(self, api_client, make_user) -> None:
        client, _store, _tokens = api_client
        _admin, token = make_user(role="admin")
        assert client.delete("/users/9999", headers=bearer(token)).status_code == 404

    def test_invalid_id_is_400(self, api_client, make_user) -> None:
        client, _store, _tokens = api_client
        _admin, token = make_user(role="admin")
        assert client.delete("/users/abc", headers=bearer(token)).status_code == 400


@pytest.mark.parametrize(
    "method,caller_role,target,expected",
    [
        ("GET", "user", "self", 200),
        ("GET", "user", "other", 403),
        ("GET", "admin", "self", 200),
        ("GET", "admin", "other", 200),
        ("PUT", "user", "self", 200),
        ("PUT", "user", "other", 403),
        ("PUT", "admin", "self", 200),
        ("PUT", "admin", "other", 200),
        ("DELETE", "user", "self", 403),
        ("DELETE", "user", "other", 403),
        ("DELETE", "admin", "self", 403),
        ("DELETE", "admin", "other", 200),
    ],
)
def test_authorization_matrix(api_client, make_user, method, caller_role, target, expected) -> None:
    client, _store, _tokens = api_client
    caller, token = make_user(role=caller_role)
    other, _ = make_user()
    target_id = caller.id if target == "self" else other.id

    kwargs = {"headers": bearer(token)}
    if method == "PUT":
        kwargs["json"] = {"name": "Matrix Name"}
    resp = client.request(method, f"/users/{target_id}", **kwargs)
    assert resp.status_code == expected, resp.text


class TestTokenTransport:
    def test_cookie_wins_over_bearer_header(self, api_client, make_user) -> None:
        client, _store, _tokens = api_client
        me, my_token = make_user()
        _other, other_token = make_user()
        client.cookies.set("token", my_token)
        resp = client.get(f"/users/{me.id}", headers=bearer(other_token))
        assert resp.status_code == 200
        assert resp.json()["user"]["id"] == me.id

    def test_expired_token_is_403(self, api_client, make_user) -> None:
        client, _store, tokens = api_client
        user, _token = make_user(role="admin")
        stale = tokens.sign(
            {"id": user.id, "email": user.email, "role": user.role},
            now=datetime.now(timezone.utc) - timedelta(days=2),
        )
        resp = client.get("/users", headers=bearer(stale))
        assert resp.status_code == 403
        assert resp.json() == {"error": "Forbidden", "message": "Invalid or expired token"}

    def test_garbage_token_is_403(self, api_client) -> None:
        client, _store, _tokens = api_client
        resp = client.get("/users", headers=bearer("not.a.jwt"))
        assert resp.status_code == 403


def test_store_failure_returns_generic_500(api_client, make_user, monkeypatch) -> None:
    client, store, _tokens = api_client
    _admin, token = make_user(role="admin")

    def broken():
        raise DataAccessError("Failed to list users")

    monkeypatch.setattr(store, "list_users", broken)
    resp = client.get("/users", headers=bearer(token))
    assert resp.status_code == 500
    assert resp.json() == {"error": "Internal Server Error", "message": "An unexpected error occurred."}


class TestIdRange:
    """Ids are bounded by the SQLite INTEGER range."""

    LARGEST = 2**63 - 1

    @pytest.mark.parametrize("method", ["GET", "PUT", "DELETE"])
    def test_largest_id_is_404(self, api_client, make_user, method) -> None:
        client, _store, _tokens = api_client
        _admin, token = make_user(role="admin")
        kwargs = {"headers": bearer(token)}
        if method == "PUT":
            kwargs["json"] = {"name": "Nobody"}
        resp = client.request(method, f"/users/{self.LARGEST}", **kwargs)
        assert resp.status_code == 404, resp.text
        assert resp.json() == {"error": "Not Found", "message": "User not found"}

    @pytest.mark.parametrize("raw", [str(2**63), "99999999999999999999"])
    @pytest.mark.parametrize("method", ["GET", "PUT", "DELETE"])
    def test_out_of_range_id_is_400(self, api_client, make_user, method, raw) -> None:
        client, _store, _tokens = api_client
        _admin, token = make_user(role="admin")
        kwargs = {"headers": bearer(token)}
        if method == "PUT":
            kwargs["json"] = {"name": "Nobody"}
        resp = client.request(method, f"/users/{raw}", **kwargs)
        assert resp.status_code == 400, resp.text
        body = resp.json()
        assert body["error"] == "Validation failed"
        assert body["details"][0]["field"] == "id"
