# ================================
# AUTH API TESTS (test_auth.py)
# ================================

from conftest import API


class TestRegister:

    def test_register_returns_token_and_user(self, client):
        response = client.post(f"{API}/auth/register", json={
            "username": "painter",
            "email": "Painter@Example.com",
            "password": "secret123"
        })

        assert response.status_code == 201
        data = response.json()
        assert data["token_type"] == "bearer"
        assert data["access_token"]
        assert data["expires_in"] > 0
        assert data["user"]["email"] == "painter@example.com"
        assert data["user"]["username"] == "painter"

    def test_duplicate_email_rejected(self, client, auth_headers):
        response = client.post(f"{API}/auth/register", json={
            "username": "someone_else",
            "email": "owner@example.com",
            "password": "secret123"
        })
        assert response.status_code == 400
        assert response.json()["detail"] == "Email already registered"

    def test_duplicate_username_rejected(self, client, auth_headers):
        response = client.post(f"{API}/auth/register", json={
            "username": "owner",
            "email": "other@example.com",
            "password": "secret123"
        })
        assert response.status_code == 400
        assert response.json()["detail"] == "Username already taken"

    def test_validation_errors_list_fields(self, client):
        response = client.post(f"{API}/auth/register", json={
            "username": "x",
            "email": "not-an-email",
            "password": "123"
        })

        assert response.status_code == 400
        data = response.json()
        assert data["detail"] == "Validation failed"
        fields = {error["field"] for error in data["errors"]}
        assert {"username", "email", "password"} <= fields


class TestLogin:

    def test_login_and_profile(self, client, auth_headers):
        response = client.post(f"{API}/auth/login", json={
            "email": "OWNER@example.com",
            "password": "secret123"
        })
        assert response.status_code == 200
        token = response.json()["access_token"]

        profile = client.get(f"{API}/auth/profile", headers={"Authorization": f"Bearer {token}"})
        assert profile.status_code == 200
        assert profile.json()["username"] == "owner"
        assert profile.json()["last_login_at"] is not None

    def test_wrong_password_and_unknown_email_look_the_same(self, client, auth_headers):
        wrong_password = client.post(f"{API}/auth/login", json={
            "email": "owner@example.com", "password": "nope"
        })
        unknown_email = client.post(f"{API}/auth/login", json={
            "email": "ghost@example.com", "password": "nope"
        })

        assert wrong_password.status_code == unknown_email.status_code == 401
        assert wrong_password.json()["detail"] == unknown_email.json()["detail"]


class TestProtectedRoutes:

    def test_missing_token(self, client):
        response = client.get(f"{API}/customers/")
        assert response.status_code == 401
        assert response.json()["error_code"] == "TOKEN_MISSING"

    def test_invalid_token(self, client):
        response = client.get(f"{API}/customers/", headers={"Authorization": "Bearer garbage"})
        assert response.status_code == 401
        assert response.json()["error_code"] == "TOKEN_INVALID"

    def test_health_is_public(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
