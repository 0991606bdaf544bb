"""Tests for auth and route guard endpoints (F6)."""

PASSWORD = "Secret123"


class TestSignup:
    """Tests for POST /api/auth/signup."""

    def test_eit_signup_lands_on_dashboard(self, signup):
        _, data = signup()
        assert data["role"] == "eit"
        assert data["redirect_to"] == "/dashboard"
        assert data["email"] == "alex@eit.test"

    def test_supervisor_signup(self, signup):
        _, data = signup("sam@sup.test", "supervisor", "Sam Lee")
        assert data["role"] == "supervisor"
        assert data["redirect_to"] == "/dashboard/supervisor"

    def test_weak_password_lists_errors(self, client):
        response = client.post(
            "/api/auth/signup",
            json={
                "email": "alex@eit.test",
                "password": "weak",
                "confirm_password": "weak",
                "full_name": "Alex",
                "role": "eit",
            },
        )
        assert response.status_code == 400
        errors = response.json()["errors"]
        assert "Password must contain at least one uppercase letter" in errors

    def test_duplicate_email(self, client, signup):
        signup()
        response = client.post(
            "/api/auth/signup",
            json={
                "email": "alex@eit.test",
                "password": PASSWORD,
                "confirm_password": PASSWORD,
                "full_name": "Alex",
                "role": "eit",
            },
        )
        assert response.status_code == 400

    def test_unknown_role_is_rejected(self, client):
        response = client.post(
            "/api/auth/signup",
            json={
                "email": "alex@eit.test",
                "password": PASSWORD,
                "confirm_password": PASSWORD,
                "full_name": "Alex",
                "role": "admin",
            },
        )
        assert response.status_code == 422


class TestLoginLogout:
    def test_login_and_session(self, client, signup):
        signup()
        response = client.post("/api/auth/login", json={"email": "alex@eit.test", "password": PASSWORD})
        assert response.status_code == 200
        headers = {"Authorization": f"Bearer {response.json()['token']}"}

        session = client.get("/api/auth/session", headers=headers)
        assert session.status_code == 200
        assert session.json()["role"] == "eit"

    def test_wrong_password(self, client, signup):
        signup()
        response = client.post("/api/auth/login", json={"email": "alex@eit.test", "password": "Nope12345"})
        assert response.status_code == 401
        assert response.json()["detail"] == "Authentication failed"

    def test_logout_ends_session(self, client, signup, registry):
        headers, _ = signup()
        client.get("/api/dashboard/progress", headers=headers)
        assert registry.identity_count == 1

        assert client.post("/api/auth/logout", headers=headers).status_code == 204

        assert registry.identity_count == 0
        response = client.get("/api/auth/session", headers=headers)
        assert response.status_code == 401
        assert response.json()["detail"]["redirect_to"] == "/login"

    def test_logout_keeps_other_sessions(self, client, signup, registry):
        signup_headers, _ = signup()
        response = client.post("/api/auth/login", json={"email": "alex@eit.test", "password": PASSWORD})
        login_headers = {"Authorization": f"Bearer {response.json()['token']}"}
        client.get("/api/dashboard/progress", headers=signup_headers)

        assert client.post("/api/auth/logout", headers=login_headers).status_code == 204

        assert registry.identity_count == 1
        assert client.get("/api/auth/session", headers=signup_headers).status_code == 200
        assert client.get("/api/auth/session", headers=login_headers).status_code == 401

    def test_missing_token(self, client):
        response = client.get("/api/auth/session")
        assert response.status_code == 401


class TestRouteGuard:
    """Tests for GET /api/route-guard."""

    def test_anonymous_goes_to_login(self, client):
        data = client.get("/api/route-guard", params={"required_role": "eit"}).json()
        assert data == {"allowed": False, "redirect_to": "/login", "role": None}

    def test_matching_role(self, client, signup):
        headers, _ = signup()
        data = client.get("/api/route-guard", params={"required_role": "eit"}, headers=headers).json()
        assert data["allowed"] is True
        assert data["role"] == "eit"

    def test_eit_on_supervisor_view(self, client, signup):
        headers, _ = signup()
        data = client.get(
            "/api/route-guard", params={"required_role": "supervisor"}, headers=headers
        ).json()
        assert data["allowed"] is False
        assert data["redirect_to"] == "/dashboard"

    def test_supervisor_blocked_from_eit_api(self, client, signup):
        headers, _ = signup("sam@sup.test", "supervisor", "Sam Lee")
        response = client.get("/api/dashboard/progress", headers=headers)
        assert response.status_code == 403
        assert response.json()["detail"]["redirect_to"] == "/dashboard/supervisor"
