from imobcrm.core.security import create_access_token, validate_password_strength
from imobcrm.models.user import UserRole

from conftest import PASSWORD

LOGIN = "/api/v1/auth/login"


class TestLogin:
    def test_login_success(self, client, consultant):
        resp = client.post(LOGIN, data={"username": consultant.email, "password": PASSWORD})
        assert resp.status_code == 200
        token = resp.json()["access_token"]
        me = client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert me.status_code == 200
        assert me.json()["email"] == consultant.email
        assert me.json()["role"] == "consultant"

    def test_wrong_password(self, client, consultant):
        resp = client.post(LOGIN, data={"username": consultant.email, "password": "Errada123"})
        assert resp.status_code == 400

    def test_unknown_user(self, client, db):
        resp = client.post(LOGIN, data={"username": "ninguem@imobcrm.com.br", "password": PASSWORD})
        assert resp.status_code == 400

    def test_lockout_after_repeated_failures(self, client, db, consultant):
        for _ in range(5):
            client.post(LOGIN, data={"username": consultant.email, "password": "Errada123"})
        resp = client.post(LOGIN, data={"username": consultant.email, "password": PASSWORD})
        assert resp.status_code == 423


class TestTokens:
    def test_unauthenticated(self, client):
        assert client.get("/api/v1/auth/me").status_code == 401

    def test_revoked_session(self, client, consultant, headers_for):
        headers = headers_for(consultant)
        assert client.post("/api/v1/auth/revoke", headers=headers).status_code == 200
        assert client.get("/api/v1/auth/me", headers=headers).status_code == 401

    def test_inactive_user(self, client, make_user):
        user = make_user(UserRole.consultant, is_active=False)
        token = create_access_token(str(user.id), user.role, user.session_version)
        resp = client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 403


class TestUsers:
    def test_manager_creates_broker(self, client, manager, headers_for):
        resp = client.post(
            "/api/v1/auth/users",
            json={"full_name": "Rafael", "email": "rafael@imobcrm.com.br", "password": "Corretor99", "role": "broker-junior"},
            headers=headers_for(manager),
        )
        assert resp.status_code == 200
        assert resp.json()["role"] == "broker-junior"

    def test_rejects_unknown_role_and_weak_password(self, client, manager, headers_for):
        headers = headers_for(manager)
        bad_role = {"full_name": "X", "email": "x@imobcrm.com.br", "password": "Corretor99", "role": "admin"}
        assert client.post("/api/v1/auth/users", json=bad_role, headers=headers).status_code == 400
        weak = {"full_name": "Y", "email": "y@imobcrm.com.br", "password": "fraca", "role": "consultant"}
        assert client.post("/api/v1/auth/users", json=weak, headers=headers).status_code == 400

    def test_consultant_cannot_create_users(self, client, consultant, headers_for):
        payload = {"full_name": "Z", "email": "z@imobcrm.com.br", "password": "Corretor99"}
        assert client.post("/api/v1/auth/users", json=payload, headers=headers_for(consultant)).status_code == 403


def test_password_strength():
    assert validate_password_strength("Senha1234")
    assert not validate_password_strength("senha1234")
    assert not validate_password_strength("Curta1")


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}
    assert resp.headers["x-content-type-options"] == "nosniff"
    assert "x-request-id" in resp.headers
