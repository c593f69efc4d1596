"""HTTP tests for /v1/auth."""

from fastapi.testclient import TestClient

from comment_system.auth.models import User


REGISTER_URL = "/v1/auth/register"
LOGIN_URL = "/v1/auth/login"
ME_URL = "/v1/auth/me"


def registration(**overrides) -> dict[str, str]:
    data = {"name": "Alice", "email": "alice@example.com", "password": "secret123"}
    data.update(overrides)
    return data


class TestRegister:
    """Tests for POST /v1/auth/register."""

    def test_register_returns_token(self, client: TestClient) -> None:
        response = client.post(REGISTER_URL, json=registration(phone="11999998888"))

        assert response.status_code == 201
        body = response.json()
        assert body["token_type"] == "Bearer"
        assert body["access_token"]
        assert body["user"]["email"] == "alice@example.com"
        assert body["user"]["phone"] == "11999998888"
        assert "password_hash" not in body["user"]

    def test_register_duplicate_email(self, client: TestClient) -> None:
        client.post(REGISTER_URL, json=registration())

        response = client.post(REGISTER_URL, json=registration(email="ALICE@example.com"))

        assert response.status_code == 409

    def test_register_validation(self, client: TestClient) -> None:
        short_name = client.post(REGISTER_URL, json=registration(name="Al"))
        short_password = client.post(REGISTER_URL, json=registration(password="12345"))
        bad_phone = client.post(REGISTER_URL, json=registration(phone="12-34"))
        bad_email = client.post(REGISTER_URL, json=registration(email="not-an-email"))

        for response in (short_name, short_password, bad_phone, bad_email):
            assert response.status_code == 422


class TestLogin:
    """Tests for POST /v1/auth/login."""

    def test_login(self, client: TestClient) -> None:
        client.post(REGISTER_URL, json=registration())

        response = client.post(
            LOGIN_URL, json={"email": "Alice@Example.com", "password": "secret123"}
        )

        assert response.status_code == 200
        assert response.json()["user"]["name"] == "Alice"

    def test_login_wrong_password(self, client: TestClient) -> None:
        client.post(REGISTER_URL, json=registration())

        response = client.post(
            LOGIN_URL, json={"email": "alice@example.com", "password": "wrong-one"}
        )

        assert response.status_code == 401
        assert response.json()["message"] == "Invalid credentials"


class TestMe:
    """Tests for GET /v1/auth/me."""

    def test_me(self, client: TestClient) -> None:
        token = client.post(REGISTER_URL, json=registration()).json()["access_token"]

        response = client.get(ME_URL, headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 200
        assert response.json()["email"] == "alice@example.com"

    def test_me_without_token(self, client: TestClient) -> None:
        response = client.get(ME_URL)
        assert response.status_code == 401
        assert response.headers["www-authenticate"] == "Bearer"

    def test_me_with_bad_token(self, client: TestClient) -> None:
        response = client.get(ME_URL, headers={"Authorization": "Bearer garbage"})
        assert response.status_code == 401
        assert response.json()["message"] == "Not authorized, token failed"

    def test_me_for_unknown_account(self, client: TestClient, headers_for) -> None:
        ghost = User(name="Ghost", email="ghost@example.com", password_hash="x")

        response = client.get(ME_URL, headers=headers_for(ghost))

        assert response.status_code == 404
