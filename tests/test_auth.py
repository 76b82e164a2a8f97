import datetime
import json

import pytest
from sqlalchemy import select

from conftest import make_user
from slotbook.models import AccountToken, AuthUser, OutboundEmail


@pytest.mark.auth
class TestAuthRegister:
    """Test suite for account registration."""

    @pytest.fixture
    def register_data(self):
        return {
            "fullName": "New User",
            "email": "NewUser@Example.com",
            "password": "password123",
            "phone": "555-0199",
        }

    def test_register_success(self, client, register_data):
        response = client.post(
            "/api/auth/register",
            data=json.dumps(register_data),
            content_type="application/json",
        )

        assert response.status_code == 201
        body = response.get_json()
        assert body["success"] is True
        assert body["data"]["email"] == "newuser@example.com"
        assert body["data"]["role"] == "CUSTOMER"
        assert "timestamp" in body

    def test_register_business_owner(self, client, register_data):
        register_data["role"] = "business_owner"
        response = client.post("/api/auth/register", json=register_data)

        assert response.status_code == 201
        assert response.get_json()["data"]["role"] == "BUSINESS_OWNER"

    def test_register_staff_is_refused(self, client, register_data):
        register_data["role"] = "STAFF"
        response = client.post("/api/auth/register", json=register_data)

        assert response.status_code == 400
        assert response.get_json()["error"] == "VALIDATION_FAILED"

    @pytest.mark.parametrize("field", ["email", "password", "fullName"])
    def test_register_missing_field(self, client, register_data, field):
        register_data.pop(field)
        response = client.post("/api/auth/register", json=register_data)

        assert response.status_code == 400
        body = response.get_json()
        assert body["success"] is False
        assert field in body["message"]

    def test_register_short_password(self, client, register_data):
        register_data["password"] = "short"
        response = client.post("/api/auth/register", json=register_data)
        assert response.status_code == 400

    def test_register_duplicate_email(self, client, register_data):
        client.post("/api/auth/register", json=register_data)
        response = client.post("/api/auth/register", json=register_data)

        assert response.status_code == 409
        assert "already exists" in response.get_json()["message"].lower()


@pytest.mark.auth
class TestAuthLogin:
    def test_login_success(self, client, customer_user):
        response = client.post(
            "/api/auth/login",
            json={"email": "customer@example.com", "password": "password123"},
        )

        assert response.status_code == 200
        data = response.get_json()["data"]
        assert data["tokenType"] == "Bearer"
        assert data["accessToken"]
        assert data["user"]["id"] == customer_user.id

    def test_login_wrong_password(self, client, customer_user):
        response = client.post(
            "/api/auth/login",
            json={"email": "customer@example.com", "password": "wrongpassword"},
        )

        assert response.status_code == 401
        assert response.get_json()["error"] == "AUTHENTICATION_REQUIRED"

    def test_login_unknown_email(self, client):
        response = client.post(
            "/api/auth/login",
            json={"email": "nobody@example.com", "password": "password123"},
        )
        assert response.status_code == 401

    def test_token_from_login_opens_me(self, client, customer_user):
        login = client.post(
            "/api/auth/login",
            json={"email": "customer@example.com", "password": "password123"},
        )
        token = login.get_json()["data"]["accessToken"]

        response = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 200
        assert response.get_json()["data"]["email"] == "customer@example.com"


@pytest.mark.auth
class TestTokenRequired:
    def test_missing_token(self, client):
        response = client.get("/api/auth/me")
        assert response.status_code == 401

    def test_garbage_token(self, client):
        response = client.get("/api/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == 401
        assert response.get_json()["success"] is False

    def test_expired_token(self, app, client, customer_user, headers_for):
        app.config["JWT_EXPIRES_MINUTES"] = -1
        try:
            headers = headers_for(customer_user)
        finally:
            app.config["JWT_EXPIRES_MINUTES"] = 60

        response = client.get("/api/auth/me", headers=headers)
        assert response.status_code == 401
        assert "expired" in response.get_json()["message"].lower()

    def test_wrong_role(self, client, customer_user, headers_for):
        response = client.get("/api/businesses/me", headers=headers_for(customer_user))
        assert response.status_code == 403
        assert response.get_json()["error"] == "UNAUTHORIZED"


@pytest.mark.auth
class TestUserProfile:
    def test_get_profile(self, client, customer_user, headers_for):
        response = client.get("/api/users/me", headers=headers_for(customer_user))

        assert response.status_code == 200
        assert response.get_json()["data"]["fullName"] == "Carl Customer"

    def test_update_profile(self, client, customer_user, headers_for):
        response = client.put(
            "/api/users/me",
            json={"fullName": "Carl C. Customer", "phone": "555-1234"},
            headers=headers_for(customer_user),
        )

        assert response.status_code == 200
        data = response.get_json()["data"]
        assert data["fullName"] == "Carl C. Customer"
        assert data["phone"] == "555-1234"

    def test_update_profile_empty_name(self, client, customer_user, headers_for):
        response = client.put(
            "/api/users/me", json={"fullName": "  "}, headers=headers_for(customer_user)
        )
        assert response.status_code == 400

    def test_change_password(self, client, db_session, headers_for):
        user = make_user(db_session, "pw@example.com", "CUSTOMER", password="oldpassword1")
        headers = headers_for(user)

        response = client.put(
            "/api/users/me/password",
            json={"currentPassword": "oldpassword1", "newPassword": "newpassword1"},
            headers=headers,
        )
        assert response.status_code == 200

        login = client.post(
            "/api/auth/login", json={"email": "pw@example.com", "password": "newpassword1"}
        )
        assert login.status_code == 200

    def test_change_password_wrong_current(self, client, customer_user, headers_for):
        response = client.put(
            "/api/users/me/password",
            json={"currentPassword": "nope-nope", "newPassword": "newpassword1"},
            headers=headers_for(customer_user),
        )
        assert response.status_code == 400


def latest_token(session, email, purpose):
    return session.scalars(
        select(AccountToken)
        .join(AuthUser, AuthUser.id == AccountToken.user_id)
        .where(AuthUser.email == email, AccountToken.purpose == purpose)
        .order_by(AccountToken.id.desc())
    ).first()


@pytest.mark.auth
class TestEmailVerification:
    @pytest.fixture
    def registered(self, client):
        client.post(
            "/api/auth/register",
            json={"fullName": "Vera Verify", "email": "vera@example.com", "password": "password123"},
        )
        return "vera@example.com"

    def login(self, client, email="vera@example.com", password="password123"):
        return client.post("/api/auth/login", json={"email": email, "password": password})

    def test_register_queues_verification_email(self, db_session, registered):
        mail = db_session.scalars(
            select(OutboundEmail).where(OutboundEmail.recipient == registered)
        ).one()
        token = latest_token(db_session, registered, "VERIFY_EMAIL")

        assert mail.template == "VERIFY_EMAIL"
        assert mail.payload["link"].endswith(f"/verify-email?token={token.token}")
        assert token.used_at is None

    def test_unverified_login_is_refused(self, client, registered):
        response = self.login(client)

        assert response.status_code == 403
        body = response.get_json()
        assert body["error"] == "EMAIL_NOT_VERIFIED"
        assert "not verified" in body["message"].lower()

    def test_verify_then_login(self, client, db_session, registered):
        token = latest_token(db_session, registered, "VERIFY_EMAIL").token

        response = client.get("/api/auth/verify-email", query_string={"token": token})
        assert response.status_code == 200
        assert response.get_json()["data"]["emailVerified"] is True

        assert self.login(client).status_code == 200

    def test_verification_link_works_once(self, client, db_session, registered):
        token = latest_token(db_session, registered, "VERIFY_EMAIL").token
        client.get("/api/auth/verify-email", query_string={"token": token})

        again = client.get("/api/auth/verify-email", query_string={"token": token})
        assert again.status_code == 409

    def test_expired_verification_link(self, client, db_session, registered):
        token = latest_token(db_session, registered, "VERIFY_EMAIL")
        token.expires_at = datetime.datetime.now() - datetime.timedelta(minutes=1)
        db_session.commit()

        response = client.get("/api/auth/verify-email", query_string={"token": token.token})
        assert response.status_code == 409
        assert "expired" in response.get_json()["message"]

    def test_unknown_token(self, client):
        response = client.get("/api/auth/verify-email", query_string={"token": "nope"})
        assert response.status_code == 404

    def test_missing_token(self, client):
        response = client.get("/api/auth/verify-email")
        assert response.status_code == 400

    def test_resend_retires_the_old_link(self, client, db_session, registered):
        old = latest_token(db_session, registered, "VERIFY_EMAIL").token

        response = client.post("/api/auth/resend-verification", query_string={"email": registered})
        assert response.status_code == 200

        new = latest_token(db_session, registered, "VERIFY_EMAIL").token
        assert new != old
        assert client.get("/api/auth/verify-email", query_string={"token": old}).status_code == 409
        assert client.get("/api/auth/verify-email", query_string={"token": new}).status_code == 200

    def test_resend_for_unknown_email_looks_the_same(self, client, db_session):
        response = client.post(
            "/api/auth/resend-verification", query_string={"email": "ghost@example.com"}
        )

        assert response.status_code == 200
        assert db_session.scalars(select(OutboundEmail)).all() == []

    def test_resend_skips_verified_accounts(self, client, db_session, customer_user):
        client.post("/api/auth/resend-verification", query_string={"email": "customer@example.com"})
        assert latest_token(db_session, "customer@example.com", "VERIFY_EMAIL") is None

    def test_login_without_verification_when_disabled(self, app, client, registered, monkeypatch):
        monkeypatch.setitem(app.config, "REQUIRE_EMAIL_VERIFICATION", False)
        assert self.login(client).status_code == 200


@pytest.mark.auth
class TestPasswordReset:
    def test_forgot_then_reset(self, client, db_session, customer_user):
        response = client.post(
            "/api/auth/forgot-password", query_string={"email": "Customer@Example.com"}
        )
        assert response.status_code == 200

        token = latest_token(db_session, "customer@example.com", "RESET_PASSWORD").token
        reset = client.post(
            "/api/auth/reset-password",
            query_string={"token": token, "newPassword": "brandnew123"},
        )
        assert reset.status_code == 200

        old_login = client.post(
            "/api/auth/login", json={"email": "customer@example.com", "password": "password123"}
        )
        new_login = client.post(
            "/api/auth/login", json={"email": "customer@example.com", "password": "brandnew123"}
        )
        assert old_login.status_code == 401
        assert new_login.status_code == 200

    def test_reset_accepts_json_body(self, client, db_session, customer_user):
        client.post("/api/auth/forgot-password", json={"email": "customer@example.com"})
        token = latest_token(db_session, "customer@example.com", "RESET_PASSWORD").token

        reset = client.post(
            "/api/auth/reset-password", json={"token": token, "newPassword": "brandnew123"}
        )
        assert reset.status_code == 200

    def test_reset_link_works_once(self, client, db_session, customer_user):
        client.post("/api/auth/forgot-password", query_string={"email": "customer@example.com"})
        token = latest_token(db_session, "customer@example.com", "RESET_PASSWORD").token
        params = {"token": token, "newPassword": "brandnew123"}

        client.post("/api/auth/reset-password", query_string=params)
        again = client.post("/api/auth/reset-password", query_string=params)
        assert again.status_code == 409

    def test_short_password_keeps_the_link_usable(self, client, db_session, customer_user):
        client.post("/api/auth/forgot-password", query_string={"email": "customer@example.com"})
        token = latest_token(db_session, "customer@example.com", "RESET_PASSWORD").token

        short = client.post(
            "/api/auth/reset-password", query_string={"token": token, "newPassword": "short"}
        )
        assert short.status_code == 400

        ok = client.post(
            "/api/auth/reset-password", query_string={"token": token, "newPassword": "longenough1"}
        )
        assert ok.status_code == 200

    def test_expired_reset_link(self, client, db_session, customer_user):
        client.post("/api/auth/forgot-password", query_string={"email": "customer@example.com"})
        token = latest_token(db_session, "customer@example.com", "RESET_PASSWORD")
        token.expires_at = datetime.datetime.now() - datetime.timedelta(seconds=1)
        db_session.commit()

        response = client.post(
            "/api/auth/reset-password",
            query_string={"token": token.token, "newPassword": "brandnew123"},
        )
        assert response.status_code == 409

    def test_verification_token_cannot_reset_password(self, client, db_session):
        client.post(
            "/api/auth/register",
            json={"fullName": "Rita Reset", "email": "rita@example.com", "password": "password123"},
        )
        token = latest_token(db_session, "rita@example.com", "VERIFY_EMAIL").token

        response = client.post(
            "/api/auth/reset-password",
            query_string={"token": token, "newPassword": "brandnew123"},
        )
        assert response.status_code == 404

    def test_forgot_for_unknown_email(self, client, db_session):
        response = client.post(
            "/api/auth/forgot-password", query_string={"email": "ghost@example.com"}
        )

        assert response.status_code == 200
        assert db_session.scalars(select(AccountToken)).all() == []

    def test_reset_verifies_the_address(self, client, db_session):
        client.post(
            "/api/auth/register",
            json={"fullName": "Rita Reset", "email": "rita@example.com", "password": "password123"},
        )
        client.post("/api/auth/forgot-password", query_string={"email": "rita@example.com"})
        token = latest_token(db_session, "rita@example.com", "RESET_PASSWORD").token
        client.post(
            "/api/auth/reset-password", query_string={"token": token, "newPassword": "brandnew123"}
        )

        login = client.post(
            "/api/auth/login", json={"email": "rita@example.com", "password": "brandnew123"}
        )
        assert login.status_code == 200
