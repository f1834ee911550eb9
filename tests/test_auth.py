import pytest
from datetime import datetime, timedelta, timezone
from httpx import AsyncClient
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from telecare.core.security import hash_reset_token, verify_password, get_password_hash
from telecare.domain.auth.models import User, UserStatus
from telecare.domain.auth.repository import UserRepository
from telecare.domain.bookings.models import Booking
from telecare.infrastructure.payments import CaptureResult
from conftest import CLIENT_PASSWORD, auth_headers, make_user

REGISTRATION = {
    "name": "New Patient",
    "email": "New.Patient@Example.com",
    "contact": "+923001234567",
    "city": "Karachi",
    "address": "4 Clifton Block 5",
    "postalCode": "75600",
    "password": "secret-pass-1",
    "appointmentDateandTime": "2030-06-01T09:00:00Z",
    "bookingfee": 40,
    "paymentMethodid": "pm_card_visa",
    "reason": "First consultation"
}


async def count_rows(db: AsyncSession, model) -> int:
    return await db.scalar(select(func.count()).select_from(model))


@pytest.mark.auth
@pytest.mark.integration
class TestRegistration:
    """Sign-up bundled with the first paid booking."""

    async def test_register_creates_user_and_booking(self, client: AsyncClient, db_session: AsyncSession) -> None:
        response = await client.post("/api/v1/auth/register", json=REGISTRATION)

        assert response.status_code == 201
        body = response.json()
        assert body["token"]
        assert body["data"]["email"] == "new.patient@example.com"
        assert body["data"]["status"] == "Active"
        assert "password_hash" not in body["data"]
        assert "password" not in body["data"]

        assert await count_rows(db_session, User) == 1
        booking = (await db_session.execute(select(Booking))).scalar_one()
        assert str(booking.patient_id) == body["data"]["id"]

    async def test_register_token_is_usable(self, client: AsyncClient) -> None:
        response = await client.post("/api/v1/auth/register", json=REGISTRATION)
        token = response.json()["token"]

        response = await client.get("/api/v1/users/me", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 200
        assert response.json()["data"]["city"] == "Karachi"

    async def test_register_duplicate_email(self, client: AsyncClient, client_user: User, payment_gateway) -> None:
        response = await client.post("/api/v1/auth/register", json={**REGISTRATION, "email": "PATIENT@example.com"})

        assert response.status_code == 409
        assert response.json()["details"] == {"email": "Email already exists!"}
        payment_gateway.authorize.assert_not_awaited()

    async def test_register_capture_failure_leaves_no_account(
        self, client: AsyncClient, db_session: AsyncSession, payment_gateway
    ) -> None:
        payment_gateway.capture.return_value = CaptureResult(status="failed")

        response = await client.post("/api/v1/auth/register", json=REGISTRATION)

        assert response.status_code == 400
        assert response.json()["error_code"] == "CAPTURE_FAILED"
        payment_gateway.cancel.assert_awaited_once_with("pi_test_123")
        assert await count_rows(db_session, User) == 0
        assert await count_rows(db_session, Booking) == 0

    async def test_register_rejects_bad_contact(self, client: AsyncClient) -> None:
        response = await client.post("/api/v1/auth/register", json={**REGISTRATION, "contact": "0300-1234567"})

        assert response.status_code == 422
        assert "contact" in response.json()["validation_errors"]


@pytest.mark.auth
@pytest.mark.unit
async def test_repository_add_only_stages_user(db_session: AsyncSession) -> None:
    user = UserRepository(db_session).add({
        "name": "Staged Person",
        "email": "staged@example.com",
        "password": "secret-pass-1"
    })

    assert user in db_session.new
    assert verify_password("secret-pass-1", user.password_hash)

    await db_session.rollback()
    assert await count_rows(db_session, User) == 0


@pytest.mark.auth
@pytest.mark.integration
class TestLogin:

    async def test_login_success(self, client: AsyncClient, client_user: User) -> None:
        response = await client.post("/api/v1/auth/login", json={
            "email": "Patient@Example.com",
            "password": CLIENT_PASSWORD
        })

        assert response.status_code == 200
        body = response.json()
        assert body["token_type"] == "bearer"
        assert body["data"]["id"] == str(client_user.id)
        assert body["data"]["last_login_at"] is not None

    async def test_login_wrong_password(self, client: AsyncClient, client_user: User) -> None:
        response = await client.post("/api/v1/auth/login", json={
            "email": client_user.email,
            "password": "not-the-password"
        })

        assert response.status_code == 401
        assert response.json()["details"] == {"password": "Invalid Credentials"}

    async def test_login_unknown_email(self, client: AsyncClient) -> None:
        response = await client.post("/api/v1/auth/login", json={
            "email": "nobody@example.com",
            "password": "whatever"
        })
        assert response.status_code == 401

    async def test_login_suspended_account(self, client: AsyncClient, db_session: AsyncSession) -> None:
        await make_user(db_session, "suspended@example.com", status=UserStatus.SUSPEND)

        response = await client.post("/api/v1/auth/login", json={
            "email": "suspended@example.com",
            "password": CLIENT_PASSWORD
        })
        assert response.status_code == 401

    @pytest.mark.parametrize("status", [UserStatus.PENDING, UserStatus.REJECTED, UserStatus.DELETE])
    async def test_login_account_not_available(
        self, client: AsyncClient, db_session: AsyncSession, status: UserStatus
    ) -> None:
        await make_user(db_session, "gated@example.com", status=status)

        response = await client.post("/api/v1/auth/login", json={
            "email": "gated@example.com",
            "password": CLIENT_PASSWORD
        })
        assert response.status_code == 404
        assert "Admin" in response.json()["message"]


@pytest.mark.auth
@pytest.mark.integration
class TestPasswordReset:

    async def test_forgot_password_emails_link_and_stores_hash(
        self, client: AsyncClient, db_session: AsyncSession, client_user: User, email_sender
    ) -> None:
        response = await client.post(
            "/api/v1/auth/forgot-password",
            json={"email": client_user.email},
            headers={"origin": "https://app.telecare.example"}
        )

        assert response.status_code == 200
        recipient, template_name, subject, data = email_sender.send_template.await_args.args
        assert recipient == client_user.email
        assert template_name == "forgot_password"
        assert subject == "Reset Your Password"
        assert data["url"].startswith("https://app.telecare.example/reset-password?token=")

        raw_token = data["url"].split("token=", 1)[1]
        user = await db_session.get(User, client_user.id, populate_existing=True)
        assert user.password_reset_token == hash_reset_token(raw_token)
        assert user.password_reset_token != raw_token
        assert user.password_reset_expires > datetime.utcnow() + timedelta(minutes=9)

    async def test_forgot_password_unknown_email(self, client: AsyncClient) -> None:
        response = await client.post("/api/v1/auth/forgot-password", json={"email": "nobody@example.com"})
        assert response.status_code == 404

    async def test_forgot_password_email_failure_clears_token(
        self, client: AsyncClient, db_session: AsyncSession, client_user: User, email_sender
    ) -> None:
        email_sender.send_template.side_effect = RuntimeError("provider down")

        response = await client.post("/api/v1/auth/forgot-password", json={"email": client_user.email})

        assert response.status_code == 500
        user = await db_session.get(User, client_user.id, populate_existing=True)
        assert user.password_reset_token is None
        assert user.password_reset_expires is None

    async def _issue_reset_token(self, db: AsyncSession, user: User, expires_in: timedelta) -> str:
        raw_token = "a" * 64
        user.password_reset_token = hash_reset_token(raw_token)
        user.password_reset_expires = datetime.utcnow() + expires_in
        await db.commit()
        return raw_token

    async def test_reset_password_success(
        self, client: AsyncClient, db_session: AsyncSession, client_user: User
    ) -> None:
        raw_token = await self._issue_reset_token(db_session, client_user, timedelta(minutes=10))

        response = await client.patch("/api/v1/auth/reset-password", json={
            "token": raw_token,
            "password": "brand-new-pass"
        })

        assert response.status_code == 200
        new_token = response.json()["token"]

        user = await db_session.get(User, client_user.id, populate_existing=True)
        assert user.password_reset_token is None
        assert user.verify_password("brand-new-pass")

        response = await client.get("/api/v1/users/me", headers={"Authorization": f"Bearer {new_token}"})
        assert response.status_code == 200

    async def test_reset_password_must_change_password(
        self, client: AsyncClient, db_session: AsyncSession, client_user: User
    ) -> None:
        raw_token = await self._issue_reset_token(db_session, client_user, timedelta(minutes=10))

        response = await client.patch("/api/v1/auth/reset-password", json={
            "token": raw_token,
            "password": CLIENT_PASSWORD
        })

        assert response.status_code == 422
        assert "password" in response.json()["details"]

    async def test_reset_password_expired_token(
        self, client: AsyncClient, db_session: AsyncSession, client_user: User
    ) -> None:
        raw_token = await self._issue_reset_token(db_session, client_user, timedelta(minutes=-1))

        response = await client.patch("/api/v1/auth/reset-password", json={
            "token": raw_token,
            "password": "brand-new-pass"
        })

        assert response.status_code == 404
        assert response.json()["message"] == "Invalid request."


@pytest.mark.auth
@pytest.mark.integration
class TestPasswordChange:

    async def test_update_password(
        self, client: AsyncClient, db_session: AsyncSession, client_user: User, client_headers: dict
    ) -> None:
        response = await client.patch("/api/v1/auth/update-password", headers=client_headers, json={
            "oldPassword": CLIENT_PASSWORD,
            "password": "another-pass-9"
        })

        assert response.status_code == 200
        assert response.json()["data"] == {"email": client_user.email}
        user = await db_session.get(User, client_user.id, populate_existing=True)
        assert user.verify_password("another-pass-9")
        assert user.password_changed_at is not None

    async def test_update_password_wrong_old_password(self, client: AsyncClient, client_headers: dict) -> None:
        response = await client.patch("/api/v1/auth/update-password", headers=client_headers, json={
            "oldPassword": "wrong-pass",
            "password": "another-pass-9"
        })

        assert response.status_code == 422
        assert response.json()["details"] == {"password": "Provided old password is incorrect"}

    async def test_update_password_requires_auth(self, client: AsyncClient) -> None:
        response = await client.patch("/api/v1/auth/update-password", json={
            "oldPassword": CLIENT_PASSWORD,
            "password": "another-pass-9"
        })
        assert response.status_code == 401

    async def test_create_first_password(self, client: AsyncClient, db_session: AsyncSession) -> None:
        user = User(email="invited@example.com", name="Invited", status=UserStatus.ACTIVE)
        db_session.add(user)
        await db_session.commit()
        await db_session.refresh(user)

        response = await client.patch(
            "/api/v1/auth/create-first-password",
            headers=auth_headers(user),
            json={"password": "first-pass-1"}
        )

        assert response.status_code == 200
        response = await client.post("/api/v1/auth/login", json={
            "email": "invited@example.com",
            "password": "first-pass-1"
        })
        assert response.status_code == 200


@pytest.mark.auth
@pytest.mark.integration
class TestAccessTokens:

    async def test_missing_token(self, client: AsyncClient) -> None:
        response = await client.get("/api/v1/users/me")
        assert response.status_code == 401

    async def test_garbage_token(self, client: AsyncClient) -> None:
        response = await client.get("/api/v1/users/me", headers={"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == 401

    async def test_token_issued_before_password_change_is_rejected(
        self, client: AsyncClient, db_session: AsyncSession, client_user: User, client_headers: dict
    ) -> None:
        client_user.password_changed_at = datetime.utcnow() + timedelta(hours=1)
        await db_session.commit()

        response = await client.get("/api/v1/users/me", headers=client_headers)
        assert response.status_code == 401

    async def test_inactive_account_token_is_rejected(
        self, client: AsyncClient, db_session: AsyncSession, client_user: User, client_headers: dict
    ) -> None:
        client_user.status = UserStatus.INACTIVE
        await db_session.commit()

        response = await client.get("/api/v1/users/me", headers=client_headers)
        assert response.status_code == 401


@pytest.mark.auth
@pytest.mark.unit
class TestPasswordHashing:

    def test_password_hashing(self) -> None:
        hashed = get_password_hash("client-pass-123")
        assert hashed != "client-pass-123"
        assert verify_password("client-pass-123", hashed)
        assert not verify_password("wrong", hashed)

    def test_change_password_backdates_timestamp(self) -> None:
        user = User(email="x@example.com")
        before = datetime.utcnow()
        user.change_password("new-pass-123")

        assert user.password_changed_at < before
        assert user.verify_password("new-pass-123")
        assert not user.changed_password_after(int(before.replace(tzinfo=timezone.utc).timestamp()))
