"""HTTP-level tests for the auth routes, the guard chain and the error envelope."""

from unittest.mock import patch

from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from bitebox.models import User
from bitebox.services.credential_store import CredentialStore
from tests.support import PASSWORD, ApiTestCase


class TestRegisterAndLogin(ApiTestCase):
    def test_register_returns_user_and_tokens(self) -> None:
        res = self.register()
        self.assertEqual(res.status_code, 201)
        body = res.json()
        self.assertEqual(body["status"], "success")
        self.assertEqual(body["message"], "User registered successfully")
        data = body["data"]
        self.assertEqual(data["user"]["email"], "alice@example.com")
        self.assertEqual(data["user"]["username"], "alice")
        self.assertNotIn("role", data["user"])
        self.assertTrue(data["token"])
        self.assertTrue(data["refreshToken"])
        self.assertNotIn("password", res.text)

    def test_register_sets_session_cookie(self) -> None:
        res = self.register()
        cookie = res.headers["set-cookie"]
        self.assertIn("sessionId=", cookie)
        self.assertIn("HttpOnly", cookie)
        self.assertIn("samesite=lax", cookie.lower())

    def test_email_is_normalized(self) -> None:
        self.register(email="  Alice@Example.COM ")
        self.assertEqual(self.login(email="alice@example.com").status_code, 200)

    def test_duplicate_email(self) -> None:
        self.register()
        res = self.register(username="alice2")
        self.assertEqual(res.status_code, 400)
        self.assertEqual(res.json()["status"], "error")
        self.assertEqual(res.json()["message"], "User with this email already exists")

    def test_login_returns_role(self) -> None:
        self.register()
        res = self.login()
        self.assertEqual(res.status_code, 200)
        body = res.json()
        self.assertEqual(body["message"], "Login successful")
        self.assertEqual(body["data"]["user"]["role"], "customer")
        self.assertTrue(body["data"]["token"])
        self.assertTrue(body["data"]["refreshToken"])

    def test_bad_credentials_indistinguishable(self) -> None:
        self.register()
        wrong = self.login(password="Wr0ng!pass")
        unknown = self.login(email="nobody@example.com")
        self.assertEqual(wrong.status_code, 401)
        self.assertEqual(unknown.status_code, 401)
        self.assertEqual(wrong.json(), unknown.json())
        self.assertEqual(wrong.json()["message"], "Invalid credentials")


class TestValidation(ApiTestCase):
    def test_weak_password_rejected_without_echo(self) -> None:
        res = self.register(password="weakpass")
        self.assertEqual(res.status_code, 400)
        body = res.json()
        self.assertEqual(body["message"], "Validation failed")
        self.assertEqual(body["errors"][0]["field"], "password")
        self.assertNotIn("weakpass", res.text)

    def test_bad_username_rejected(self) -> None:
        res = self.register(username="al ice!")
        self.assertEqual(res.status_code, 400)
        self.assertEqual(res.json()["errors"][0]["field"], "username")

    def test_missing_fields(self) -> None:
        res = self.client.post(f"{self.api}/auth/login", json={})
        self.assertEqual(res.status_code, 400)
        fields = {e["field"] for e in res.json()["errors"]}
        self.assertEqual(fields, {"email", "password"})

    def test_unknown_route(self) -> None:
        res = self.client.get(f"{self.api}/nowhere")
        self.assertEqual(res.status_code, 404)
        self.assertEqual(res.json()["message"], "Route not found")


class TestInputGuards(ApiTestCase):
    def _user_count(self) -> int:
        return self.db.scalar(select(func.count()).select_from(User))

    def test_injection_in_body_rejected_before_store(self) -> None:
        res = self.register(email="bob--@example.com", username="bob")
        self.assertEqual(res.status_code, 400)
        self.assertEqual(res.json()["message"], "Invalid input detected.")
        self.assertEqual(self._user_count(), 0)

    def test_injection_in_query_rejected(self) -> None:
        res = self.client.post(
            f"{self.api}/auth/register",
            params={"next": "; DROP TABLE users;"},
            json={"email": "alice@example.com", "password": PASSWORD, "username": "alice"},
        )
        self.assertEqual(res.status_code, 400)
        self.assertEqual(res.json()["code"], "suspicious_input")
        self.assertEqual(self._user_count(), 0)

    def test_password_with_sql_characters_allowed(self) -> None:
        res = self.register(password="Sw0rd!--;x")
        self.assertEqual(res.status_code, 201)
        self.assertEqual(self.login(password="Sw0rd!--;x").status_code, 200)


class TestRateLimits(ApiTestCase):
    def test_sixth_auth_attempt_refused(self) -> None:
        statuses = [self.login(password="Wr0ng!pass").status_code for _ in range(6)]
        self.assertEqual(statuses[:5], [401] * 5)
        self.assertEqual(statuses[5], 429)

    def test_refusal_carries_headers_and_message(self) -> None:
        for _ in range(5):
            self.login()
        res = self.login()
        self.assertEqual(res.status_code, 429)
        self.assertEqual(res.json()["message"], "Too many authentication attempts, please try again later.")
        self.assertEqual(res.headers["RateLimit-Remaining"], "0")
        self.assertIn("Retry-After", res.headers)

    def test_success_carries_rate_limit_headers(self) -> None:
        res = self.client.get(f"{self.api}/health")
        self.assertEqual(res.headers["RateLimit-Limit"], "100")
        self.assertEqual(res.headers["RateLimit-Remaining"], "99")

    def test_repeated_auth_attempts_are_delayed(self) -> None:
        sleeps: list[float] = []
        self.app.state.speed_limiter.sleep = sleeps.append
        statuses = [self.login(password="Wr0ng!pass").status_code for _ in range(8)]
        self.assertEqual(statuses, [401] * 5 + [429] * 3)
        self.assertEqual(sleeps, [0.5, 1.0, 1.5])

    def test_auth_limit_does_not_block_other_routes(self) -> None:
        for _ in range(6):
            self.login()
        self.assertEqual(self.client.get(f"{self.api}/health").status_code, 200)


class TestRefreshAndLogout(ApiTestCase):
    def _refresh(self, token: str):
        return self.client.post(f"{self.api}/auth/refresh-token", json={"refreshToken": token})

    def test_rotation(self) -> None:
        first = self.register().json()["data"]["refreshToken"]
        res = self._refresh(first)
        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.json()["message"], "Token refreshed successfully")
        second = res.json()["data"]["refreshToken"]
        self.assertNotEqual(second, first)
        replay = self._refresh(first)
        self.assertEqual(replay.status_code, 401)
        self.assertEqual(replay.json()["message"], "Invalid refresh token")

    def test_missing_refresh_token(self) -> None:
        res = self.client.post(f"{self.api}/auth/refresh-token", json={})
        self.assertEqual(res.status_code, 400)

    def test_logout_revokes_and_clears_session(self) -> None:
        token = self.register().json()["data"]["refreshToken"]
        res = self.client.post(f"{self.api}/auth/logout", json={"refreshToken": token})
        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.json()["message"], "Logged out successfully")
        self.assertEqual(len(self.app.state.session_store), 0)
        self.assertEqual(self._refresh(token).status_code, 401)

    def test_logout_twice_and_without_token(self) -> None:
        token = self.register().json()["data"]["refreshToken"]
        for payload in ({"refreshToken": token}, {"refreshToken": token}, {}):
            res = self.client.post(f"{self.api}/auth/logout", json=payload)
            self.assertEqual(res.status_code, 200)


class TestPasswordResetApi(ApiTestCase):
    def test_forgot_password_answers_the_same(self) -> None:
        self.register()
        known = self.client.post(f"{self.api}/auth/forgot-password", json={"email": "alice@example.com"})
        unknown = self.client.post(f"{self.api}/auth/forgot-password", json={"email": "nobody@example.com"})
        self.assertEqual(known.status_code, 200)
        self.assertEqual(known.json(), unknown.json())
        self.assertEqual(len(self.reset_sender.sent), 1)

    def test_reset_then_login_with_new_password(self) -> None:
        self.register()
        self.client.post(f"{self.api}/auth/forgot-password", json={"email": "alice@example.com"})
        res = self.client.post(
            f"{self.api}/auth/reset-password",
            json={"token": self.reset_sender.last_token, "newPassword": "N3w!Passw0rd"},
        )
        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.json()["message"], "Password reset successfully")
        self.assertEqual(self.login(password="N3w!Passw0rd").status_code, 200)

    def test_reset_with_unknown_token(self) -> None:
        res = self.client.post(
            f"{self.api}/auth/reset-password",
            json={"token": "not-a-real-token", "newPassword": "N3w!Passw0rd"},
        )
        self.assertEqual(res.status_code, 400)
        self.assertEqual(res.json()["message"], "Invalid or expired reset token")

    def test_failing_delivery_still_answers_generically(self) -> None:
        def broken_sender(user, raw_token, expires_at) -> None:
            raise ConnectionError("smtp unreachable")

        self.app.state.reset_sender = broken_sender
        self.register()
        known = self.client.post(f"{self.api}/auth/forgot-password", json={"email": "alice@example.com"})
        unknown = self.client.post(f"{self.api}/auth/forgot-password", json={"email": "nobody@example.com"})
        self.assertEqual(known.status_code, 200)
        self.assertEqual(known.json(), unknown.json())


class TestRegisterFailure(ApiTestCase):
    def test_failed_registration_can_be_retried(self) -> None:
        error = OperationalError("INSERT INTO refresh_tokens", {}, Exception("disk I/O error"))
        with patch.object(CredentialStore, "upsert_refresh_token", side_effect=error):
            first = self.register()
        self.assertEqual(first.status_code, 500)
        self.assertEqual(first.json()["code"], "internal_error")
        retry = self.register()
        self.assertEqual(retry.status_code, 201)


class TestEmailNotEscaped(ApiTestCase):
    def test_apostrophe_in_email_round_trips(self) -> None:
        res = self.register(email="o'neil@example.com", username="oneil")
        self.assertEqual(res.status_code, 201)
        self.assertEqual(res.json()["data"]["user"]["email"], "o'neil@example.com")
        self.assertEqual(self.login(email="o'neil@example.com").status_code, 200)

    def test_markup_in_email_rejected(self) -> None:
        res = self.register(email="<b>x</b>@example.com", username="bold")
        self.assertEqual(res.status_code, 400)
        self.assertEqual(res.json()["errors"][0]["field"], "email")
