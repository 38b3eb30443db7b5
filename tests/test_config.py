"""Settings validation: JWT secrets and bcrypt cost are checked at startup."""

import os
import unittest
from unittest.mock import patch

from pydantic import ValidationError

from bitebox.core.config import Settings

ACCESS = "a" * 16 + "-access-secret-for-tests"
REFRESH = "r" * 16 + "-refresh-secret-for-tests"


def build(**overrides) -> Settings:
    values = {
        "DATABASE_URL": "sqlite://",
        "JWT_ACCESS_SECRET": ACCESS,
        "JWT_REFRESH_SECRET": REFRESH,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


class TestJwtSecrets(unittest.TestCase):
    def test_valid_secrets_accepted(self) -> None:
        s = build()
        self.assertEqual(s.JWT_ACCESS_SECRET.get_secret_value(), ACCESS)
        self.assertNotIn(ACCESS, repr(s))

    def test_missing_secrets_refused(self) -> None:
        with patch.dict(os.environ, {}, clear=True):
            with self.assertRaises(ValidationError):
                Settings(_env_file=None, DATABASE_URL="sqlite://")

    def test_equal_secrets_refused(self) -> None:
        with self.assertRaises(ValidationError):
            build(JWT_REFRESH_SECRET=ACCESS)

    def test_short_secret_refused(self) -> None:
        with self.assertRaises(ValidationError):
            build(JWT_ACCESS_SECRET="too-short")

    def test_placeholder_secret_refused(self) -> None:
        with self.assertRaises(ValidationError):
            build(JWT_ACCESS_SECRET="fallback_secret_key")

    def test_none_algorithm_refused(self) -> None:
        with self.assertRaises(ValidationError):
            build(JWT_ALGORITHM="none")


class TestOtherSettings(unittest.TestCase):
    def test_low_bcrypt_cost_refused_in_prod(self) -> None:
        with self.assertRaises(ValidationError):
            build(APP_ENV="prod", BCRYPT_ROUNDS=4)
        self.assertEqual(build(APP_ENV="prod", BCRYPT_ROUNDS=12).BCRYPT_ROUNDS, 12)

    def test_delay_cap_must_be_below_request_timeout(self) -> None:
        with self.assertRaises(ValidationError):
            build(SPEED_LIMIT_MAX_DELAY_MS=10_000, REQUEST_TIMEOUT_SEC=10)
        s = build()
        self.assertLess(s.SPEED_LIMIT_MAX_DELAY_MS / 1000, s.REQUEST_TIMEOUT_SEC)

    def test_unsupported_database_url_refused(self) -> None:
        with self.assertRaises(ValidationError):
            build(DATABASE_URL="mysql://localhost/bitebox")

    def test_frontend_url_trailing_slash_stripped(self) -> None:
        self.assertEqual(build(FRONTEND_URL="https://bitebox.example/").FRONTEND_URL, "https://bitebox.example")

    def test_defaults(self) -> None:
        s = build()
        self.assertEqual(s.ACCESS_TOKEN_EXPIRE_MINUTES, 1440)
        self.assertEqual(s.REFRESH_TOKEN_EXPIRE_DAYS, 7)
        self.assertEqual(s.RATE_LIMIT_MAX, 100)
        self.assertEqual(s.AUTH_RATE_LIMIT_MAX, 5)
        self.assertEqual(s.RATE_LIMIT_WINDOW_SECONDS, 900)
