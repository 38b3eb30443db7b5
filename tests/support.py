"""Shared fixtures: fresh SQLite schema per test and an app with captured reset tokens."""

import unittest
from datetime import datetime

from fastapi.testclient import TestClient

from bitebox.core.database import SessionLocal, engine
from bitebox.main import create_app
from bitebox.models import Base, User

PASSWORD = "Sw0rd!234"


class ResetTokenCapture:
    """Reset sender that keeps tokens instead of mailing them."""

    def __init__(self) -> None:
        self.sent: list[tuple[int, str, datetime]] = []

    def __call__(self, user: User, raw_token: str, expires_at: datetime) -> None:
        self.sent.append((user.id, raw_token, expires_at))

    @property
    def last_token(self) -> str:
        return self.sent[-1][1]


class DatabaseTestCase(unittest.TestCase):
    """Creates all tables before each test and drops them after."""

    def setUp(self) -> None:
        Base.metadata.create_all(engine)
        self.db = SessionLocal()

    def tearDown(self) -> None:
        self.db.close()
        Base.metadata.drop_all(engine)


class ApiTestCase(DatabaseTestCase):
    """DatabaseTestCase plus a TestClient on a freshly built app."""

    api = "/api"

    def setUp(self) -> None:
        super().setUp()
        self.reset_sender = ResetTokenCapture()
        self.app = create_app(reset_sender=self.reset_sender)
        self.app.state.speed_limiter.sleep = lambda seconds: None
        self.client = TestClient(self.app)

    def tearDown(self) -> None:
        self.client.close()
        super().tearDown()

    def register(
        self,
        email: str = "alice@example.com",
        password: str = PASSWORD,
        username: str = "alice",
    ):
        return self.client.post(
            f"{self.api}/auth/register",
            json={"email": email, "password": password, "username": username},
        )

    def login(self, email: str = "alice@example.com", password: str = PASSWORD):
        return self.client.post(
            f"{self.api}/auth/login",
            json={"email": email, "password": password},
        )
