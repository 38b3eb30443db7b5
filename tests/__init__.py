"""Test package. Seeds the environment before any bitebox module reads settings."""

import os

os.environ.update(
    {
        "APP_ENV": "dev",
        "DATABASE_URL": "sqlite://",
        "JWT_ACCESS_SECRET": "test-access-secret-0123456789abcdefghijkl",
        "JWT_REFRESH_SECRET": "test-refresh-secret-0123456789abcdefghijk",
        # Minimum cost keeps the suite fast; prod refuses anything below 12.
        "BCRYPT_ROUNDS": "4",
        "RATE_LIMIT_ENABLED": "true",
    }
)
