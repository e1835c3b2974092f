"""Global pytest configuration."""

import os

# Set required settings for tests before any imports
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET", "test-secret-key-with-at-least-32-bytes!")
os.environ.setdefault("RATE_LIMIT_BACKEND", "memory")
