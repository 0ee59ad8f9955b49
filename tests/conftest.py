import asyncio
import os
import sys
import tempfile
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

# Add the project root to sys.path to resolve module imports correctly
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

# Deterministic key material for the whole test session. Must be set before
# anything reads the settings.
os.environ.setdefault("OBFUSCATE_IDS_CIPHER_KEY", "test_cipher_key_32_chars_long123")
os.environ.setdefault("OBFUSCATE_IDS_NUMERIC_CIPHER_KEY", "123456789")
os.environ.setdefault("LOG_DIR", os.path.join(tempfile.gettempdir(), "payouts_api_test_logs"))

import db_manager  # noqa: E402
from obfuscation import IdObfuscator, ObfuscationKeys  # noqa: E402

SELLER_ID = 1
OTHER_SELLER_ID = 2


@pytest.fixture
def keys() -> ObfuscationKeys:
    return ObfuscationKeys(general_key="test_cipher_key_32_chars_long123", numeric_key="123456789")


@pytest.fixture
def obfuscator(keys) -> IdObfuscator:
    return IdObfuscator(keys)


@pytest.fixture
def db(tmp_path, monkeypatch):
    """An isolated, temporary database file with the schema applied."""
    monkeypatch.setattr("db_manager.DB_FILE", str(tmp_path / "test_payouts.db"))
    db_manager.init_db()
    return db_manager


@pytest.fixture
def client(db, monkeypatch):
    """
    Pytest fixture to provide a test client backed by the temporary database.
    Rate limiting is switched off so long pagination walks are not throttled.
    """
    from app import app
    from limiter import limiter

    monkeypatch.setattr(limiter, "enabled", False)

    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def seller_headers():
    return {"X-Tenant-Id": str(SELLER_ID)}


@pytest.fixture
def create_payout(db):
    """Synchronous helper for inserting payouts from tests."""
    def _create(user_id=SELLER_ID, created_at=None, amount_cents=150_00, currency="USD", state="completed"):
        return asyncio.run(db.create_payout(
            user_id=user_id,
            amount_cents=amount_cents,
            currency=currency,
            state=state,
            created_at=created_at,
        ))
    return _create


def days_ago(n: float) -> datetime:
    return datetime.now(timezone.utc) - timedelta(days=n)
