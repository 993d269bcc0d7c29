import pytest
from fastapi.testclient import TestClient

from voicemailai.main import app
from voicemailai.db import get_db, reset_db
from voicemailai.api.agent_chat import limiter
from voicemailai.services.offline_cache import reset_offline_cache

# Anything that would switch the app to a real backend is cleared per test
EXTERNAL_ENV = [
    "SUPABASE_URL",
    "SUPABASE_SERVICE_ROLE_KEY",
    "STRIPE_SECRET_KEY",
    "STRIPE_WEBHOOK_SECRET",
    "DEV_BYPASS_STRIPE",
    "APP_ENV",
    "APP_DOMAIN",
    "GEMINI_API_KEY",
    "OPEN_ROUTER_API",
    "OPENAI_API_KEY",
    "PWA_ALLOWED_ORIGINS",
    "PWA_CACHE_VERSION",
    "STRIPE_PRICE_BASIC_MONTHLY",
    "STRIPE_PRICE_PRO_MONTHLY",
    "STRIPE_PRICE_ENTERPRISE_MONTHLY",
    "STRIPE_PRICE_BASIC_YEARLY",
    "STRIPE_PRICE_PRO_YEARLY",
    "STRIPE_PRICE_ENTERPRISE_YEARLY",
]


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch):
    for name in EXTERNAL_ENV:
        monkeypatch.delenv(name, raising=False)
    reset_db()
    reset_offline_cache()
    limiter.reset()
    yield
    reset_db()
    reset_offline_cache()


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def db():
    return get_db()


@pytest.fixture
def stripe_key(monkeypatch):
    monkeypatch.setenv("STRIPE_SECRET_KEY", "sk_test_123")
