"""
Shared fixtures: a throwaway SQLite store, an Apple signing key, fake
collaborators and a TestClient wired through dependency overrides.
"""
import os
import time

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec
from fastapi.testclient import TestClient

import config
from apple_jws import AppleCredentials
from composer import MessageComposer
from database import SubscriptionStore
from dependencies import get_composer, get_orchestrator, get_store
from limiter import limiter
from main import app
from providers import NoopValidator, ValidationResult
from purchase import PurchaseOrchestrator

API_KEY = "test-api-key"


class RecordingValidator:
    """Returns a fixed result and remembers every purchase it was asked about."""

    name = "Fake"

    def __init__(self, result: ValidationResult | None = None):
        self.result = result or ValidationResult(is_valid=True)
        self.calls = []

    async def validate(self, purchase):
        self.calls.append(purchase)
        return self.result


class FakeGenerator:
    def __init__(self, text: str = "Generated text", error: Exception | None = None):
        self.text = text
        self.error = error
        self.calls = []

    async def generate(self, system_prompt: str, user_prompt: str) -> str:
        self.calls.append((system_prompt, user_prompt))
        if self.error:
            raise self.error
        return self.text


def _set_tz(value):
    if value is None:
        os.environ.pop("TZ", None)
    else:
        os.environ["TZ"] = value
    time.tzset()


@pytest.fixture
def utc_tz():
    """Run the test with the process-local time zone set to UTC."""
    previous = os.environ.get("TZ")
    _set_tz("UTC")
    yield
    _set_tz(previous)


@pytest.fixture
def local_tz():
    """Factory: switch the process-local time zone; restored afterwards."""
    previous = os.environ.get("TZ")
    yield _set_tz
    _set_tz(previous)


@pytest.fixture
def store(tmp_path):
    return SubscriptionStore(str(tmp_path / "subscriptions.db"))


@pytest.fixture
def signing_key_pem():
    key = ec.generate_private_key(ec.SECP256R1())
    return key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    ).decode()


@pytest.fixture
def apple_credentials(signing_key_pem):
    return AppleCredentials(
        key_id="KEY123",
        issuer_id="57246542-96fe-1a63-e053-0824d011072a",
        bundle_id="com.unsentpro.app",
        private_key=signing_key_pem,
    )


@pytest.fixture
def validator():
    return RecordingValidator()


@pytest.fixture
def generator():
    return FakeGenerator()


@pytest.fixture
def client(monkeypatch, store, validator, generator):
    monkeypatch.setattr(config, "API_KEY", API_KEY)
    monkeypatch.setattr(limiter, "enabled", False)

    orchestrator = PurchaseOrchestrator(validator=validator, store=store)
    composer = MessageComposer(store=store, generator=generator, prompts_dir=config.PROMPTS_DIR)
    app.dependency_overrides[get_orchestrator] = lambda: orchestrator
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_composer] = lambda: composer

    yield TestClient(app, raise_server_exceptions=False)

    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    return {"Authorization": API_KEY}


@pytest.fixture
def noop_client(monkeypatch, store):
    """Client for a deployment with no purchase provider configured."""
    monkeypatch.setattr(config, "API_KEY", API_KEY)
    monkeypatch.setattr(limiter, "enabled", False)

    orchestrator = PurchaseOrchestrator(validator=NoopValidator(), store=store)
    app.dependency_overrides[get_orchestrator] = lambda: orchestrator
    app.dependency_overrides[get_store] = lambda: store

    yield TestClient(app)

    app.dependency_overrides.clear()
