"""
Pytest configuration and shared fixtures for the test suite.
"""

import json
from dataclasses import dataclass
from typing import List

import httpx
import pytest

from vuowma.config import ForwarderSettings
from vuowma.forwarder import MessageForwarder
from vuowma.state.database import MessageStore


BASE_URL = "https://vuowma.example.edu/"
WEBHOOK_URL = "https://hooks.example.com/webhook/abc123"


# ============================================================================
# Configuration Fixtures
# ============================================================================

@pytest.fixture
def test_config(tmp_path) -> ForwarderSettings:
    """Create a test configuration."""
    return ForwarderSettings(
        base_url=BASE_URL,
        webhook_url=WEBHOOK_URL,
        message_format="messagecard",
        database_url=f"sqlite:///{tmp_path / 'vuowma.db'}",
        log_level="DEBUG",
    )


# ============================================================================
# Test Data
# ============================================================================

@dataclass
class StubMessage:
    """In-memory message for forwarder tests."""
    data: str

    def get_data(self) -> str:
        return self.data


@pytest.fixture
def base_url() -> str:
    """Public VuOwma URL used in links."""
    return BASE_URL


@pytest.fixture
def webhook_url() -> str:
    """Destination of forwarded messages."""
    return WEBHOOK_URL


@pytest.fixture
def make_message():
    """Factory for messages from a card or, with data=, a raw payload."""
    def _make(data=None, **card) -> StubMessage:
        return StubMessage(data if data is not None else json.dumps(card))
    return _make


# ============================================================================
# Mock Webhook
# ============================================================================

class MockWebhook:
    """Records requests and answers them with a fixed response."""

    def __init__(self):
        self.requests: List[httpx.Request] = []
        self.status_code = 200
        self.body = "1"

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status_code, text=self.body)

    def client(self) -> httpx.Client:
        return httpx.Client(transport=httpx.MockTransport(self.handler))

    @property
    def payloads(self) -> list:
        return [json.loads(r.content) for r in self.requests]


@pytest.fixture
def webhook() -> MockWebhook:
    """Create a mock webhook."""
    return MockWebhook()


@pytest.fixture
def forwarder(webhook) -> MessageForwarder:
    """Create a MessageCard forwarder posting to the mock webhook."""
    return MessageForwarder(
        base_url=BASE_URL,
        webhook_url=WEBHOOK_URL,
        client=webhook.client(),
    )


@pytest.fixture
def adaptive_forwarder(webhook) -> MessageForwarder:
    """Create an AdaptiveCard forwarder posting to the mock webhook."""
    return MessageForwarder(
        base_url=BASE_URL,
        webhook_url=WEBHOOK_URL,
        client=webhook.client(),
        message_format="adaptivecard",
    )


# ============================================================================
# Database
# ============================================================================

@pytest.fixture
def store(test_config) -> MessageStore:
    """Create a connected message store backed by a temporary SQLite file."""
    store = MessageStore(test_config)
    store.connect()
    yield store
    store.disconnect()
