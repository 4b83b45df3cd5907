"""
Test Configuration

Pytest configuration and fixtures for the test suite.
"""

import json
from typing import Generator, List, Tuple

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from app.config import Settings
from app.main import create_app
from app.models import CommentReply, DirectMessage, SendResult
from app.webhook.security import compute_signature

APP_SECRET = "test_secret"
VERIFY_TOKEN = "verify-me"
ACCOUNT_ID = "17841400000000000"


class RecordingMessenger:
    """Messenger double that records calls instead of hitting the network."""

    def __init__(self, fail_kinds: Tuple[str, ...] = ()):
        self.calls: List = []
        self.fail_kinds = fail_kinds

    def _result(self, call) -> SendResult:
        self.calls.append(call)
        if call.kind in self.fail_kinds:
            return SendResult(call=call, success=False, status_code=400, error="Invalid parameter")
        return SendResult(call=call, success=True)

    async def send_direct_message(self, recipient_id: str, text: str) -> SendResult:
        return self._result(DirectMessage(recipient_id=recipient_id, text=text))

    async def reply_to_comment(self, comment_id: str, text: str) -> SendResult:
        return self._result(CommentReply(comment_id=comment_id, text=text))

    @property
    def direct_messages(self) -> List[DirectMessage]:
        return [c for c in self.calls if isinstance(c, DirectMessage)]

    @property
    def comment_replies(self) -> List[CommentReply]:
        return [c for c in self.calls if isinstance(c, CommentReply)]


@pytest.fixture
def settings() -> Settings:
    """Fully configured settings, no maintenance task."""
    return Settings(
        page_access_token="test-page-token",
        verify_token=VERIFY_TOKEN,
        app_secret=APP_SECRET,
        instagram_account_id=ACCOUNT_ID,
        maintenance_enabled=False,
        log_json_format=False,
    )


@pytest.fixture
def messenger() -> RecordingMessenger:
    return RecordingMessenger()


@pytest.fixture
def app(settings: Settings, messenger: RecordingMessenger) -> FastAPI:
    return create_app(settings=settings, messenger=messenger)


@pytest.fixture
def client(app: FastAPI) -> Generator[TestClient, None, None]:
    """Create a test client for synchronous tests."""
    with TestClient(app) as test_client:
        yield test_client


def sign(body: bytes, secret: str = APP_SECRET) -> str:
    """Build an X-Hub-Signature-256 header value."""
    return f"sha256={compute_signature(body, secret)}"


def encode(payload: dict) -> bytes:
    return json.dumps(payload).encode()


def comment_change(comment_id: str = "17900000000000001", text: str = "I'm interested, dm me",
                   author_id: str = "9001") -> dict:
    return {
        "field": "comments",
        "value": {
            "id": comment_id,
            "text": text,
            "from": {"id": author_id, "username": "shopper"},
            "media": {"id": "17800000000000001", "media_product_type": "FEED"},
        },
    }


def message_event(sender_id: str = "9002", text: str = "hello there") -> dict:
    return {
        "sender": {"id": sender_id},
        "recipient": {"id": ACCOUNT_ID},
        "timestamp": 1700000000000,
        "message": {"mid": "m_1", "text": text},
    }


@pytest.fixture
def sample_comment_payload() -> dict:
    """Sample comment webhook payload."""
    return {
        "object": "instagram",
        "entry": [
            {
                "id": ACCOUNT_ID,
                "time": 1700000000,
                "changes": [comment_change()],
            }
        ],
    }


@pytest.fixture
def sample_message_payload() -> dict:
    """Sample direct message webhook payload."""
    return {
        "object": "instagram",
        "entry": [
            {
                "id": ACCOUNT_ID,
                "time": 1700000000,
                "messaging": [message_event()],
            }
        ],
    }
