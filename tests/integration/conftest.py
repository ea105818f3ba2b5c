"""Shared fixtures for Vigil integration tests.

Provides a fully wired AlertService whose notification channels are real
channel classes talking to in-process httpx mock transports, so pipelines
can be exercised end to end without any network access.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field

import httpx
import pytest

from vigil.alerts.service import AlertService
from vigil.models.alerts import Severity
from vigil.models.config import AlertingConfig
from vigil.notifications.chat import ChatNotificationChannel
from vigil.notifications.manager import ChannelPolicy, NotificationDispatcher
from vigil.notifications.webhook import WebhookNotificationChannel


@dataclass
class Endpoint:
    """In-process HTTP endpoint that records JSON bodies it receives."""

    status_code: int = 200
    bodies: list[dict] = field(default_factory=list)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.bodies.append(json.loads(request.content))
        return httpx.Response(self.status_code)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture
def chat_endpoint() -> Endpoint:
    return Endpoint()


@pytest.fixture
def webhook_endpoint() -> Endpoint:
    return Endpoint()


@pytest.fixture
def dispatcher(chat_endpoint: Endpoint, webhook_endpoint: Endpoint) -> NotificationDispatcher:
    """Chat takes warning and above; webhook takes critical only."""
    return NotificationDispatcher(
        channels=[
            ChatNotificationChannel(webhook_url="https://chat.example.com/hook", transport=chat_endpoint.transport),
            WebhookNotificationChannel(url="https://hooks.example.com/vigil", transport=webhook_endpoint.transport),
        ],
        policies={
            "chat": ChannelPolicy(min_severity=Severity.WARNING),
            "webhook": ChannelPolicy(min_severity=Severity.CRITICAL),
        },
        timeout=2.0,
    )


@pytest.fixture
def service(dispatcher: NotificationDispatcher) -> AlertService:
    return AlertService.from_config(AlertingConfig(history_retention=50), dispatcher=dispatcher)
