"""Shared fixtures: relay settings and a fake bank gateway."""

from datetime import datetime

import httpx
import pytest
from fastapi.testclient import TestClient

from merchantrelay.common.broadcast import BroadcastChannel
from merchantrelay.common.config import RelaySettings
from merchantrelay.services.relay.main import create_app


BILLER_ID = "123456789012345"
FIXED_NOW = datetime(2024, 3, 7, 9, 5, 1)


class FakeBank:
    """Records outbound requests and answers with a canned response."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.status_code = 200
        self.body: dict = {"status": {"code": 1000, "description": "Success"}, "data": {"ok": True}}
        self.error: Exception | None = None

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return httpx.Response(self.status_code, json=self.body)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture
def relay_settings():
    return RelaySettings(
        scb_base_url="https://bank.test",
        scb_path_prefix="/partners/sandbox/v1",
        scb_api_key="api-key",
        scb_biller_id=BILLER_ID,
        _env_file=None,
    )


@pytest.fixture
def bank():
    return FakeBank()


@pytest.fixture
def channel():
    return BroadcastChannel()


@pytest.fixture
def client(relay_settings, bank, channel):
    app = create_app(relay_settings, transport=bank.transport, channel=channel, clock=lambda: FIXED_NOW)
    with TestClient(app) as test_client:
        yield test_client
