"""Global test fixtures and utilities for txload tests"""
import asyncio
import json
from typing import List, Optional, Tuple

import httpx
import pytest

from txload.metrics.collector import MetricsCollector
from txload.models.run_config import RunConfig, Stage


# ============================================================================
# Fake transaction API
# ============================================================================

class FakeTransactionApi:
    """
    In-process stand-in for the transaction API, served through httpx.MockTransport.

    Every request is appended to `calls` as (method, path) so tests can
    assert on ordering and skipped calls.
    """

    def __init__(
        self,
        create_status: int = 201,
        transaction_id=1,
        get_status: int = 200,
        update_status: int = 200,
        list_status: int = 200,
        get_id=None,
        list_body: Optional[dict] = None,
        create_body: Optional[bytes] = None,
        delay: float = 0.0,
        raise_on: Optional[str] = None
    ):
        self.create_status = create_status
        self.transaction_id = transaction_id
        self.get_status = get_status
        self.update_status = update_status
        self.list_status = list_status
        self.get_id = get_id if get_id is not None else transaction_id
        self.list_body = list_body if list_body is not None else {"content": [], "totalElements": 0}
        self.create_body = create_body
        self.delay = delay
        self.raise_on = raise_on
        self.calls: List[Tuple[str, str]] = []
        self.bodies: List[dict] = []

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def paths(self) -> List[str]:
        return [path for _, path in self.calls]

    async def handle(self, request: httpx.Request) -> httpx.Response:
        self.calls.append((request.method, request.url.path))
        if request.content:
            self.bodies.append(json.loads(request.content))
        if self.delay:
            await asyncio.sleep(self.delay)

        if self.raise_on and request.url.path == self.raise_on:
            raise httpx.ConnectError("connection refused", request=request)

        if request.method == "POST":
            if self.create_body is not None:
                return httpx.Response(self.create_status, content=self.create_body)
            body = {"id": self.transaction_id, "amount": 100.0, "currency": "USD",
                    "type": "PAYMENT", "status": "PENDING", "description": "Test transaction"}
            if self.create_status != 201:
                body = {"code": "INTERNAL_ERROR", "path": "/transactions"}
            return httpx.Response(self.create_status, json=body)

        if request.method == "PUT":
            return httpx.Response(self.update_status, json={"id": self.transaction_id, "status": "COMPLETED"})

        if request.url.path == "/transactions":
            return httpx.Response(self.list_status, json=self.list_body)

        return httpx.Response(self.get_status, json={"id": self.get_id, "amount": "100.00"})


@pytest.fixture
def fake_api():
    """Well-behaved API: create 201/id=1, get 200, update 200, list 200"""
    return FakeTransactionApi()


@pytest.fixture
def make_fake_api():
    """Factory for a FakeTransactionApi with custom statuses or bodies"""
    return FakeTransactionApi


# ============================================================================
# Metrics Fixtures
# ============================================================================

@pytest.fixture
def collector():
    """Fresh collector without the Prometheus mirror"""
    return MetricsCollector()


# ============================================================================
# Configuration Fixtures
# ============================================================================

@pytest.fixture
def short_run_config():
    """One worker for about half a second, fast ticks and think time"""
    return RunConfig(
        stages=[Stage(duration=0, target=1), Stage(duration=0.5, target=1)],
        graceful_ramp_down=0.5,
        thresholds={"http_req_duration": ["p(95)<2000"], "http_req_failed": ["rate<0.01"]},
        tick_interval=0.05,
        think_time=0.05,
    )
