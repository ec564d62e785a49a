"""
Shared fixtures -- a scripted statement service behind httpx.MockTransport.
"""
from __future__ import annotations

import httpx
import pytest

from src.warehouse.statement_client import StatementClient
from tests.unit.fakes import FakeClock, ScriptedService


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def make_client(clock):
    """Build a StatementClient wired to a ScriptedService."""

    def _make(service: ScriptedService, **overrides) -> StatementClient:
        kwargs = dict(
            host="adb-123.azuredatabricks.net",
            token="dapi-test",
            warehouse_id="wh-1",
            poll_interval=0.35,
            timeout=15.0,
            transport=httpx.MockTransport(service.handler),
            sleep=clock.sleep,
            clock=clock,
        )
        kwargs.update(overrides)
        return StatementClient(**kwargs)

    return _make
