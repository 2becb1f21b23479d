"""Shared test fixtures for lockload tests."""

import httpx
import pytest
import structlog

from http_fakes import ACCOUNT_ID, RecordingTransport
from lockload.client import AccountClient
from lockload.models import LockingMode, RunConfig


@pytest.fixture(autouse=True)
def _reset_structlog():
    yield
    structlog.reset_defaults()
    structlog.contextvars.clear_contextvars()


@pytest.fixture
def run_config() -> RunConfig:
    return RunConfig(base_url="http://accounts.test", account_id=ACCOUNT_ID)


@pytest.fixture
def pessimistic_config() -> RunConfig:
    return RunConfig(
        base_url="http://accounts.test",
        account_id=ACCOUNT_ID,
        locking_mode=LockingMode.PESSIMISTIC,
    )


@pytest.fixture
def make_client():
    """handler 로 응답하는 AccountClient 생성기 -> (client, recorder)"""
    clients = []

    def _make(config: RunConfig, handler):
        recorder = RecordingTransport(handler)
        client = AccountClient(config, httpx.Client(transport=recorder.transport))
        clients.append(client)
        return client, recorder

    yield _make
    for client in clients:
        client.client.close()
