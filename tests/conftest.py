from __future__ import annotations

import json
import random
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import httpx
import pytest

# Ensure the repo root is on sys.path so `import ddbwire.*` works in tests.
ROOT_DIR = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT_DIR))

from ddbwire.dynamodb.client import DdbClient  # noqa: E402
from ddbwire.dynamodb.engine import RequestEngine  # noqa: E402
from ddbwire.dynamodb.retry import RetryPolicy  # noqa: E402
from ddbwire.dynamodb.signer import Credentials  # noqa: E402
from ddbwire.dynamodb.transport import HttpxTransport  # noqa: E402
from ddbwire.settings import DdbSettings  # noqa: E402

FIXED_NOW = datetime(2024, 5, 1, 12, 30, 0, tzinfo=timezone.utc)


class FakeDynamo:
    """Scripted DynamoDB endpoint for httpx.MockTransport.

    Each entry is (status, body, headers); the last entry repeats once the
    script runs out. A body that is `bytes` is sent verbatim, anything else as
    JSON. An exception instance is raised instead of responding.
    """

    def __init__(self, script: list[Any]):
        self.script = list(script)
        self.requests: list[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        step = self.script.pop(0) if len(self.script) > 1 else self.script[0]
        if isinstance(step, Exception):
            raise step
        status, body, headers = (tuple(step) + ({},))[:3]
        content = body if isinstance(body, bytes) else json.dumps(body).encode("utf-8")
        return httpx.Response(status, content=content, headers=headers)

    def payloads(self) -> list[dict[str, Any]]:
        return [json.loads(r.content) for r in self.requests]

    def targets(self) -> list[str]:
        return [r.headers["x-amz-target"] for r in self.requests]


class FakeSigner:
    def __init__(self, fail_with: Exception | None = None):
        self.calls: list[tuple[Any, ...]] = []
        self.fail_with = fail_with

    def sign(self, credentials, request, timestamp, region):
        self.calls.append((credentials, request, timestamp, region))
        if self.fail_with is not None:
            raise self.fail_with
        return f"AWS4-HMAC-SHA256 fake-{len(self.calls)}"


class SleepRecorder:
    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def sleeps() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def make_engine(sleeps):
    def _make(
        script: list[Any],
        *,
        retries: int = 3,
        signer: FakeSigner | None = None,
        credentials: Credentials | None = None,
        seed: int = 7,
    ) -> tuple[RequestEngine, FakeDynamo]:
        server = FakeDynamo(script)
        http_client = httpx.AsyncClient(transport=httpx.MockTransport(server.handler))
        engine = RequestEngine(
            endpoint="dynamodb.test.local",
            base_url="http://dynamodb.test.local:80/",
            region="us-east-1",
            credentials=credentials or Credentials(access_key_id="AKIDTEST", secret_access_key="secret"),
            signer=signer or FakeSigner(),
            transport=HttpxTransport(http_client),
            policy=RetryPolicy(retries=retries),
            sleep=sleeps,
            clock=lambda: FIXED_NOW,
            rng=random.Random(seed),
        )
        return engine, server

    return _make


@pytest.fixture
def make_client(make_engine):
    def _make(script: list[Any], **kwargs) -> tuple[DdbClient, FakeDynamo]:
        engine, server = make_engine(script, **kwargs)
        settings = DdbSettings(endpoint="dynamodb.test.local", access_key_id="AKIDTEST", secret_access_key="secret")
        return DdbClient(settings, engine=engine), server

    return _make


@pytest.fixture
def fake_signer():
    return FakeSigner
