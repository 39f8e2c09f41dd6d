from __future__ import annotations

import asyncio
import json
import random
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Union

from ..observability.context import bind_operation, set_request_id
from ..observability.logging import get_logger
from .errors import (
    DdbEncodeError,
    DdbError,
    DdbParseError,
    DdbServiceError,
    DdbSigningError,
    DdbTransportError,
    classify_service_error,
)
from .retry import RetryPolicy
from .signer import Credentials, Signer, amz_date
from .transport import HttpRequest, HttpResponse, Transport

log = get_logger("ddb_engine")

TARGET_PREFIX = "DynamoDB_20120810"
CONTENT_TYPE = "application/x-amz-json-1.0"
REQUEST_ID_HEADER = "x-amzn-RequestId"


@dataclass(frozen=True, slots=True)
class Success:
    body: dict[str, Any]
    attempts: int = 1

    ok = True

    def unwrap(self) -> dict[str, Any]:
        return self.body


@dataclass(frozen=True, slots=True)
class Failure:
    error: DdbError
    attempts: int = 1

    ok = False

    def unwrap(self) -> dict[str, Any]:
        raise self.error


Outcome = Union[Success, Failure]


def consumed_capacity_units(body: dict[str, Any] | None) -> float:
    """Total `CapacityUnits` in a response (a single entry or one per table)."""
    cc = (body or {}).get("ConsumedCapacity")
    if isinstance(cc, dict):
        return float(cc.get("CapacityUnits") or 0)
    if isinstance(cc, list):
        return float(sum((c or {}).get("CapacityUnits") or 0 for c in cc))
    return 0.0


class CapacityMeter:
    """Running total of consumed capacity units, owned by one engine."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._total = 0.0

    def add(self, units: float) -> float:
        with self._lock:
            self._total += units
            return self._total

    @property
    def total(self) -> float:
        with self._lock:
            return self._total


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RequestEngine:
    """Runs one DynamoDB JSON-RPC operation with signing, classification and retries."""

    def __init__(
        self,
        *,
        endpoint: str,
        base_url: str,
        region: str,
        credentials: Credentials,
        signer: Signer,
        transport: Transport,
        policy: RetryPolicy | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        clock: Callable[[], datetime] = _utcnow,
        rng: random.Random | None = None,
    ):
        self.endpoint = endpoint
        self.base_url = base_url
        self.region = region
        self.credentials = credentials
        self.signer = signer
        self.transport = transport
        self.policy = policy or RetryPolicy()
        self.meter = CapacityMeter()
        self._sleep = sleep
        self._clock = clock
        self._rng = rng

    @property
    def consumed_capacity(self) -> float:
        return self.meter.total

    def build_request(self, operation: str, payload: dict[str, Any], timestamp: datetime) -> HttpRequest:
        body = dict(payload)
        body["ReturnConsumedCapacity"] = "TOTAL"
        headers = {
            "host": self.endpoint,
            "x-amz-date": amz_date(timestamp),
            "x-amz-target": f"{TARGET_PREFIX}.{operation}",
            "content-type": CONTENT_TYPE,
        }
        if self.credentials.session_token:
            headers["x-amz-security-token"] = self.credentials.session_token

        try:
            raw = json.dumps(body, separators=(",", ":"), allow_nan=False)
        except (TypeError, ValueError) as e:
            raise DdbEncodeError(
                message=f"{operation}: payload is not JSON serializable: {e}",
                operation=operation,
                cause=e,
            ) from e
        unsigned = HttpRequest(
            method="POST",
            url=self.base_url,
            headers=headers,
            body=raw.encode("utf-8"),
        )
        try:
            authorization = self.signer.sign(self.credentials, unsigned, timestamp, self.region)
        except DdbSigningError:
            raise
        except Exception as e:  # noqa: BLE001
            raise DdbSigningError(message=f"{operation}: request signing failed: {e}", cause=e) from e
        return HttpRequest(
            method=unsigned.method,
            url=unsigned.url,
            headers={**headers, "authorization": authorization},
            body=unsigned.body,
        )

    def parse_response(self, operation: str, resp: HttpResponse) -> dict[str, Any]:
        request_id = resp.header(REQUEST_ID_HEADER)
        try:
            data = json.loads(resp.body)
        except ValueError as e:
            raise DdbParseError(
                message=f"{operation} [{resp.status_code}]: response body is not valid JSON",
                operation=operation,
                aws_request_id=request_id,
                status_code=resp.status_code,
                body=resp.body,
                cause=e,
            ) from e

        if resp.status_code >= 300:
            if not isinstance(data, dict):
                data = {"message": str(data)}
            raise classify_service_error(
                operation=operation,
                status_code=resp.status_code,
                data=data,
                aws_request_id=request_id,
            )

        if not isinstance(data, dict):
            raise DdbParseError(
                message=f"{operation} [{resp.status_code}]: response body is not a JSON object",
                operation=operation,
                aws_request_id=request_id,
                status_code=resp.status_code,
                body=resp.body,
            )
        return data

    async def _attempt(self, operation: str, payload: dict[str, Any]) -> dict[str, Any]:
        request = self.build_request(operation, payload, self._clock())
        try:
            resp = await self.transport.send(request)
        except DdbError:
            raise
        except Exception as e:  # noqa: BLE001
            raise DdbTransportError(message=f"{operation}: transport failed: {e}", operation=operation, cause=e) from e
        set_request_id(resp.header(REQUEST_ID_HEADER))
        return self.parse_response(operation, resp)

    async def execute(self, operation: str, payload: dict[str, Any]) -> Outcome:
        with bind_operation(operation):
            attempt = 0
            while True:
                try:
                    body = await self._attempt(operation, payload)
                except DdbError as e:
                    if e.operation is None:
                        e.operation = operation
                    delay = self.policy.next_delay(e, attempt, self._rng)
                    if delay is None:
                        log.warning(
                            "ddb_call_failed",
                            attempts=attempt + 1,
                            kind=e.kind,
                            status=getattr(e, "status_code", None),
                            code=getattr(e, "code", None),
                            error=str(e),
                        )
                        return Failure(error=e, attempts=attempt + 1)

                    log.warning(
                        "ddb_retry",
                        attempt=attempt,
                        status=e.status_code if isinstance(e, DdbServiceError) else None,
                        code=e.code if isinstance(e, DdbServiceError) else None,
                        delay_s=delay,
                    )
                    if delay > 0:
                        await self._sleep(delay)
                    attempt += 1
                    continue

                units = consumed_capacity_units(body)
                if units:
                    self.meter.add(units)
                log.debug("ddb_call_ok", attempts=attempt + 1, capacity=units)
                return Success(body=body, attempts=attempt + 1)

    async def call(self, operation: str, payload: dict[str, Any]) -> dict[str, Any]:
        outcome = await self.execute(operation, payload)
        return outcome.unwrap()
