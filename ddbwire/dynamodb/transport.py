from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol

import httpx

from .errors import DdbTransportError


@dataclass(frozen=True, slots=True)
class HttpRequest:
    method: str
    url: str
    headers: dict[str, str]
    body: bytes


@dataclass(frozen=True, slots=True)
class HttpResponse:
    status_code: int
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes = b""

    def header(self, name: str) -> str | None:
        lname = name.lower()
        for k, v in self.headers.items():
            if k.lower() == lname:
                return v
        return None


class Transport(Protocol):
    async def send(self, request: HttpRequest) -> HttpResponse: ...

    async def aclose(self) -> None: ...


def build_http_client(*, max_connections: int | None = None, timeout_s: float | None = None) -> httpx.AsyncClient:
    # timeout_s=None disables timeouts; the retry ceiling is the only bound.
    return httpx.AsyncClient(
        limits=httpx.Limits(max_connections=max_connections),
        timeout=httpx.Timeout(timeout_s),
    )


class HttpxTransport:
    """Sends signed requests through a shared `httpx.AsyncClient` pool.

    A client passed in by the caller is borrowed and never closed here.
    """

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        *,
        max_connections: int | None = None,
        timeout_s: float | None = None,
    ):
        self._owns_client = client is None
        self._client = client or build_http_client(max_connections=max_connections, timeout_s=timeout_s)

    @property
    def client(self) -> httpx.AsyncClient:
        return self._client

    async def send(self, request: HttpRequest) -> HttpResponse:
        try:
            resp = await self._client.request(
                request.method,
                request.url,
                headers=request.headers,
                content=request.body,
            )
        except httpx.HTTPError as e:
            raise DdbTransportError(message=f"DynamoDB connection failed: {e}", cause=e) from e
        return HttpResponse(
            status_code=resp.status_code,
            headers=dict(resp.headers),
            body=resp.content,
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
