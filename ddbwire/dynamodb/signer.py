from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Protocol

from botocore.auth import SIGV4_TIMESTAMP, SigV4Auth
from botocore.awsrequest import AWSRequest
from botocore.credentials import Credentials as BotoCredentials

from .errors import DdbSigningError
from .transport import HttpRequest

SERVICE_NAME = "dynamodb"


@dataclass(frozen=True, slots=True)
class Credentials:
    access_key_id: str | None
    secret_access_key: str | None
    session_token: str | None = None
    session_expires: datetime | None = None


def amz_date(timestamp: datetime) -> str:
    return timestamp.astimezone(timezone.utc).strftime(SIGV4_TIMESTAMP)


class Signer(Protocol):
    def sign(self, credentials: Credentials, request: HttpRequest, timestamp: datetime, region: str) -> str: ...


class SigV4Signer:
    """AWS Signature V4 for DynamoDB, computed with botocore.

    Signs with the attempt's own timestamp (the `x-amz-date` header the engine
    already set) rather than botocore's clock, so a retried request is signed
    afresh for its own send time.
    """

    service_name = SERVICE_NAME

    def sign(self, credentials: Credentials, request: HttpRequest, timestamp: datetime, region: str) -> str:
        if not credentials.access_key_id or not credentials.secret_access_key:
            raise DdbSigningError(message="DynamoDB credentials are missing an access key id or secret")

        ts = timestamp.astimezone(timezone.utc)
        if credentials.session_expires is not None:
            expires = credentials.session_expires
            if expires.tzinfo is None:
                expires = expires.replace(tzinfo=timezone.utc)
            if expires <= ts:
                raise DdbSigningError(message="DynamoDB session credentials have expired")

        try:
            auth = SigV4Auth(
                BotoCredentials(
                    credentials.access_key_id,
                    credentials.secret_access_key,
                    credentials.session_token,
                ),
                self.service_name,
                region,
            )
            aws_request = AWSRequest(
                method=request.method,
                url=request.url,
                headers=dict(request.headers),
                data=request.body,
            )
            aws_request.context["timestamp"] = amz_date(ts)

            canonical = auth.canonical_request(aws_request)
            string_to_sign = auth.string_to_sign(aws_request, canonical)
            signature = auth.signature(string_to_sign, aws_request)
            signed_headers = auth.signed_headers(auth.headers_to_sign(aws_request))
            scope = auth.scope(aws_request)
        except Exception as e:  # noqa: BLE001
            raise DdbSigningError(message=f"DynamoDB request signing failed: {e}", cause=e) from e

        return f"AWS4-HMAC-SHA256 Credential={scope}, SignedHeaders={signed_headers}, Signature={signature}"
