from __future__ import annotations

from datetime import datetime
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .dynamodb.signer import Credentials


class DdbSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=None, extra="ignore", populate_by_name=True)

    # Endpoint / transport
    endpoint: str = Field(default="dynamodb.us-east-1.amazonaws.com", validation_alias="DDB_ENDPOINT")
    # None means the scheme default (443 with TLS, 80 without).
    port: int | None = Field(default=None, validation_alias="DDB_PORT")
    https: bool = Field(default=False, validation_alias="DDB_HTTPS")
    region: str = Field(default="us-east-1", validation_alias="AWS_REGION")
    max_http_sockets: int | None = Field(default=None, validation_alias="DDB_MAX_HTTP_SOCKETS")
    http_timeout_s: float | None = Field(default=None, validation_alias="DDB_HTTP_TIMEOUT_S")

    # Retries after the first attempt for server faults / throttling.
    retries: int = Field(default=3, ge=0, validation_alias="DDB_RETRIES")

    # Credentials (long-lived, or pre-obtained temporary session credentials)
    access_key_id: str | None = Field(default=None, validation_alias="AWS_ACCESS_KEY_ID")
    secret_access_key: str | None = Field(default=None, validation_alias="AWS_SECRET_ACCESS_KEY")
    session_token: str | None = Field(default=None, validation_alias="AWS_SESSION_TOKEN")
    session_expires: datetime | None = Field(default=None, validation_alias="AWS_SESSION_EXPIRES")

    log_level: str = Field(default="INFO", validation_alias="DDB_LOG_LEVEL")

    @property
    def effective_port(self) -> int:
        if self.port:
            return int(self.port)
        return 443 if self.https else 80

    def base_url(self) -> str:
        scheme = "https" if self.https else "http"
        return f"{scheme}://{self.endpoint}:{self.effective_port}/"

    def credentials(self) -> Credentials:
        # Session credentials only count when both token and expiry are known.
        if self.session_token and self.session_expires:
            return Credentials(
                access_key_id=self.access_key_id,
                secret_access_key=self.secret_access_key,
                session_token=self.session_token,
                session_expires=self.session_expires,
            )
        return Credentials(
            access_key_id=self.access_key_id,
            secret_access_key=self.secret_access_key,
        )


@lru_cache(maxsize=1)
def get_settings() -> DdbSettings:
    return DdbSettings()
