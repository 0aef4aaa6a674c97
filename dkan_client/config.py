"""Typed configuration for DKAN clients."""

from __future__ import annotations

import base64
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional, Union

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_RETRY = 3
DEFAULT_RETRY_DELAY_MS = 1000
DEFAULT_STALE_TIME_MS = 0
DEFAULT_CACHE_TIME_MS = 5 * 60 * 1000
DEFAULT_TIMEOUT = 30.0
DEFAULT_USER_AGENT = "dkan-client-tools/0.1"


class Settings(BaseSettings):
    dkan_url: str = Field(default="http://dkan.ddev.site", alias="DKAN_URL")
    dkan_token: str | None = Field(default=None, alias="DKAN_TOKEN")
    dkan_user: str | None = Field(default=None, alias="DKAN_USER")
    dkan_pass: str | None = Field(default=None, alias="DKAN_PASS")
    retry: int = Field(default=DEFAULT_RETRY, ge=0, alias="DKAN_RETRY")
    retry_delay: int = Field(default=DEFAULT_RETRY_DELAY_MS, ge=0, alias="DKAN_RETRY_DELAY")
    stale_time: int = Field(default=DEFAULT_STALE_TIME_MS, ge=0, alias="DKAN_STALE_TIME")
    cache_time: int = Field(default=DEFAULT_CACHE_TIME_MS, ge=0, alias="DKAN_CACHE_TIME")
    timeout: float = Field(default=DEFAULT_TIMEOUT, gt=0, alias="DKAN_TIMEOUT")
    sites_path: Path = Field(default=Path("sites.yaml"), alias="DKAN_SITES")

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
        populate_by_name=True,
    )


settings = Settings()


@dataclass(frozen=True)
class TokenCredential:
    token: str

    def authorization_header(self) -> str:
        return f"Bearer {self.token}"


@dataclass(frozen=True)
class BasicCredential:
    username: str
    password: str

    def authorization_header(self) -> str:
        raw = f"{self.username}:{self.password}".encode("utf-8")
        return f"Basic {base64.b64encode(raw).decode('ascii')}"

    def __repr__(self) -> str:
        return f"BasicCredential(username={self.username!r}, password='***')"


Credential = Union[TokenCredential, BasicCredential, None]


def make_credential(
    token: Optional[str] = None,
    username: Optional[str] = None,
    password: Optional[str] = None,
) -> Credential:
    """Pick the first credential shape that is fully populated.

    A token wins over a username/password pair; a pair with either half
    missing yields no credential at all.
    """
    if token:
        return TokenCredential(token)
    if username and password:
        return BasicCredential(username, password)
    return None


@dataclass(frozen=True)
class ClientConfig:
    base_url: str
    credential: Credential = None
    retry: int = DEFAULT_RETRY
    retry_delay: int = DEFAULT_RETRY_DELAY_MS
    stale_time: int = DEFAULT_STALE_TIME_MS
    cache_time: int = DEFAULT_CACHE_TIME_MS
    timeout: float = DEFAULT_TIMEOUT
    user_agent: str = DEFAULT_USER_AGENT

    def __post_init__(self) -> None:
        if not self.base_url:
            raise ValueError("base_url is required")
        if self.retry < 0 or self.retry_delay < 0:
            raise ValueError("retry and retry_delay must be non-negative")
        # frozen dataclass: normalise through object.__setattr__
        if self.base_url.endswith("/"):
            object.__setattr__(self, "base_url", self.base_url[:-1])

    @classmethod
    def from_settings(cls, source: Settings | None = None) -> "ClientConfig":
        source = source or settings
        return cls(
            base_url=source.dkan_url,
            credential=make_credential(source.dkan_token, source.dkan_user, source.dkan_pass),
            retry=source.retry,
            retry_delay=source.retry_delay,
            stale_time=source.stale_time,
            cache_time=source.cache_time,
            timeout=source.timeout,
        )

    def authorization_header(self) -> Optional[str]:
        if self.credential is None:
            return None
        return self.credential.authorization_header()

    def default_options(self) -> Dict[str, int]:
        return {
            "retry": self.retry,
            "retry_delay": self.retry_delay,
            "stale_time": self.stale_time,
            "cache_time": self.cache_time,
        }
