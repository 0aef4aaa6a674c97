"""Named DKAN site profiles loaded from YAML."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from dkan_client.config import (
    DEFAULT_RETRY,
    DEFAULT_RETRY_DELAY_MS,
    DEFAULT_TIMEOUT,
    ClientConfig,
    Credential,
    make_credential,
    settings,
)
from dkan_client.errors import ClientConfigError


@dataclass(frozen=True)
class Site:
    id: str
    title: str
    base_url: str
    auth: Dict[str, Any] = field(default_factory=dict)
    retry: int = DEFAULT_RETRY
    retry_delay: int = DEFAULT_RETRY_DELAY_MS
    timeout: float = DEFAULT_TIMEOUT

    def credential(self) -> Credential:
        if not self.auth:
            return None
        token_env = self.auth.get("token_env")
        if token_env:
            return make_credential(token=_require_env(self.id, token_env))
        user_env = self.auth.get("username_env")
        pass_env = self.auth.get("password_env")
        if not user_env or not pass_env:
            raise ClientConfigError(
                f"Site '{self.id}' auth needs token_env or username_env/password_env"
            )
        return make_credential(
            username=_require_env(self.id, user_env),
            password=_require_env(self.id, pass_env),
        )

    def client_config(self) -> ClientConfig:
        return ClientConfig(
            base_url=self.base_url,
            credential=self.credential(),
            retry=self.retry,
            retry_delay=self.retry_delay,
            stale_time=settings.stale_time,
            cache_time=settings.cache_time,
            timeout=self.timeout,
        )


def _require_env(site_id: str, name: str) -> str:
    value = os.environ.get(name)
    if not value:
        raise ClientConfigError(f"Missing required env var '{name}' for '{site_id}'")
    return value


class SiteRegistry:
    def __init__(self, sites_path: Path) -> None:
        self.sites_path = sites_path
        self._sites: Dict[str, Site] = {}

    def load(self) -> None:
        if not self.sites_path.exists():
            raise ClientConfigError(f"Sites config not found: {self.sites_path}")

        raw = yaml.safe_load(self.sites_path.read_text(encoding="utf-8")) or {}
        parsed: Dict[str, Site] = {}
        for entry in raw.get("sites", []):
            try:
                site = Site(
                    id=entry["id"],
                    title=entry.get("title", entry["id"]),
                    base_url=entry["base_url"].rstrip("/"),
                    auth=entry.get("auth") or {},
                    retry=int(entry.get("retry", DEFAULT_RETRY)),
                    retry_delay=int(entry.get("retry_delay", DEFAULT_RETRY_DELAY_MS)),
                    timeout=float(entry.get("timeout", DEFAULT_TIMEOUT)),
                )
            except (KeyError, TypeError, ValueError) as exc:
                raise ClientConfigError(f"Invalid site definition: {entry}") from exc
            parsed[site.id] = site

        self._sites = parsed

    def get(self, site_id: str) -> Site:
        if site_id not in self._sites:
            raise ClientConfigError(f"Unknown site_id={site_id}")
        return self._sites[site_id]

    def list(self) -> List[Site]:
        return list(self._sites.values())


def load_registry(sites_path: Optional[Path] = None) -> SiteRegistry:
    registry = SiteRegistry(sites_path or settings.sites_path)
    registry.load()
    return registry
