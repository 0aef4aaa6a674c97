"""Shared base for DKAN endpoint groups."""

from __future__ import annotations

import asyncio
from typing import Any, Optional

from dkan_client.config import ClientConfig
from dkan_client.sources.normalize import to_payload
from dkan_client.sources.transport import Transport


class ApiSource:
    def __init__(self, config: ClientConfig, transport: Optional[Transport] = None) -> None:
        self.config = config
        self.transport = transport or Transport(config)

    async def close(self) -> None:
        await self.transport.close()

    async def __aenter__(self) -> "ApiSource":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def _call(
        self,
        path: str,
        method: str = "GET",
        body: Any = None,
        cancel: Optional[asyncio.Event] = None,
    ) -> Any:
        response = await self.transport.execute(
            path, method, body=to_payload(body), cancel=cancel
        )
        return response.data
