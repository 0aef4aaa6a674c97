from __future__ import annotations

from typing import Any, Callable, List, Union

import httpx
import pytest

from dkan_client.config import ClientConfig
from dkan_client.services.client import DkanClient
from dkan_client.sources.dkan import DkanApiClient
from dkan_client.sources.transport import Transport

Reply = Union[httpx.Response, Exception, Callable[[httpx.Request], Any]]


class Recorder:
    """Replays queued replies and records every request it receives.

    The last reply repeats once the queue is down to one entry.
    """

    def __init__(self, *replies: Reply) -> None:
        self.replies: List[Reply] = list(replies) or [httpx.Response(200, json={})]
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> Any:
        self.requests.append(request)
        reply = self.replies.pop(0) if len(self.replies) > 1 else self.replies[0]
        if isinstance(reply, Exception):
            raise reply
        if isinstance(reply, httpx.Response):
            # repeated replies need their own response object
            return httpx.Response(reply.status_code, headers=reply.headers, content=reply.content)
        return reply(request)

    @property
    def last(self) -> httpx.Request:
        return self.requests[-1]

    @property
    def urls(self) -> List[str]:
        return [str(r.url) for r in self.requests]


class SleepRecorder:
    def __init__(self) -> None:
        self.delays: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


def build_client(recorder: Recorder, base_url: str = "https://example.com", **options: Any) -> DkanApiClient:
    options.setdefault("retry", 0)
    config = ClientConfig(base_url=base_url, **options)
    transport = Transport(config, http_transport=httpx.MockTransport(recorder))
    transport._sleep = SleepRecorder()
    return DkanApiClient(config, transport=transport)


@pytest.fixture
def make_client():
    """``make_client(*replies, **config)`` -> ``(DkanApiClient, Recorder)``; retries default to 0."""

    def factory(*replies: Reply, **options: Any) -> tuple[DkanApiClient, Recorder]:
        recorder = Recorder(*replies)
        return build_client(recorder, **options), recorder

    return factory


@pytest.fixture
def make_caching_client():
    """Like ``make_client`` but wrapped in a :class:`DkanClient`; entries stay fresh for a minute."""

    def factory(*replies: Reply, **options: Any) -> tuple[DkanClient, Recorder]:
        options.setdefault("stale_time", 60000)
        recorder = Recorder(*replies)
        api_client = build_client(recorder, **options)
        return DkanClient(api_client.config, api_client=api_client), recorder

    return factory
