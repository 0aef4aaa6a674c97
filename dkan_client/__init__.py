"""Async Python client tools for the DKAN open data REST API."""

from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as _version

from dkan_client.config import BasicCredential, ClientConfig, TokenCredential
from dkan_client.errors import ClientConfigError, DkanApiError, RequestCancelledError
from dkan_client.services.client import DkanClient
from dkan_client.sources.dkan import DkanApiClient

try:
    __version__ = _version("dkan-client-tools")
except PackageNotFoundError:
    __version__ = "0.0.0"

__all__ = [
    "BasicCredential",
    "ClientConfig",
    "ClientConfigError",
    "DkanApiClient",
    "DkanApiError",
    "DkanClient",
    "RequestCancelledError",
    "TokenCredential",
]
