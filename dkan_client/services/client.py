"""Caching DKAN client shared by every consumer in a process."""

from __future__ import annotations

import asyncio
import json
from typing import Any, Dict, Hashable, List, Mapping, Optional, Sequence

from dkan_client.config import ClientConfig
from dkan_client.models import DatasetFacets, SearchResponse, WorkflowState
from dkan_client.services.query_cache import CacheKey, QueryCache, QueryFn
from dkan_client.sources.dkan import DkanApiClient, DownloadFormat, HttpMethod
from dkan_client.sources.normalize import to_payload

QueryKey = Sequence[Any]


def to_cache_key(key: QueryKey) -> CacheKey:
    """Turn a logical query key into a hashable cache key.

    Strings, numbers and None are kept and booleans are tagged; lists, dicts
    and models become canonical JSON so equal options map to the same entry.
    """
    parts: List[Hashable] = []
    for part in key:
        part = to_payload(part)
        if isinstance(part, bool):
            # True and 1 hash alike
            parts.append(("bool", part))
        elif isinstance(part, (str, int, float, type(None))):
            parts.append(part)
        else:
            parts.append(json.dumps(part, sort_keys=True, separators=(",", ":"), default=str))
    return tuple(parts)


def query_key(*parts: Any) -> CacheKey:
    return to_cache_key(parts)


class DkanClient:
    """Caching coordinator around :class:`DkanApiClient`.

    API methods delegate straight to the underlying client. The cache
    methods take logical keys such as ``("datasets", "single", "abc")``.
    """

    def __init__(
        self,
        config: ClientConfig,
        query_cache: Optional[QueryCache] = None,
        api_client: Optional[DkanApiClient] = None,
    ) -> None:
        self.config = config
        self.api_client = api_client or DkanApiClient(config)
        self.query_cache = query_cache or QueryCache(
            stale_time=config.stale_time,
            cache_time=config.cache_time,
        )
        self._mount_count = 0

    async def close(self) -> None:
        await self.api_client.close()

    async def __aenter__(self) -> "DkanClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    def get_api_client(self) -> DkanApiClient:
        return self.api_client

    def get_query_cache(self) -> QueryCache:
        return self.query_cache

    # lifecycle

    def mount(self) -> None:
        self._mount_count += 1
        if self._mount_count == 1:
            self.query_cache.mount()

    def unmount(self) -> None:
        if self._mount_count == 0:
            return
        self._mount_count -= 1
        if self._mount_count == 0:
            self.query_cache.unmount()

    def is_mounted(self) -> bool:
        return self._mount_count > 0

    # cache pass-throughs

    async def fetch_query(self, key: QueryKey, fn: QueryFn, stale_time: Optional[int] = None) -> Any:
        return await self.query_cache.fetch_query(to_cache_key(key), fn, stale_time)

    async def prefetch_query(self, key: QueryKey, fn: QueryFn, stale_time: Optional[int] = None) -> None:
        await self.query_cache.prefetch_query(to_cache_key(key), fn, stale_time)

    def get_query_data(self, key: QueryKey) -> Any:
        return self.query_cache.get_query_data(to_cache_key(key))

    def set_query_data(self, key: QueryKey, data: Any) -> None:
        self.query_cache.set_query_data(to_cache_key(key), data)

    def invalidate_queries(self, key: Optional[QueryKey] = None) -> int:
        return self.query_cache.invalidate_queries(to_cache_key(key) if key else None)

    def remove_queries(self, key: Optional[QueryKey] = None) -> int:
        return self.query_cache.remove_queries(to_cache_key(key) if key else None)

    def clear(self) -> None:
        self.query_cache.clear()

    # datasets

    async def fetch_dataset(self, identifier: str, show_reference_ids: bool = False) -> Dict[str, Any]:
        return await self.api_client.get_dataset(identifier, show_reference_ids)

    async def search_datasets(self, *args: Any, **kwargs: Any) -> SearchResponse:
        return await self.api_client.search_datasets(*args, **kwargs)

    async def list_all_datasets(self) -> List[Dict[str, Any]]:
        return await self.api_client.list_all_datasets()

    async def create_dataset(self, dataset: Any) -> Dict[str, Any]:
        return await self.api_client.create_dataset(dataset)

    async def update_dataset(self, identifier: str, dataset: Any) -> Dict[str, Any]:
        return await self.api_client.update_dataset(identifier, dataset)

    async def patch_dataset(self, identifier: str, partial: Mapping[str, Any]) -> Dict[str, Any]:
        return await self.api_client.patch_dataset(identifier, partial)

    async def delete_dataset(self, identifier: str) -> Dict[str, Any]:
        return await self.api_client.delete_dataset(identifier)

    async def list_schemas(self) -> List[str]:
        return await self.api_client.list_schemas()

    async def get_schema(self, schema_id: str) -> Dict[str, Any]:
        return await self.api_client.get_schema(schema_id)

    async def get_schema_items(self, schema_id: str, show_reference_ids: bool = False) -> List[Any]:
        return await self.api_client.get_schema_items(schema_id, show_reference_ids)

    async def get_dataset_facets(self) -> DatasetFacets:
        return await self.api_client.get_dataset_facets()

    async def get_dataset_properties(self) -> List[str]:
        return await self.api_client.get_dataset_properties()

    async def get_property_values(self, property_name: str) -> List[str]:
        return await self.api_client.get_property_values(property_name)

    async def get_all_properties_with_values(self) -> Dict[str, List[str]]:
        return await self.api_client.get_all_properties_with_values()

    # datastore

    async def query_datastore(
        self,
        dataset_id: str,
        index: int = 0,
        options: Optional[Mapping[str, Any]] = None,
        method: HttpMethod = "POST",
        *,
        cancel: Optional[asyncio.Event] = None,
    ) -> Dict[str, Any]:
        return await self.api_client.query_datastore(dataset_id, index, options, method, cancel=cancel)

    async def query_datastore_multi(
        self,
        options: Mapping[str, Any],
        method: HttpMethod = "POST",
        *,
        cancel: Optional[asyncio.Event] = None,
    ) -> Dict[str, Any]:
        return await self.api_client.query_datastore_multi(options, method, cancel=cancel)

    async def get_datastore_schema(self, dataset_id: str, index: int = 0) -> Dict[str, Any]:
        return await self.api_client.get_datastore_schema(dataset_id, index)

    async def query_sql(
        self,
        query: str,
        show_db_columns: bool = False,
        method: HttpMethod = "GET",
        *,
        cancel: Optional[asyncio.Event] = None,
    ) -> List[Dict[str, Any]]:
        return await self.api_client.query_sql(query, show_db_columns, method, cancel=cancel)

    async def download_query(
        self,
        dataset_id: str,
        index: int = 0,
        options: Optional[Mapping[str, Any]] = None,
        format: DownloadFormat = "csv",
        *,
        cancel: Optional[asyncio.Event] = None,
    ) -> bytes:
        return await self.api_client.download_query(dataset_id, index, options, format, cancel=cancel)

    async def download_query_by_distribution(
        self,
        distribution_id: str,
        options: Optional[Mapping[str, Any]] = None,
        format: DownloadFormat = "csv",
        *,
        cancel: Optional[asyncio.Event] = None,
    ) -> bytes:
        return await self.api_client.download_query_by_distribution(
            distribution_id, options, format, cancel=cancel
        )

    # data dictionaries

    async def list_data_dictionaries(self) -> List[Dict[str, Any]]:
        return await self.api_client.list_data_dictionaries()

    async def get_data_dictionary(self, identifier: str) -> Dict[str, Any]:
        return await self.api_client.get_data_dictionary(identifier)

    async def get_data_dictionary_from_url(self, url: str) -> Dict[str, Any]:
        return await self.api_client.get_data_dictionary_from_url(url)

    async def create_data_dictionary(self, dictionary: Any) -> Dict[str, Any]:
        return await self.api_client.create_data_dictionary(dictionary)

    async def update_data_dictionary(self, identifier: str, dictionary: Any) -> Dict[str, Any]:
        return await self.api_client.update_data_dictionary(identifier, dictionary)

    async def delete_data_dictionary(self, identifier: str) -> Dict[str, Any]:
        return await self.api_client.delete_data_dictionary(identifier)

    # harvest

    async def list_harvest_plans(self) -> List[str]:
        return await self.api_client.list_harvest_plans()

    async def register_harvest_plan(self, plan: Any) -> Dict[str, Any]:
        return await self.api_client.register_harvest_plan(plan)

    async def get_harvest_plan(self, plan_id: str) -> Dict[str, Any]:
        return await self.api_client.get_harvest_plan(plan_id)

    async def list_harvest_runs(self, plan_id: str) -> List[Any]:
        return await self.api_client.list_harvest_runs(plan_id)

    async def get_harvest_run(self, run_id: str, plan_id: str) -> Dict[str, Any]:
        return await self.api_client.get_harvest_run(run_id, plan_id)

    async def run_harvest(self, plan_id: str) -> Dict[str, Any]:
        return await self.api_client.run_harvest(plan_id)

    # datastore imports

    async def list_datastore_imports(self) -> Dict[str, Any]:
        return await self.api_client.list_datastore_imports()

    async def trigger_datastore_import(self, resource_id: str, **extra: Any) -> Dict[str, Any]:
        return await self.api_client.trigger_datastore_import(resource_id, **extra)

    async def get_datastore_statistics(self, identifier: str) -> Dict[str, Any]:
        return await self.api_client.get_datastore_statistics(identifier)

    async def delete_datastore(self, identifier: str) -> Dict[str, Any]:
        return await self.api_client.delete_datastore(identifier)

    # revisions

    async def get_revisions(self, schema_id: str, identifier: str) -> List[Dict[str, Any]]:
        return await self.api_client.get_revisions(schema_id, identifier)

    async def get_revision(self, schema_id: str, identifier: str, revision_id: str) -> Dict[str, Any]:
        return await self.api_client.get_revision(schema_id, identifier, revision_id)

    async def create_revision(self, schema_id: str, identifier: str, revision: Any) -> Dict[str, Any]:
        return await self.api_client.create_revision(schema_id, identifier, revision)

    async def change_dataset_state(
        self, identifier: str, state: WorkflowState, message: Optional[str] = None
    ) -> Dict[str, Any]:
        return await self.api_client.change_dataset_state(identifier, state, message)

    # openapi

    async def get_openapi_spec(self) -> Dict[str, Any]:
        return await self.api_client.get_openapi_spec()

    def get_openapi_docs_url(self) -> str:
        return self.api_client.get_openapi_docs_url()

    # ckan compatibility

    async def list_datasets(self) -> List[str]:
        return await self.api_client.list_datasets()

    async def get_dataset_ckan(self, identifier: str) -> Dict[str, Any]:
        return await self.api_client.get_dataset_ckan(identifier)

    async def ckan_package_search(self, **kwargs: Any) -> Dict[str, Any]:
        return await self.api_client.ckan_package_search(**kwargs)

    async def ckan_datastore_search(self, resource_id: str, **kwargs: Any) -> Dict[str, Any]:
        return await self.api_client.ckan_datastore_search(resource_id, **kwargs)

    async def ckan_datastore_search_sql(self, sql: str) -> List[Dict[str, Any]]:
        return await self.api_client.ckan_datastore_search_sql(sql)

    async def ckan_resource_show(self, resource_id: str) -> Dict[str, Any]:
        return await self.api_client.ckan_resource_show(resource_id)

    async def ckan_current_package_list_with_resources(self) -> List[Dict[str, Any]]:
        return await self.api_client.ckan_current_package_list_with_resources()


