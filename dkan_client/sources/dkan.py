"""DKAN REST API client."""

from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Literal, Mapping, Optional, Sequence, Union

from dkan_client.models import (
    DataDictionary,
    Dataset,
    DatasetFacets,
    HarvestPlan,
    MetastoreNewRevision,
    SearchResponse,
    WorkflowState,
)
from dkan_client.sources.ckan import CkanCompatMixin
from dkan_client.sources.normalize import (
    coerce_list,
    coerce_total,
    encode_options,
    flatten_facets,
    normalize_datastore_schema,
    segment,
    to_payload,
    with_query,
)

HttpMethod = Literal["GET", "POST"]
DownloadFormat = Literal["csv", "json"]
Payload = Union[Mapping[str, Any], Any]

DATASET_ITEMS = "/api/1/metastore/schemas/dataset/items"
DICTIONARY_ITEMS = "/api/1/metastore/schemas/data-dictionary/items"
SCHEMAS = "/api/1/metastore/schemas"
DATASTORE_QUERY = "/api/1/datastore/query"
DATASTORE_IMPORTS = "/api/1/datastore/imports"
HARVEST_PLANS = "/api/1/harvest/plans"
HARVEST_RUNS = "/api/1/harvest/runs"

SHOW_REFERENCE_IDS = "show-reference-ids"


def _reference_flags(show_reference_ids: bool) -> tuple[str, ...]:
    return (SHOW_REFERENCE_IDS,) if show_reference_ids else ()


def _check_method(method: str) -> str:
    method = method.upper()
    if method not in ("GET", "POST"):
        raise ValueError(f"method must be GET or POST, got {method!r}")
    return method


class DkanApiClient(CkanCompatMixin):
    """Low-level DKAN API client; no caching.

    Each method maps one DKAN endpoint and returns the decoded JSON,
    reshaped where DKAN's payload differs from what callers expect.
    """

    @property
    def base_url(self) -> str:
        return self.config.base_url

    def default_options(self) -> Dict[str, int]:
        return self.config.default_options()

    # datasets

    async def get_dataset(self, identifier: str, show_reference_ids: bool = False) -> Dict[str, Any]:
        path = with_query(
            f"{DATASET_ITEMS}/{segment(identifier)}",
            flags=_reference_flags(show_reference_ids),
        )
        return await self._call(path)

    async def search_datasets(
        self,
        keyword: Optional[str] = None,
        theme: Optional[str] = None,
        fulltext: Optional[str] = None,
        sort: Union[str, Sequence[str], None] = None,
        sort_order: Union[str, Sequence[str], None] = None,
        page: Optional[int] = None,
        page_size: Optional[int] = None,
        *,
        cancel: Optional[asyncio.Event] = None,
    ) -> SearchResponse:
        params: Dict[str, Any] = {
            "keyword": keyword or None,
            "theme": theme or None,
            "fulltext": fulltext or None,
            "sort": sort or None,
            "sort-order": sort_order or None,
            "page": page,
            "page-size": page_size,
        }
        data = await self._call(with_query("/api/1/search", params), cancel=cancel) or {}
        results = data.get("results")
        return SearchResponse(
            total=coerce_total(data.get("total")),
            results=coerce_list(results),
            facets=data.get("facets"),
        )

    async def list_all_datasets(self) -> List[Dict[str, Any]]:
        return coerce_list(await self._call(DATASET_ITEMS))

    async def create_dataset(self, dataset: Union[Dataset, Mapping[str, Any]]) -> Dict[str, Any]:
        return await self._call(DATASET_ITEMS, "POST", dataset)

    async def update_dataset(
        self, identifier: str, dataset: Union[Dataset, Mapping[str, Any]]
    ) -> Dict[str, Any]:
        return await self._call(f"{DATASET_ITEMS}/{segment(identifier)}", "PUT", dataset)

    async def patch_dataset(self, identifier: str, partial: Mapping[str, Any]) -> Dict[str, Any]:
        return await self._call(f"{DATASET_ITEMS}/{segment(identifier)}", "PATCH", partial)

    async def delete_dataset(self, identifier: str) -> Dict[str, Any]:
        return await self._call(f"{DATASET_ITEMS}/{segment(identifier)}", "DELETE")

    # metastore schemas

    async def list_schemas(self) -> List[str]:
        data = await self._call(SCHEMAS)
        if isinstance(data, list):
            return data
        if isinstance(data, dict):
            return list(data.keys())
        return []

    async def get_schema(self, schema_id: str) -> Dict[str, Any]:
        return await self._call(f"{SCHEMAS}/{segment(schema_id)}")

    async def get_schema_items(self, schema_id: str, show_reference_ids: bool = False) -> List[Any]:
        path = with_query(
            f"{SCHEMAS}/{segment(schema_id)}/items",
            flags=_reference_flags(show_reference_ids),
        )
        return coerce_list(await self._call(path))

    async def get_dataset_facets(self) -> DatasetFacets:
        return flatten_facets(await self._call("/api/1/search/facets"))

    async def get_dataset_properties(self) -> List[str]:
        return await self._call("/api/1/properties")

    async def get_property_values(self, property_name: str) -> List[str]:
        return await self._call(f"/api/1/properties/{segment(property_name)}")

    async def get_all_properties_with_values(self) -> Dict[str, List[str]]:
        return await self._call(with_query("/api/1/properties", {"show_values": True}))

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
        path = f"{DATASTORE_QUERY}/{segment(dataset_id)}/{int(index)}"
        return await self._query(path, options, method, cancel)

    async def query_datastore_multi(
        self,
        options: Mapping[str, Any],
        method: HttpMethod = "POST",
        *,
        cancel: Optional[asyncio.Event] = None,
    ) -> Dict[str, Any]:
        return await self._query(DATASTORE_QUERY, options, method, cancel)

    async def _query(
        self,
        path: str,
        options: Optional[Mapping[str, Any]],
        method: str,
        cancel: Optional[asyncio.Event],
    ) -> Dict[str, Any]:
        options = to_payload(options) or {}
        if _check_method(method) == "GET":
            return await self._call(with_query(path, encode_options(options)), cancel=cancel)
        return await self._call(path, "POST", dict(options), cancel=cancel)

    async def get_datastore_schema(self, dataset_id: str, index: int = 0) -> Dict[str, Any]:
        path = with_query(f"{DATASTORE_QUERY}/{segment(dataset_id)}/{int(index)}", {"schema": True})
        return normalize_datastore_schema(await self._call(path))

    async def query_sql(
        self,
        query: str,
        show_db_columns: bool = False,
        method: HttpMethod = "GET",
        *,
        cancel: Optional[asyncio.Event] = None,
    ) -> List[Dict[str, Any]]:
        """Run a query written in DKAN's bracketed SQL dialect.

        The query string is passed through untouched; see
        :func:`dkan_client.sources.normalize.build_sql` to compose one.
        """
        if _check_method(method) == "POST":
            body = {"query": query, "show_db_columns": show_db_columns}
            return await self._call("/api/1/datastore/sql", "POST", body, cancel=cancel)
        params = {"query": query, "show_db_columns": True if show_db_columns else None}
        return await self._call(with_query("/api/1/datastore/sql", params), cancel=cancel)

    async def download_query(
        self,
        dataset_id: str,
        index: int = 0,
        options: Optional[Mapping[str, Any]] = None,
        format: DownloadFormat = "csv",
        *,
        cancel: Optional[asyncio.Event] = None,
    ) -> bytes:
        path = f"{DATASTORE_QUERY}/{segment(dataset_id)}/{int(index)}/download"
        return await self._download(path, options, format, cancel)

    async def download_query_by_distribution(
        self,
        distribution_id: str,
        options: Optional[Mapping[str, Any]] = None,
        format: DownloadFormat = "csv",
        *,
        cancel: Optional[asyncio.Event] = None,
    ) -> bytes:
        path = f"{DATASTORE_QUERY}/{segment(distribution_id)}/download"
        return await self._download(path, options, format, cancel)

    async def _download(
        self,
        path: str,
        options: Optional[Mapping[str, Any]],
        format: str,
        cancel: Optional[asyncio.Event],
    ) -> bytes:
        options = dict(to_payload(options) or {})
        # a "format" key in options wins over the argument
        params = {"format": options.pop("format", None) or format or "csv"}
        params.update(encode_options(options))
        return await self.transport.download(with_query(path, params), cancel=cancel)

    # data dictionaries

    async def list_data_dictionaries(self) -> List[Dict[str, Any]]:
        return coerce_list(await self._call(DICTIONARY_ITEMS))

    async def get_data_dictionary(self, identifier: str) -> Dict[str, Any]:
        return await self._call(f"{DICTIONARY_ITEMS}/{segment(identifier)}")

    async def get_data_dictionary_from_url(self, url: str) -> Dict[str, Any]:
        return await self.transport.fetch_url(url)

    async def create_data_dictionary(
        self, dictionary: Union[DataDictionary, Mapping[str, Any]]
    ) -> Dict[str, Any]:
        return await self._call(DICTIONARY_ITEMS, "POST", dictionary)

    async def update_data_dictionary(
        self, identifier: str, dictionary: Union[DataDictionary, Mapping[str, Any]]
    ) -> Dict[str, Any]:
        return await self._call(f"{DICTIONARY_ITEMS}/{segment(identifier)}", "PUT", dictionary)

    async def delete_data_dictionary(self, identifier: str) -> Dict[str, Any]:
        return await self._call(f"{DICTIONARY_ITEMS}/{segment(identifier)}", "DELETE")

    # harvest

    async def list_harvest_plans(self) -> List[str]:
        return await self._call(HARVEST_PLANS)

    async def register_harvest_plan(self, plan: Union[HarvestPlan, Mapping[str, Any]]) -> Dict[str, Any]:
        return await self._call(HARVEST_PLANS, "POST", plan)

    async def get_harvest_plan(self, plan_id: str) -> Dict[str, Any]:
        return await self._call(f"{HARVEST_PLANS}/{segment(plan_id)}")

    async def list_harvest_runs(self, plan_id: str) -> List[Any]:
        return await self._call(with_query(HARVEST_RUNS, {"plan": plan_id}))

    async def get_harvest_run(self, run_id: str, plan_id: str) -> Dict[str, Any]:
        return await self._call(with_query(f"{HARVEST_RUNS}/{segment(run_id)}", {"plan": plan_id}))

    async def run_harvest(self, plan_id: str) -> Dict[str, Any]:
        return await self._call(HARVEST_RUNS, "POST", {"plan_id": plan_id})

    # datastore imports

    async def list_datastore_imports(self) -> Dict[str, Any]:
        return await self._call(DATASTORE_IMPORTS)

    async def trigger_datastore_import(self, resource_id: str, **extra: Any) -> Dict[str, Any]:
        return await self._call(DATASTORE_IMPORTS, "POST", {"resource_id": resource_id, **extra})

    async def get_datastore_statistics(self, identifier: str) -> Dict[str, Any]:
        return await self._call(f"{DATASTORE_IMPORTS}/{segment(identifier)}")

    async def delete_datastore(self, identifier: str) -> Dict[str, Any]:
        return await self._call(f"{DATASTORE_IMPORTS}/{segment(identifier)}", "DELETE")

    # revisions

    def _revisions_path(self, schema_id: str, identifier: str) -> str:
        return f"{SCHEMAS}/{segment(schema_id)}/items/{segment(identifier)}/revisions"

    async def get_revisions(self, schema_id: str, identifier: str) -> List[Dict[str, Any]]:
        return await self._call(self._revisions_path(schema_id, identifier))

    async def get_revision(self, schema_id: str, identifier: str, revision_id: str) -> Dict[str, Any]:
        path = f"{self._revisions_path(schema_id, identifier)}/{segment(revision_id)}"
        return await self._call(path)

    async def create_revision(
        self,
        schema_id: str,
        identifier: str,
        revision: Union[MetastoreNewRevision, Mapping[str, Any]],
    ) -> Dict[str, Any]:
        return await self._call(self._revisions_path(schema_id, identifier), "POST", revision)

    async def change_dataset_state(
        self, identifier: str, state: WorkflowState, message: Optional[str] = None
    ) -> Dict[str, Any]:
        revision = MetastoreNewRevision(state=state, message=message)
        return await self.create_revision("dataset", identifier, revision)

    # openapi

    async def get_openapi_spec(self) -> Dict[str, Any]:
        return await self._call("/api/1/spec")

    def get_openapi_docs_url(self) -> str:
        return f"{self.config.base_url}/api/1/docs"
