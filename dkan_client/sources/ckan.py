"""CKAN-compatible endpoints exposed by DKAN under ``/api/3/action``."""

from __future__ import annotations

import json
from typing import Any, Dict, List, Optional, Sequence

from dkan_client.sources.base import ApiSource
from dkan_client.sources.normalize import with_query

ACTION_BASE = "/api/3/action"


def _result(payload: Any) -> Any:
    if isinstance(payload, dict):
        return payload.get("result")
    return None


class CkanCompatMixin(ApiSource):
    async def _action(self, action: str, params: Optional[Dict[str, Any]] = None) -> Any:
        return await self._call(with_query(f"{ACTION_BASE}/{action}", params))

    async def list_datasets(self) -> List[str]:
        # DKAN answers package_list with a bare array, not a result envelope.
        return await self._action("package_list")

    async def get_dataset_ckan(self, identifier: str) -> Dict[str, Any]:
        return _result(await self._action("package_show", {"id": identifier}))

    async def ckan_package_search(
        self,
        q: Optional[str] = None,
        fq: Optional[str] = None,
        rows: Optional[int] = None,
        start: Optional[int] = None,
        sort: Optional[str] = None,
        facet: Optional[bool] = None,
        facet_field: Optional[Sequence[str]] = None,
        facet_limit: Optional[int] = None,
    ) -> Dict[str, Any]:
        params: Dict[str, Any] = {
            "q": q or None,
            "fq": fq or None,
            "rows": rows,
            "start": start,
            "sort": sort or None,
            "facet": facet,
            "facet.field": list(facet_field) if facet_field else None,
            "facet.limit": facet_limit,
        }
        return _result(await self._action("package_search", params))

    async def ckan_datastore_search(
        self,
        resource_id: str,
        filters: Optional[Dict[str, Any]] = None,
        q: Optional[str] = None,
        distinct: Optional[bool] = None,
        plain: Optional[bool] = None,
        language: Optional[str] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
        fields: Optional[Sequence[str]] = None,
        sort: Optional[str] = None,
    ) -> Dict[str, Any]:
        params: Dict[str, Any] = {
            "resource_id": resource_id,
            "filters": json.dumps(filters, separators=(",", ":")) if filters else None,
            "q": q or None,
            "distinct": distinct,
            "plain": plain,
            "language": language or None,
            "limit": limit,
            "offset": offset,
            "fields": ",".join(fields) if fields else None,
            "sort": sort or None,
        }
        return _result(await self._action("datastore_search", params))

    async def ckan_datastore_search_sql(self, sql: str) -> List[Dict[str, Any]]:
        result = _result(await self._action("datastore_search_sql", {"sql": sql}))
        if isinstance(result, dict):
            return result.get("records") or []
        return []

    async def ckan_resource_show(self, resource_id: str) -> Dict[str, Any]:
        return _result(await self._action("resource_show", {"id": resource_id}))

    async def ckan_current_package_list_with_resources(self) -> List[Dict[str, Any]]:
        return _result(await self._action("current_package_list_with_resources")) or []
