"""Shape DKAN responses and build request query strings."""

from __future__ import annotations

import json
import math
import re
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple
from urllib.parse import quote, urlencode

from pydantic import BaseModel

from dkan_client.models import DatasetFacets

FACET_TYPES: Tuple[str, ...] = ("theme", "keyword", "publisher")
SORT_DIRECTIONS = frozenset({"ASC", "DESC"})
_LEADING_INT = re.compile(r"\s*[+-]?\d+")


def coerce_list(value: Any) -> List[Any]:
    """Return DKAN "list" payloads as a list.

    Several metastore endpoints answer with an object keyed by identifier
    instead of an array; values keep the object's key order.
    """
    if isinstance(value, list):
        return value
    if isinstance(value, dict):
        return list(value.values())
    return []


def coerce_total(value: Any) -> int:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        # leading integer prefix, so "42.0" counts as 42 and junk as 0
        match = _LEADING_INT.match(value)
        return int(match.group(0)) if match else 0
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else 0
    return 0


def flatten_facets(items: Any) -> DatasetFacets:
    collected: Dict[str, List[str]] = {name: [] for name in FACET_TYPES}
    for item in items if isinstance(items, list) else []:
        if not isinstance(item, dict):
            continue
        facet_type = item.get("type")
        if facet_type not in collected:
            continue
        for entry in item.get("values") or []:
            if isinstance(entry, dict):
                value = entry.get("value")
                if value is not None:
                    collected[facet_type].append(str(value))
            elif entry is not None:
                collected[facet_type].append(str(entry))
    return DatasetFacets(**collected)


def _query_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def build_query(params: Mapping[str, Any]) -> str:
    """Encode ``params`` as a form query string.

    ``None`` values are skipped and list values become repeated keys in
    order, so ``{"sort": ["a", "b"]}`` encodes as ``sort=a&sort=b``.
    """
    pairs: List[Tuple[str, str]] = []
    for key, value in params.items():
        if value is None:
            continue
        if isinstance(value, (list, tuple)):
            pairs.extend((key, _query_value(v)) for v in value if v is not None)
        else:
            pairs.append((key, _query_value(value)))
    return urlencode(pairs)


def with_query(path: str, params: Optional[Mapping[str, Any]] = None, flags: Iterable[str] = ()) -> str:
    """Append a query string and bare flags (``?show-reference-ids``) to ``path``."""
    parts = [build_query(params or {})]
    parts.extend(quote(flag, safe="-_.") for flag in flags)
    query = "&".join(part for part in parts if part)
    return f"{path}?{query}" if query else path


def segment(value: Any) -> str:
    """Percent-encode one path segment (identifiers may contain any character)."""
    return quote(str(value), safe="")


def to_payload(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(by_alias=True, exclude_none=True)
    return value


def encode_options(options: Mapping[str, Any]) -> Dict[str, str]:
    """Flatten structured datastore options into query string values.

    Strings are sent as-is; lists, objects, numbers and booleans are sent as
    compact JSON, matching what DKAN decodes on GET query endpoints.
    """
    encoded: Dict[str, str] = {}
    for key, value in options.items():
        if value is None:
            continue
        if isinstance(value, str):
            encoded[key] = value
        else:
            encoded[key] = json.dumps(to_payload(value), separators=(",", ":"), ensure_ascii=False)
    return encoded


def normalize_datastore_schema(response: Any) -> Any:
    """Flatten ``schema`` to ``{"fields": [{"name": ..., ...}]}``.

    DKAN nests the schema under the resource identifier and keys fields by
    name: ``{"<resource-id>": {"fields": {"col": {"type": "text"}}}}``.
    """
    if not isinstance(response, dict):
        return response
    schema = response.get("schema")
    if not isinstance(schema, dict) or not schema:
        return response
    if "fields" not in schema:
        nested = next(iter(schema.values()))
        if not isinstance(nested, dict):
            return response
        schema = nested
    fields = schema.get("fields")
    if isinstance(fields, dict):
        flat = [{"name": name, **(spec or {})} for name, spec in fields.items()]
    else:
        flat = coerce_list(fields)
    return {**response, "schema": {**schema, "fields": flat}}


def is_reference(value: Any) -> bool:
    """True when ``value`` is a ``{identifier, data}`` reference envelope."""
    return isinstance(value, dict) and "identifier" in value and "data" in value and "@type" not in value


def build_sql(
    select: Sequence[str] | str,
    table: str,
    where: Optional[str] = None,
    order_by: Optional[str] = None,
    order: str = "ASC",
    limit: Optional[int] = None,
    offset: Optional[int] = None,
) -> str:
    """Compose a query in DKAN's bracketed SQL dialect.

    ``build_sql("*", "abc123", limit=10)`` gives ``[SELECT * FROM abc123][LIMIT 10];``.
    """
    columns = select if isinstance(select, str) else ",".join(select)
    if not columns or not table:
        raise ValueError("select and table are required")
    clauses = [f"[SELECT {columns} FROM {table}]"]
    if where:
        clauses.append(f"[WHERE {where}]")
    if order_by:
        direction = order.upper()
        if direction not in SORT_DIRECTIONS:
            raise ValueError(f"order must be ASC or DESC, got {order!r}")
        clauses.append(f"[ORDER BY {order_by} {direction}]")
    if limit is not None:
        clause = f"LIMIT {int(limit)}"
        if offset is not None:
            clause += f" OFFSET {int(offset)}"
        clauses.append(f"[{clause}]")
    elif offset is not None:
        raise ValueError("offset requires limit")
    return "".join(clauses) + ";"
