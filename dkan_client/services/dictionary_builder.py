"""Draft data dictionaries from sampled CSV distributions."""

from __future__ import annotations

import csv
import io
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

import httpx

from dkan_client.models import DataDictionary, DataDictionaryData, DataDictionaryField
from dkan_client.sources.normalize import is_reference

MAX_SAMPLE_ROWS = 100
MAX_BYTES = 2_000_000

_DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}")
_NON_IDENTIFIER = re.compile(r"[^a-z0-9_]")


@dataclass(frozen=True)
class CsvDistribution:
    identifier: str
    download_url: str
    dataset_id: str
    dataset_title: str
    title: Optional[str] = None


def _as_number(value: str) -> Optional[float]:
    try:
        return float(value)
    except ValueError:
        return None


async def fetch_bytes(
    url: str,
    max_bytes: int = MAX_BYTES,
    timeout: float = 30.0,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> bytes:
    """Download at most ``max_bytes`` of ``url``.

    A body cut at the cap is trimmed back to its last complete line so the
    final sampled row is never partial.
    """
    chunks: List[bytes] = []
    size = 0
    async with httpx.AsyncClient(timeout=timeout, follow_redirects=True, transport=transport) as client:
        async with client.stream("GET", url, headers={"User-Agent": "dkan-client-tools/0.1"}) as response:
            response.raise_for_status()
            async for chunk in response.aiter_bytes():
                chunks.append(chunk)
                size += len(chunk)
                if size > max_bytes:
                    break
    content = b"".join(chunks)
    if size <= max_bytes:
        return content
    content = content[:max_bytes]
    return content[: content.rfind(b"\n") + 1]


def infer_field_type(values: Sequence[str]) -> str:
    present = [v for v in values if v is not None and v != ""]
    if not present:
        return "string"
    if all(v.lower() in ("true", "false") for v in present):
        return "boolean"
    numbers = [n for n in (_as_number(v) for v in present) if n is not None]
    if len(numbers) == len(present):
        if all(n.is_integer() for n in numbers):
            return "integer"
        return "number"
    if all(_DATE_PATTERN.match(v) for v in present):
        return "date"
    return "string"


def field_title(name: str) -> str:
    return " ".join(word.capitalize() for word in name.split("_"))


def normalize_header(header: str) -> str:
    return _NON_IDENTIFIER.sub("_", header.strip().strip('"').lower())


def sample_csv(content: bytes, rows: int = MAX_SAMPLE_ROWS) -> Dict[str, Any]:
    text = content.decode("utf-8", errors="replace")
    reader = csv.reader(io.StringIO(text))
    header = next(reader, None)
    if not header:
        return {"columns": [], "rows": []}
    columns = [normalize_header(h) for h in header]
    out: List[Dict[str, str]] = []
    for i, row in enumerate(reader):
        if i >= rows:
            break
        out.append({columns[j]: (row[j] if j < len(row) else "") for j in range(len(columns))})
    return {"columns": columns, "rows": out}


def infer_fields(content: bytes, rows: int = MAX_SAMPLE_ROWS) -> List[DataDictionaryField]:
    sample = sample_csv(content, rows)
    if not sample["columns"] or not sample["rows"]:
        return []
    fields = []
    for name in sample["columns"]:
        field_type = infer_field_type([row[name] for row in sample["rows"]])
        fields.append(
            DataDictionaryField(
                name=name,
                title=field_title(name),
                type=field_type,
                format="default" if field_type == "date" else None,
            )
        )
    return fields


def build_dictionary(distribution: CsvDistribution, fields: List[DataDictionaryField]) -> DataDictionary:
    title = distribution.title or f"Data Dictionary for {distribution.dataset_title}"
    return DataDictionary(
        identifier=f"{distribution.identifier}-dict",
        data=DataDictionaryData(title=title, fields=fields),
    )


def csv_distributions(dataset: Dict[str, Any]) -> List[CsvDistribution]:
    """List CSV distributions of a dataset fetched with ``show-reference-ids``."""
    found = []
    for dist in dataset.get("distribution") or []:
        if not is_reference(dist):
            continue
        data = dist.get("data") or {}
        download_url = data.get("downloadURL")
        if (data.get("format") or "").lower() != "csv" or not download_url:
            continue
        found.append(
            CsvDistribution(
                identifier=dist["identifier"],
                download_url=download_url,
                dataset_id=dataset.get("identifier", ""),
                dataset_title=dataset.get("title", ""),
                title=data.get("title"),
            )
        )
    return found
