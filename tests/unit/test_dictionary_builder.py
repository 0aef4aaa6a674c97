import httpx
import pytest

from dkan_client.services.dictionary_builder import (
    CsvDistribution,
    build_dictionary,
    csv_distributions,
    fetch_bytes,
    field_title,
    infer_field_type,
    infer_fields,
    normalize_header,
    sample_csv,
)

CSV = b'"Record ID",Name,Score,Active,Reported On\n1,Alpha,1.5,true,2024-01-02\n2,Beta,2,false,2024-02-03\n'


@pytest.mark.parametrize(
    "values,expected",
    [
        (["true", "FALSE", ""], "boolean"),
        (["1", "2", "30"], "integer"),
        (["1", "2.5"], "number"),
        (["2024-01-01", "2023-12-31T10:00"], "date"),
        (["a", "1"], "string"),
        (["", ""], "string"),
    ],
)
def test_infer_field_type(values, expected):
    assert infer_field_type(values) == expected


def test_headers_and_titles():
    assert normalize_header(' "Record ID" ') == "record_id"
    assert normalize_header("Reported On") == "reported_on"
    assert field_title("reported_on") == "Reported On"


def test_sample_csv_limits_rows():
    sample = sample_csv(CSV, rows=1)
    assert sample["columns"] == ["record_id", "name", "score", "active", "reported_on"]
    assert sample["rows"] == [
        {"record_id": "1", "name": "Alpha", "score": "1.5", "active": "true", "reported_on": "2024-01-02"}
    ]


def test_sample_csv_pads_short_rows():
    sample = sample_csv(b"a,b\n1\n")
    assert sample["rows"] == [{"a": "1", "b": ""}]


def test_infer_fields():
    fields = infer_fields(CSV)
    assert [(f.name, f.type) for f in fields] == [
        ("record_id", "integer"),
        ("name", "string"),
        ("score", "number"),
        ("active", "boolean"),
        ("reported_on", "date"),
    ]
    assert fields[4].format == "default"
    assert fields[0].format is None
    assert fields[0].title == "Record Id"


def test_infer_fields_needs_data_rows():
    assert infer_fields(b"a,b\n") == []
    assert infer_fields(b"") == []


def test_build_dictionary():
    distribution = CsvDistribution(
        identifier="d1",
        download_url="https://example.com/d1.csv",
        dataset_id="abc",
        dataset_title="Water quality",
    )
    dictionary = build_dictionary(distribution, infer_fields(CSV))
    payload = dictionary.to_payload()
    assert payload["identifier"] == "d1-dict"
    assert payload["data"]["title"] == "Data Dictionary for Water quality"
    assert payload["data"]["fields"][0] == {"name": "record_id", "title": "Record Id", "type": "integer"}


def test_csv_distributions_keeps_csv_references():
    dataset = {
        "identifier": "abc",
        "title": "Water quality",
        "distribution": [
            {"identifier": "d1", "data": {"format": "CSV", "downloadURL": "https://x/d1.csv", "title": "Samples"}},
            {"identifier": "d2", "data": {"format": "json", "downloadURL": "https://x/d2.json"}},
            {"identifier": "d3", "data": {"format": "csv"}},
            {"@type": "dcat:Distribution", "format": "csv", "downloadURL": "https://x/inline.csv"},
        ],
    }
    assert csv_distributions(dataset) == [
        CsvDistribution(
            identifier="d1",
            download_url="https://x/d1.csv",
            dataset_id="abc",
            dataset_title="Water quality",
            title="Samples",
        )
    ]


class ChunkedBody:
    """Async body that records how many chunks were pulled from it."""

    def __init__(self, *chunks: bytes) -> None:
        self.chunks = chunks
        self.sent = 0

    async def __aiter__(self):
        for chunk in self.chunks:
            self.sent += 1
            yield chunk


@pytest.mark.asyncio
async def test_fetch_bytes_returns_small_body_whole():
    transport = httpx.MockTransport(lambda request: httpx.Response(200, content=CSV))
    assert await fetch_bytes("https://example.com/file.csv", transport=transport) == CSV


@pytest.mark.asyncio
async def test_fetch_bytes_stops_at_cap_on_a_line_boundary():
    body = ChunkedBody(b"id,name\n1,Al", b"pha\n2,Beta\n", b"3,Gamma\n", b"4,Delta\n")
    transport = httpx.MockTransport(lambda request: httpx.Response(200, content=body))
    data = await fetch_bytes("https://example.com/file.csv", max_bytes=16, transport=transport)
    assert data == b"id,name\n1,Alpha\n"
    assert body.sent == 2


@pytest.mark.asyncio
async def test_fetch_bytes_raises_on_error_status():
    transport = httpx.MockTransport(lambda request: httpx.Response(404))
    with pytest.raises(httpx.HTTPStatusError):
        await fetch_bytes("https://example.com/missing.csv", transport=transport)
