import httpx
import pytest

from dkan_client.services.client import query_key, to_cache_key
from dkan_client.services.query_cache import QueryCache


def test_cache_settings_follow_config(make_caching_client):
    client, _ = make_caching_client(stale_time=0, cache_time=1000)
    assert isinstance(client.get_query_cache(), QueryCache)
    assert client.get_query_cache().cache_time == 1000
    assert client.get_api_client().base_url == "https://example.com"


def test_mount_refcount_drives_cache_lifecycle(make_caching_client, mocker):
    client, _ = make_caching_client()
    cache = client.get_query_cache()
    mount = mocker.spy(cache, "mount")
    unmount = mocker.spy(cache, "unmount")

    client.mount()
    client.mount()
    assert mount.call_count == 1
    assert client.is_mounted()

    client.unmount()
    assert unmount.call_count == 0
    assert client.is_mounted()

    client.unmount()
    assert unmount.call_count == 1
    assert not client.is_mounted()

    client.unmount()
    assert unmount.call_count == 1
    client.mount()
    assert mount.call_count == 2


def test_cache_keys_are_canonical():
    assert to_cache_key(["datasets", "single", "abc"]) == ("datasets", "single", "abc")
    assert query_key("query", {"b": 1, "a": [1, 2]}) == query_key("query", {"a": [1, 2], "b": 1})
    assert query_key("query", {"a": 1}) == ("query", '{"a":1}')


def test_boolean_and_integer_parts_get_separate_entries(make_caching_client):
    client, _ = make_caching_client()
    assert query_key("q", True) != query_key("q", 1)
    client.set_query_data(["q", True], "flag")
    client.set_query_data(["q", 1], "number")
    assert client.get_query_data(["q", True]) == "flag"
    assert client.get_query_data(["q", 1]) == "number"
    assert client.invalidate_queries(["q"]) == 2


@pytest.mark.asyncio
async def test_fetch_query_caches_until_invalidated(make_caching_client):
    client, recorder = make_caching_client(
        httpx.Response(200, json={"identifier": "abc", "title": "First"}),
        httpx.Response(200, json={"identifier": "abc", "title": "Second"}),
    )
    key = ["datasets", "single", "abc"]

    async def load():
        return await client.fetch_dataset("abc")

    assert (await client.fetch_query(key, load))["title"] == "First"
    assert (await client.fetch_query(key, load))["title"] == "First"
    assert len(recorder.requests) == 1
    assert client.get_query_data(key)["title"] == "First"

    assert client.invalidate_queries(["datasets"]) == 1
    assert (await client.fetch_query(key, load))["title"] == "Second"
    assert len(recorder.requests) == 2


@pytest.mark.asyncio
async def test_set_remove_and_clear(make_caching_client):
    client, _ = make_caching_client()
    client.set_query_data(["datastore", "query", "abc", {"limit": 5}], {"results": []})
    client.set_query_data(["datastore", "query", "xyz"], {"results": [1]})
    client.set_query_data(["harvest", "plans"], ["p1"])

    assert client.get_query_data(["datastore", "query", "abc", {"limit": 5}]) == {"results": []}
    assert client.remove_queries(["datastore"]) == 2
    assert client.get_query_data(["harvest", "plans"]) == ["p1"]
    client.clear()
    assert client.get_query_data(["harvest", "plans"]) is None


@pytest.mark.asyncio
async def test_prefetch_populates_cache(make_caching_client):
    client, recorder = make_caching_client(httpx.Response(200, json=["dataset", "publisher"]))
    await client.prefetch_query(["schemas"], client.list_schemas)
    assert client.get_query_data(["schemas"]) == ["dataset", "publisher"]
    assert len(recorder.requests) == 1


@pytest.mark.asyncio
async def test_api_methods_delegate(make_caching_client):
    client, recorder = make_caching_client(httpx.Response(200, json={"result": {"id": "demo"}}))
    assert await client.get_dataset_ckan("demo") == {"id": "demo"}
    await client.query_sql("[SELECT * FROM abc];")
    assert recorder.last.url.path == "/api/1/datastore/sql"
    assert client.get_openapi_docs_url() == "https://example.com/api/1/docs"
    await client.close()
