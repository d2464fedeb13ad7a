import re

import pytest

from tests.unit.mocks.memory_object_store import MemoryObjectStore
from upload_relay.services.object_store import cleanup
from upload_relay.services.object_store import with_random_suffix


def test_random_suffix_keeps_extension_and_directory():
    key = with_random_suffix("reports/q3.pdf")

    assert re.match(r"^reports/q3-[A-Za-z0-9_-]{8}\.pdf$", key)
    assert with_random_suffix("reports/q3.pdf") != key


def test_random_suffix_without_extension():
    assert with_random_suffix("README").startswith("README-")


@pytest.mark.asyncio
async def test_cleanup_deletes_all_targets_in_one_call():
    store = MemoryObjectStore()
    urls = [store.put_raw("a", b"1"), store.put_raw("b", b"2")]

    await cleanup(store, urls)

    assert store.delete_calls == [urls]
    assert store.objects == {}


@pytest.mark.asyncio
async def test_cleanup_accepts_single_url():
    store = MemoryObjectStore()
    url = store.put_raw("a", b"1")

    await cleanup(store, url)

    assert store.delete_calls == [[url]]


@pytest.mark.asyncio
async def test_cleanup_swallows_delete_failures(caplog):
    store = MemoryObjectStore(fail_delete=True)

    await cleanup(store, ["https://store.test/a"])

    assert store.delete_calls == [["https://store.test/a"]]
    assert "Failed to delete transient object" in caplog.text


@pytest.mark.asyncio
async def test_cleanup_skips_empty_target_list():
    store = MemoryObjectStore()

    await cleanup(store, [])

    assert store.delete_calls == []


@pytest.mark.asyncio
@pytest.mark.parametrize("urls", [123, [None, 5]])
async def test_cleanup_never_raises_on_malformed_targets(urls, caplog):
    store = MemoryObjectStore()

    await cleanup(store, urls)

    assert "Failed to delete transient object" in caplog.text
