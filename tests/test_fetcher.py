import pytest

from sharing.fetcher import Fetcher
from storage.exceptions import AccessDenied, NotFound, TransientStoreError


@pytest.mark.asyncio()
async def test_fetch_returns_whole_object(internal_store):
    content = await Fetcher(internal_store).fetch("incoming", "report.pdf")

    assert content == bytes(range(256)) * 4
    assert internal_store.calls == ["download_all"]


@pytest.mark.asyncio()
async def test_missing_object_raises_not_found_before_external_store_is_touched(internal_store, external_store):
    with pytest.raises(NotFound):
        await Fetcher(internal_store).fetch("incoming", "missing.txt")

    assert external_store.calls == []


@pytest.mark.asyncio()
async def test_missing_container_raises_not_found(internal_store):
    with pytest.raises(NotFound):
        await Fetcher(internal_store).fetch("nowhere", "report.pdf")


@pytest.mark.asyncio()
@pytest.mark.parametrize("fault", [AccessDenied("bad key"), TransientStoreError("timeout")])
async def test_store_faults_propagate_unchanged(internal_store, fault):
    internal_store.faults["download_all"] = fault

    with pytest.raises(type(fault)) as exc_info:
        await Fetcher(internal_store).fetch("incoming", "report.pdf")

    assert exc_info.value is fault
