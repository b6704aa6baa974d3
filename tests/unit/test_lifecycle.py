"""Unit tests for the lifecycle coordinator."""

import asyncio

import pytest

from swagger_adapter.errors import DocumentFetchError, InvalidDocumentError, UnsupportedVersionError
from swagger_adapter.lifecycle import LifecycleState, ToolLifecycle


@pytest.fixture
def settings(settings_factory):
    return settings_factory(swagger_url="https://api.example.com/openapi.json", refresh_interval_seconds=0)


@pytest.mark.asyncio
async def test_first_load_publishes_snapshot(settings, scripted_loader, openapi3_document):
    lifecycle = ToolLifecycle(settings, loader=scripted_loader(openapi3_document))
    published = []
    lifecycle.add_listener(lambda snapshot, previous: published.append((snapshot, previous)))

    assert lifecycle.state is LifecycleState.UNINITIALIZED
    snapshot = await lifecycle.load()

    assert lifecycle.state is LifecycleState.READY
    assert lifecycle.snapshot is snapshot
    assert snapshot.generation == 1
    assert snapshot.base_url == "https://api.example.com"
    assert set(snapshot.tools) == {"get-users", "post-users-id", "delete-users-id"}
    assert published == [(snapshot, None)]


@pytest.mark.asyncio
async def test_snapshot_before_load_raises(settings, scripted_loader, openapi3_document):
    lifecycle = ToolLifecycle(settings, loader=scripted_loader(openapi3_document))

    with pytest.raises(RuntimeError):
        lifecycle.snapshot
    assert lifecycle.generation is None


@pytest.mark.asyncio
async def test_first_load_failure_is_fatal(settings, scripted_loader):
    lifecycle = ToolLifecycle(settings, loader=scripted_loader(DocumentFetchError("down")))

    with pytest.raises(DocumentFetchError):
        await lifecycle.load()

    assert lifecycle.state is LifecycleState.FAILED
    with pytest.raises(RuntimeError):
        lifecycle.snapshot


@pytest.mark.asyncio
@pytest.mark.parametrize("failure", [DocumentFetchError("down"), UnsupportedVersionError("4.0")])
async def test_failed_reload_keeps_previous_snapshot(settings, scripted_loader, openapi3_document, failure):
    lifecycle = ToolLifecycle(settings, loader=scripted_loader(openapi3_document, failure))
    published = []
    lifecycle.add_listener(lambda snapshot, previous: published.append(snapshot))

    first = await lifecycle.load()
    second = await lifecycle.load()

    assert second is first
    assert lifecycle.snapshot is first
    assert lifecycle.state is LifecycleState.READY
    assert published == [first]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "failure",
    [{"openapi": "3.0.0", "paths": ["not", "a", "map"]}, RuntimeError("loader bug")],
)
async def test_structurally_broken_reload_returns_to_ready(settings, scripted_loader, openapi3_document, failure):
    lifecycle = ToolLifecycle(settings, loader=scripted_loader(openapi3_document, failure))

    first = await lifecycle.load()
    second = await lifecycle.load()

    assert second is first
    assert lifecycle.state is LifecycleState.READY
    assert lifecycle.generation == 1


@pytest.mark.asyncio
async def test_structurally_broken_first_load_fails(settings, scripted_loader):
    lifecycle = ToolLifecycle(settings, loader=scripted_loader({"openapi": "3.0.0", "paths": ["x"]}))

    with pytest.raises(InvalidDocumentError):
        await lifecycle.load()

    assert lifecycle.state is LifecycleState.FAILED


@pytest.mark.asyncio
async def test_reload_publishes_new_generation(settings, scripted_loader, openapi3_document, swagger2_document):
    lifecycle = ToolLifecycle(settings, loader=scripted_loader(openapi3_document, swagger2_document))
    published = []
    lifecycle.add_listener(lambda snapshot, previous: published.append((snapshot, previous)))

    first = await lifecycle.load()
    second = await lifecycle.load()

    assert second.generation == 2
    assert "get-pets" in second.tools
    assert "get-users" in first.tools
    assert published[-1] == (second, first)


@pytest.mark.asyncio
async def test_base_url_override(settings_factory, scripted_loader, openapi3_document):
    settings = settings_factory(swagger_path="openapi.json", api_base_url="http://staging.internal:8080")
    lifecycle = ToolLifecycle(settings, loader=scripted_loader(openapi3_document))

    snapshot = await lifecycle.load()

    assert snapshot.base_url == "http://staging.internal:8080"
    assert snapshot.executor.base_url == "http://staging.internal:8080"


@pytest.mark.asyncio
async def test_source_url_feeds_relative_servers(settings, scripted_loader, openapi3_document):
    openapi3_document["servers"] = [{"url": "/v2"}]
    loader = scripted_loader(openapi3_document, source_url="https://docs.example.com/openapi.json")

    snapshot = await ToolLifecycle(settings, loader=loader).load()

    assert snapshot.base_url == "https://docs.example.com/v2"


@pytest.mark.asyncio
async def test_refresh_disabled_when_interval_is_zero(settings, scripted_loader, openapi3_document):
    lifecycle = ToolLifecycle(settings, loader=scripted_loader(openapi3_document))
    await lifecycle.load()

    lifecycle.start_refresh()

    assert lifecycle._refresh_task is None
    await lifecycle.stop()


@pytest.mark.asyncio
async def test_periodic_refresh_reloads(settings_factory, scripted_loader, openapi3_document):
    settings = settings_factory(swagger_path="openapi.json", refresh_interval_seconds=0.01)
    loader = scripted_loader(openapi3_document)
    lifecycle = ToolLifecycle(settings, loader=loader)
    await lifecycle.load()

    lifecycle.start_refresh()
    for _ in range(100):
        if lifecycle.generation and lifecycle.generation >= 3:
            break
        await asyncio.sleep(0.01)
    await lifecycle.stop()

    assert lifecycle.generation >= 3
    assert loader.calls >= 3
