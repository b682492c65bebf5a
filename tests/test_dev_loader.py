"""Tests for PluginDevLoader."""

import asyncio

import pytest
from watchdog.events import FileModifiedEvent

from devhost.core.bus import MessageBus
from devhost.plugins.dev_loader import PluginDevLoader
from devhost.plugins.manifest import DevPluginConfig, PluginManifest
from devhost.plugins.ports import dev_server_port_for
from tests.conftest import FakeSandbox


def make_config(tmp_path, plugin_id="alpha", with_entry=True) -> DevPluginConfig:
    source = tmp_path / plugin_id
    source.mkdir(exist_ok=True)
    if with_entry:
        (source / "index.html").write_text("<h1>hello</h1>", encoding="utf-8")
    return DevPluginConfig(
        id=plugin_id,
        name=plugin_id.title(),
        source_path=source,
        manifest=PluginManifest(id=plugin_id, name=plugin_id.title(), permissions=["storage"]),
    )


@pytest.fixture
def loader(bridge, sandbox, watch_factory):
    return PluginDevLoader(bridge, sandbox, watch_factory=watch_factory, reload_delay=0.05)


class TestRegisterDevPlugin:
    """Tests for dev plugin registration."""

    @pytest.mark.asyncio
    async def test_missing_path(self, loader, tmp_path):
        config = DevPluginConfig(
            id="ghost",
            name="Ghost",
            source_path=tmp_path / "nowhere",
            manifest=PluginManifest(id="ghost", name="Ghost"),
        )

        result = await loader.register_dev_plugin(config)

        assert result.success is False
        assert result.message == f"Development path does not exist: {tmp_path / 'nowhere'}"
        assert not loader.plugins.has("ghost")

    @pytest.mark.asyncio
    async def test_register_is_idempotent(self, bridge, sandbox, watch_factory, tmp_path):
        """Registering twice leaves one entry and one live watcher."""
        loader = PluginDevLoader(bridge, sandbox, is_development=True, watch_factory=watch_factory)
        config = make_config(tmp_path)

        first = await loader.register_dev_plugin(config)
        second = await loader.register_dev_plugin(config)

        assert first.success and second.success
        assert first.message == "Development plugin alpha registered successfully"
        assert loader.plugins.count() == 1
        assert loader.watchers.count() == 1
        assert len(watch_factory.watches) == 2
        assert watch_factory.watches[0].close_calls == 1
        assert watch_factory.watches[1].close_calls == 0

    @pytest.mark.asyncio
    async def test_caller_owned_watch(self, bridge, sandbox, watch_factory, tmp_path):
        loader = PluginDevLoader(bridge, sandbox, is_development=True, watch_factory=watch_factory)

        result = await loader.register_dev_plugin(make_config(tmp_path), watch=False)

        assert result.success is True
        assert watch_factory.watches == []

    @pytest.mark.asyncio
    async def test_no_watcher_outside_development(self, loader, watch_factory, tmp_path):
        await loader.register_dev_plugin(make_config(tmp_path))

        assert watch_factory.watches == []

    @pytest.mark.asyncio
    async def test_register_over_bus(self, loader, tmp_path):
        bus = MessageBus()
        loader.register_handlers(bus)
        source = make_config(tmp_path).source_path

        result = await bus.request(
            "dev-plugin:register",
            {
                "id": "alpha",
                "name": "Alpha",
                "sourcePath": str(source),
                "manifest": {"id": "alpha", "name": "Alpha"},
            },
        )
        invalid = await bus.request("dev-plugin:register", {"id": "broken"})

        assert result.success is True
        assert invalid.success is False
        assert (await bus.request("dev-plugin:list"))[0]["sourcePath"] == str(source)


class TestLaunchDevPlugin:
    """Tests for launching, loading and closing dev plugins."""

    @pytest.mark.asyncio
    async def test_unknown_plugin(self, loader):
        result = await loader.launch_dev_plugin("nope")

        assert result.success is False
        assert result.message == "Development plugin nope not found"

    @pytest.mark.asyncio
    async def test_falls_back_to_entry_file(self, loader, sandbox, bridge, tmp_path):
        """Dev server first; when it refuses, the entry file is loaded."""
        config = make_config(tmp_path)
        await loader.register_dev_plugin(config)

        result = await loader.launch_dev_plugin("alpha")

        assert result.success is True
        handle = sandbox.handles[0]
        assert handle.loaded == [
            f"http://localhost:{dev_server_port_for('alpha')}",
            (config.source_path / "index.html").resolve().as_uri(),
        ]
        assert handle.options.title == "Alpha (Dev Mode)"
        assert "--plugin-id=alpha" in handle.options.additional_arguments
        assert loader.is_dev_plugin_running("alpha")
        assert bridge.get_context("alpha") is handle

    @pytest.mark.asyncio
    async def test_dev_server_answers(self, bridge, watch_factory, tmp_path):
        sandbox = FakeSandbox(fail_prefixes=())
        loader = PluginDevLoader(bridge, sandbox, watch_factory=watch_factory)
        await loader.register_dev_plugin(make_config(tmp_path))

        await loader.launch_dev_plugin("alpha")

        assert sandbox.handles[0].loaded == [f"http://localhost:{dev_server_port_for('alpha')}"]

    @pytest.mark.asyncio
    async def test_no_content_source(self, loader, sandbox, bridge, tmp_path):
        await loader.register_dev_plugin(make_config(tmp_path, with_entry=False))

        result = await loader.launch_dev_plugin("alpha")

        assert result.success is False
        assert "no content source available for plugin alpha" in result.message
        assert not loader.is_dev_plugin_running("alpha")
        assert bridge.get_context("alpha") is None
        assert sandbox.handles[0].is_destroyed

    @pytest.mark.asyncio
    async def test_second_launch_focuses(self, loader, sandbox, tmp_path):
        await loader.register_dev_plugin(make_config(tmp_path))

        await loader.launch_dev_plugin("alpha")
        result = await loader.launch_dev_plugin("alpha")

        assert result.message == "Development plugin alpha is already running"
        assert len(sandbox.handles) == 1
        assert sandbox.handles[0].focus_calls == 1

    @pytest.mark.asyncio
    async def test_external_close_forgets_context(self, loader, sandbox, bridge, tmp_path):
        await loader.register_dev_plugin(make_config(tmp_path))
        await loader.launch_dev_plugin("alpha")

        sandbox.handles[0].close()

        assert not loader.is_dev_plugin_running("alpha")
        assert bridge.get_context("alpha") is None

    @pytest.mark.asyncio
    async def test_close(self, loader, sandbox, tmp_path):
        await loader.register_dev_plugin(make_config(tmp_path))
        await loader.launch_dev_plugin("alpha")

        result = await loader.close_dev_plugin("alpha")
        again = await loader.close_dev_plugin("alpha")

        assert result.success is True
        assert again.success is False
        assert sandbox.handles[0].close_calls == 1


class TestReloadDevPlugin:
    @pytest.mark.asyncio
    async def test_not_running(self, loader, tmp_path):
        await loader.register_dev_plugin(make_config(tmp_path))

        result = await loader.reload_dev_plugin("alpha")

        assert result.success is False
        assert result.message == "Development plugin alpha is not running"

    @pytest.mark.asyncio
    async def test_reload_loads_again(self, loader, sandbox, tmp_path):
        await loader.register_dev_plugin(make_config(tmp_path))
        await loader.launch_dev_plugin("alpha")

        result = await loader.reload_dev_plugin("alpha")

        assert result.success is True
        assert len(sandbox.handles[0].loaded) == 4

    @pytest.mark.asyncio
    async def test_file_changes_are_debounced(self, bridge, sandbox, watch_factory, tmp_path):
        """A burst of source changes reloads the plugin once."""
        loader = PluginDevLoader(
            bridge, sandbox, is_development=True, reload_delay=0.05, watch_factory=watch_factory
        )
        config = make_config(tmp_path)
        await loader.register_dev_plugin(config)
        await loader.launch_dev_plugin("alpha")
        handler = watch_factory.for_path(config.source_path).handler

        for _ in range(3):
            handler.dispatch(FileModifiedEvent(str(config.source_path / "app.js")))
        handler.dispatch(FileModifiedEvent(str(config.source_path / "README.md")))
        await asyncio.sleep(0.2)

        # Two attempts for the launch, two for the single reload
        assert len(sandbox.handles[0].loaded) == 4


class TestCleanup:
    @pytest.mark.asyncio
    async def test_cleanup_releases_everything(self, bridge, sandbox, watch_factory, tmp_path):
        loader = PluginDevLoader(bridge, sandbox, is_development=True, watch_factory=watch_factory)
        for plugin_id in ("alpha", "beta"):
            await loader.register_dev_plugin(make_config(tmp_path, plugin_id))
            await loader.launch_dev_plugin(plugin_id)

        loader.cleanup()

        assert all(h.close_calls == 1 for h in sandbox.handles)
        assert all(w.close_calls == 1 for w in watch_factory.watches)
        assert loader.plugins.count() == 0
        assert loader.contexts.count() == 0
        assert loader.watchers.count() == 0
        assert bridge.registered() == []
