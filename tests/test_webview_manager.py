"""Tests for PluginWebviewManager."""

import pytest

from devhost.core.bus import MessageBus
from devhost.plugins.manifest import PluginManifest, WebviewPluginConfig
from devhost.plugins.webview_manager import MAIN_WINDOW_NOT_FOUND, PluginWebviewManager
from devhost.plugins.windows import HostWindowDirectory, QueuedHostWindow
from tests.conftest import HOST_URL


def make_config(plugin_id="alpha", url="http://localhost:4003", is_development=True) -> WebviewPluginConfig:
    return WebviewPluginConfig(
        id=plugin_id,
        name=plugin_id.title(),
        url=url,
        is_development=is_development,
        manifest=PluginManifest(id=plugin_id, name=plugin_id.title()),
    )


@pytest.fixture
def manager(windows):
    return PluginWebviewManager(windows, host_url=HOST_URL, preload_path="/opt/preload.js")


class TestRegisterWebviewPlugin:
    @pytest.mark.asyncio
    async def test_url_required(self, manager):
        result = await manager.register_webview_plugin(make_config(url=""))

        assert result.success is False
        assert result.message == "URL is required for webview plugin alpha"
        assert not manager.is_webview_plugin_registered("alpha")

    @pytest.mark.asyncio
    async def test_register_twice_keeps_one_entry(self, manager):
        await manager.register_webview_plugin(make_config())
        result = await manager.register_webview_plugin(make_config(url="http://localhost:4004"))

        assert result.success is True
        assert len(manager.get_registered_webview_plugins()) == 1
        assert manager.plugins.get("alpha").url == "http://localhost:4004"


class TestHostDirectives:
    """Tests for launch, close, reload and API injection directives."""

    @pytest.mark.asyncio
    async def test_launch(self, manager, host_window):
        await manager.register_webview_plugin(make_config())

        result = await manager.launch_webview_plugin("alpha")

        assert result.success is True
        assert host_window.drain() == [
            {
                "channel": "webview-plugin:launch",
                "payload": {
                    "pluginId": "alpha",
                    "pluginName": "Alpha",
                    "pluginUrl": "http://localhost:4003",
                    "isDevelopment": True,
                },
            }
        ]

    @pytest.mark.asyncio
    async def test_development_flag_comes_from_each_plugin(self, manager, host_window):
        await manager.register_webview_plugin(make_config("alpha"))
        await manager.register_webview_plugin(make_config("beta", is_development=False))

        await manager.launch_webview_plugin("alpha")
        await manager.launch_webview_plugin("beta")

        flags = [d["payload"]["isDevelopment"] for d in host_window.drain()]
        assert flags == [True, False]

    @pytest.mark.asyncio
    async def test_close_reload_and_inject(self, manager, host_window):
        await manager.register_webview_plugin(make_config())

        await manager.close_webview_plugin("alpha")
        await manager.reload_webview_plugin("alpha")
        inject = await manager.inject_plugin_api("alpha")

        assert inject.message == "PluginAPI injected for alpha"
        assert host_window.drain() == [
            {"channel": "webview-plugin:close", "payload": "alpha"},
            {
                "channel": "webview-plugin:reload",
                "payload": {"pluginId": "alpha", "pluginUrl": "http://localhost:4003"},
            },
            {
                "channel": "webview-plugin:inject-api",
                "payload": {"pluginId": "alpha", "preloadPath": "/opt/preload.js"},
            },
        ]

    @pytest.mark.asyncio
    async def test_unknown_plugin(self, manager, host_window):
        for operation in (
            manager.launch_webview_plugin,
            manager.close_webview_plugin,
            manager.reload_webview_plugin,
            manager.inject_plugin_api,
        ):
            result = await operation("ghost")
            assert result.success is False
            assert result.message == "Webview plugin ghost not found"

        assert host_window.drain() == []

    @pytest.mark.asyncio
    async def test_main_window_not_found(self):
        directory = HostWindowDirectory()
        directory.add(QueuedHostWindow("http://localhost:9999/"))
        manager = PluginWebviewManager(directory, host_url=HOST_URL)
        await manager.register_webview_plugin(make_config())

        result = await manager.launch_webview_plugin("alpha")

        assert result.success is False
        assert result.message == MAIN_WINDOW_NOT_FOUND

    @pytest.mark.asyncio
    async def test_first_matching_window_wins(self, manager, windows, host_window):
        second = QueuedHostWindow(f"http://{HOST_URL}/settings")
        windows.add(second)
        await manager.register_webview_plugin(make_config())

        await manager.launch_webview_plugin("alpha")

        assert len(host_window.drain()) == 1
        assert second.drain() == []


class TestBusHandlers:
    @pytest.mark.asyncio
    async def test_commands(self, manager, host_window):
        bus = MessageBus()
        manager.register_handlers(bus)

        registered = await bus.request(
            "webview-plugin:register",
            {
                "id": "alpha",
                "name": "Alpha",
                "url": "http://localhost:4003",
                "isDevelopment": True,
                "manifest": {"id": "alpha", "name": "Alpha"},
            },
        )
        listed = await bus.request("webview-plugin:list")
        launched = await bus.request("webview-plugin:launch", "alpha")

        assert registered.success and launched.success
        assert listed[0]["isDevelopment"] is True
        assert bus.has("webview-plugin:reload")
        assert host_window.drain()[0]["channel"] == "webview-plugin:launch"

    def test_cleanup(self, manager):
        manager.plugins.put("alpha", make_config())
        manager.cleanup()

        assert manager.get_registered_webview_plugins() == []
