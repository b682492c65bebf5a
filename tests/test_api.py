"""Tests for the plugin host REST API."""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from devhost import dependencies
from devhost.routers import plugins_router


@pytest.fixture
def client(tmp_path, monkeypatch):
    monkeypatch.setattr(dependencies, "PLUGIN_STORE_FILE", tmp_path / "plugins.json")
    monkeypatch.setattr(dependencies, "INSTALLED_PLUGINS_DIR", tmp_path / "installed")
    monkeypatch.setattr(dependencies, "PLUGIN_CATALOG_DIR", tmp_path / "catalog")
    monkeypatch.setattr(dependencies, "WORKSPACE_DIR", tmp_path / "workspace")
    dependencies.reset_services()
    dependencies.get_main_window()

    app = FastAPI()
    app.include_router(plugins_router)
    with TestClient(app) as test_client:
        yield test_client

    dependencies.get_workspace_scanner().cleanup()
    dependencies.reset_services()


class TestMessageChannelApi:
    """Tests for /api/bus."""

    def test_list_commands(self, client):
        response = client.get("/api/bus")

        assert response.status_code == 200
        commands = response.json()["commands"]
        assert "dev-plugin:launch" in commands
        assert "webview-plugin:reload" in commands
        assert "plugin:install" in commands

    def test_unknown_command(self, client):
        response = client.post("/api/bus/nope:cmd", json={"payload": None})

        assert response.status_code == 404
        assert "nope:cmd" in response.json()["detail"]

    def test_register_and_launch_webview(self, client):
        register = client.post(
            "/api/bus/webview-plugin:register",
            json={
                "payload": {
                    "id": "alpha",
                    "name": "Alpha",
                    "url": "http://localhost:4003",
                    "isDevelopment": True,
                    "manifest": {"id": "alpha", "name": "Alpha"},
                }
            },
        )
        launch = client.post("/api/bus/webview-plugin:launch", json={"payload": "alpha"})
        directives = client.get("/api/host/directives").json()["directives"]

        assert register.json() == {"success": True, "message": "Webview plugin alpha registered successfully"}
        assert launch.json()["success"] is True
        assert directives == [
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
        assert client.get("/api/host/directives").json()["directives"] == []

    def test_plugin_list_empty(self, client):
        response = client.post("/api/bus/plugin:list", json={})

        assert response.json() == []


class TestWorkspaceApi:
    def test_scan_empty_workspace(self, client, tmp_path):
        root = tmp_path / "workspace"
        root.mkdir()

        response = client.post("/api/workspace/scan", json={"root": str(root)})

        assert response.status_code == 200
        assert response.json() == {"root": str(root), "projects": []}
