"""Global constants for the plugin host."""

import os
from pathlib import Path

# Directory paths
DEVHOST_ROOT = Path(os.getenv("DEVHOST_ROOT", "") or Path(__file__).resolve().parent.parent)


def _resolve(env_name: str, default: Path) -> Path:
    """Resolve a path from the environment, relative paths against DEVHOST_ROOT."""
    value = os.getenv(env_name, "")
    if not value:
        return default
    path = Path(value)
    return path if path.is_absolute() else (DEVHOST_ROOT / path).resolve()


WORKSPACE_DIR = _resolve("WORKSPACE_DIR", DEVHOST_ROOT / "apps")                  # one subdirectory per project
DATA_DIR = DEVHOST_ROOT / "data"
INSTALLED_PLUGINS_DIR = _resolve("PLUGINS_DIR", DATA_DIR / "plugins")            # installed plugin bundles
PLUGIN_CATALOG_DIR = _resolve("PLUGIN_CATALOG_DIR", DEVHOST_ROOT / "plugins")    # installable by bare id
PLUGIN_STORE_FILE = _resolve("PLUGIN_STORE_FILE", DATA_DIR / "plugins.json")

# Project descriptor / installed manifest file name
DESCRIPTOR_FILE = "package.json"

# Address fragment identifying the host window that renders webview plugins
HOST_WINDOW_URL = os.getenv("HOST_WINDOW_URL", "localhost:5174")

IS_DEVELOPMENT = os.getenv("DEVHOST_DEVELOPMENT", "false").lower() in ("1", "true", "yes")

# Quiet period after the last source change before a reload fires (seconds)
RELOAD_DEBOUNCE_SECONDS = float(os.getenv("RELOAD_DEBOUNCE_SECONDS", "0.5"))

# Wait after a new workspace directory appears before scanning it (seconds)
NEW_PROJECT_SETTLE_SECONDS = float(os.getenv("NEW_PROJECT_SETTLE_SECONDS", "2.0"))

# Timeout for loading content from a dev server (seconds)
CONTENT_LOAD_TIMEOUT = float(os.getenv("CONTENT_LOAD_TIMEOUT", "5"))

BASELINE_PERMISSIONS = ["storage", "notifications", "communication"]

# Channel host-to-plugin messages are delivered on
PLUGIN_MESSAGE_CHANNEL = "plugin-message"
