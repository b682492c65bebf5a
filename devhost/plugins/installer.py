"""Directory installer - copies plugin bundles into the plugins directory."""

import asyncio
import json
import logging
import re
import shutil
from datetime import datetime
from pathlib import Path

from devhost.constants import DESCRIPTOR_FILE
from devhost.plugins.errors import PluginInstallError
from devhost.plugins.interfaces import PluginInstaller, PluginStore
from devhost.plugins.manifest import PluginManifest, PluginRecord

logger = logging.getLogger(__name__)

REQUIRED_MANIFEST_FIELDS = ("name", "version", "author", "main")
SEMVER_PATTERN = re.compile(r"^\d+\.\d+\.\d+")
# Plugin ids name a directory under the plugins dir
PLUGIN_ID_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")


def plugin_id_from_name(name: str) -> str:
    return re.sub(r"[^a-z0-9-]", "-", name.lower())


def directory_size(path: Path) -> int:
    return sum(f.stat().st_size for f in path.rglob("*") if f.is_file())


class DirectoryInstaller(PluginInstaller):
    """Installs a plugin directory containing a package.json manifest."""

    def __init__(self, store: PluginStore, plugins_dir: Path):
        self.store = store
        self.plugins_dir = plugins_dir

    def read_manifest(self, source_path: Path) -> PluginManifest:
        """Read and validate the manifest of a plugin directory.

        Raises:
            PluginInstallError: If the manifest is missing or invalid
        """
        manifest_file = source_path / DESCRIPTOR_FILE
        if not manifest_file.exists():
            raise PluginInstallError(f"No {DESCRIPTOR_FILE} found at {source_path}")

        try:
            with open(manifest_file, "r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise PluginInstallError(f"Invalid JSON in {manifest_file}: {e}") from e

        for field in REQUIRED_MANIFEST_FIELDS:
            if not data.get(field):
                raise PluginInstallError(f"Missing required field: {field}")

        if not SEMVER_PATTERN.match(str(data["version"])):
            raise PluginInstallError("Invalid version format. Use semantic versioning (x.y.z)")

        if isinstance(data.get("author"), dict):
            data["author"] = data["author"].get("name", "")
        data["id"] = data.get("id") or plugin_id_from_name(data["name"])
        if not PLUGIN_ID_PATTERN.match(str(data["id"])):
            raise PluginInstallError(f"Invalid plugin id: {data['id']!r}")
        return PluginManifest.model_validate(data)

    def plugin_dir(self, plugin_id: str) -> Path:
        """Directory of an installed plugin, which must lie inside plugins_dir.

        Raises:
            PluginInstallError: If the id would escape plugins_dir
        """
        root = self.plugins_dir.resolve()
        path = (root / plugin_id).resolve()
        if not PLUGIN_ID_PATTERN.match(plugin_id) or path.parent != root:
            raise PluginInstallError(f"Invalid plugin id: {plugin_id!r}")
        return path

    async def install(self, source_path: Path) -> PluginRecord:
        manifest = self.read_manifest(source_path)
        plugin_id = manifest.id

        if self.store.get_plugin_record(plugin_id):
            raise PluginInstallError(f"Plugin {manifest.name} is already installed")

        dest = self.plugin_dir(plugin_id)
        if dest.exists():
            raise PluginInstallError(f"Plugin directory already exists: {dest}")

        self.plugins_dir.mkdir(parents=True, exist_ok=True)
        await asyncio.to_thread(shutil.copytree, source_path, dest)
        size = await asyncio.to_thread(directory_size, dest)

        now = datetime.now()
        record = PluginRecord(
            id=plugin_id,
            name=manifest.name,
            version=manifest.version,
            description=manifest.description,
            author=manifest.author,
            enabled=True,
            permissions=list(manifest.permissions),
            size=size,
            installed_at=now,
            updated_at=now,
        )
        self.store.save_record(record)

        logger.info(f"Installed plugin '{plugin_id}' to {dest}")
        return record

    async def uninstall(self, plugin_id: str) -> None:
        record = self.store.get_plugin_record(plugin_id)
        if record is None:
            raise PluginInstallError(f"Plugin {plugin_id} not found")

        plugin_dir = self.plugin_dir(plugin_id)
        try:
            await asyncio.to_thread(shutil.rmtree, plugin_dir)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"Failed to remove plugin directory {plugin_dir}: {e}")

        self.store.delete_record(plugin_id)
        logger.info(f"Uninstalled plugin '{record.name}'")
