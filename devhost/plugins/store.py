"""Plugin record store - persists installed plugins to a JSON file."""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from devhost.plugins.interfaces import PluginStore
from devhost.plugins.manifest import PluginRecord

logger = logging.getLogger(__name__)


class JsonPluginStore(PluginStore):
    """Manages the plugin records file.

    File format:
    {
        "plugins": {
            "counter-plugin": {
                "id": "counter-plugin",
                "name": "Counter Plugin",
                "version": "1.0.0",
                "enabled": true,
                "permissions": ["storage"],
                ...
            }
        }
    }
    """

    def __init__(self, store_file: Path):
        self.store_file = store_file
        self._data: Dict[str, Any] = self._load()

    def _load(self) -> Dict[str, Any]:
        """Load records from file, starting empty if not found."""
        if self.store_file.exists():
            try:
                with open(self.store_file, "r", encoding="utf-8") as f:
                    return json.load(f)
            except (json.JSONDecodeError, IOError) as e:
                logger.error(f"Error loading plugin store: {e}")

        return {"plugins": {}}

    def _save(self) -> None:
        self.store_file.parent.mkdir(parents=True, exist_ok=True)
        with open(self.store_file, "w", encoding="utf-8") as f:
            json.dump(self._data, f, indent=2, ensure_ascii=False)
        logger.debug(f"Saved plugin store to {self.store_file}")

    def get_plugin_record(self, plugin_id: str) -> Optional[PluginRecord]:
        raw = self._data.get("plugins", {}).get(plugin_id)
        if raw is None:
            return None
        try:
            return PluginRecord.model_validate(raw)
        except ValidationError as e:
            logger.error(f"Invalid record for plugin {plugin_id}: {e}")
            return None

    def list_records(self) -> List[PluginRecord]:
        records = []
        for plugin_id in self._data.get("plugins", {}):
            record = self.get_plugin_record(plugin_id)
            if record:
                records.append(record)
        return records

    def save_record(self, record: PluginRecord) -> None:
        plugins = self._data.setdefault("plugins", {})
        plugins[record.id] = record.model_dump(mode="json")
        self._save()
        logger.info(f"Saved record for plugin: {record.id}")

    def set_enabled(self, plugin_id: str, enabled: bool) -> Optional[PluginRecord]:
        record = self.get_plugin_record(plugin_id)
        if record is None:
            return None
        record = record.model_copy(update={"enabled": enabled, "updated_at": datetime.now()})
        self.save_record(record)
        logger.info(f"{'Enabled' if enabled else 'Disabled'} plugin: {plugin_id}")
        return record

    def delete_record(self, plugin_id: str) -> bool:
        plugins = self._data.get("plugins", {})
        if plugin_id not in plugins:
            return False
        del plugins[plugin_id]
        self._save()
        logger.info(f"Deleted record for plugin: {plugin_id}")
        return True
