"""Plugin data models - manifests, project descriptors and loader configs."""

from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class PluginManifest(BaseModel):
    """Plugin manifest loaded from package.json (or built for workspace projects)."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str = Field(..., description="Unique plugin identifier")
    name: str = Field(..., description="Human-readable plugin name")
    version: str = Field(default="1.0.0", description="Plugin version")
    description: str = Field(default="", description="Plugin description")
    author: str = Field(default="", description="Plugin author")
    main: str = Field(
        default="index.html",
        validation_alias=AliasChoices("main", "entryFile", "entry_file"),
        description="Entry file relative to the plugin directory",
    )
    permissions: List[str] = Field(default_factory=list, description="Declared permissions")

    @field_validator("permissions")
    @classmethod
    def dedupe_permissions(cls, v: List[str]) -> List[str]:
        return list(dict.fromkeys(v))

    @property
    def entry_file(self) -> str:
        return self.main


class DevelopmentOptions(BaseModel):
    """Development block of a project descriptor."""

    model_config = ConfigDict(populate_by_name=True)

    hot_reload: bool = Field(default=True, alias="hotReload")
    dev_tools: bool = Field(default=True, alias="devTools")
    file_watcher: bool = Field(default=True, alias="fileWatcher")


class WindowOptions(BaseModel):
    width: int = 400
    height: int = 600
    resizable: bool = True


class ProjectDescriptor(BaseModel):
    """A workspace project's package.json, reduced to the fields the scanner reads."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    name: str = ""
    version: str = ""
    description: Optional[str] = None
    author: Optional[str] = None
    main: Optional[str] = None
    scripts: Dict[str, str] = Field(default_factory=dict)
    development: Optional[DevelopmentOptions] = None
    window: Optional[WindowOptions] = None

    @field_validator("author", mode="before")
    @classmethod
    def author_to_str(cls, v):
        # npm allows {"name": ..., "email": ...} for author
        if isinstance(v, dict):
            return v.get("name")
        return v

    @property
    def dev_script(self) -> Optional[str]:
        return self.scripts.get("dev") or self.scripts.get("start") or None


class DevPluginConfig(BaseModel):
    """A file-backed plugin owned by PluginDevLoader."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    version: str = "1.0.0"
    source_path: Path = Field(
        ...,
        validation_alias=AliasChoices("source_path", "sourcePath", "devPath"),
        serialization_alias="sourcePath",
    )
    manifest: PluginManifest


class WebviewPluginConfig(BaseModel):
    """A URL-backed plugin rendered inside the host window."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    version: str = "1.0.0"
    url: str = ""
    is_development: bool = Field(default=False, alias="isDevelopment")
    manifest: PluginManifest


class ProjectConfig(BaseModel):
    """A discovered workspace project. Rebuilt on every scan, never persisted."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    version: str
    source_path: Path = Field(..., alias="sourcePath")
    descriptor: ProjectDescriptor
    has_dev_server: bool = Field(default=False, alias="hasDevServer")
    dev_server_port: Optional[int] = Field(default=None, alias="devServerPort")


class PluginRecord(BaseModel):
    """Persisted record of an installed plugin."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    version: str
    description: str = ""
    author: str = ""
    enabled: bool = Field(default=True, alias="isActive")
    permissions: List[str] = Field(default_factory=list, alias="requiredPermissions")
    size: int = 0
    installed_at: datetime = Field(default_factory=datetime.now, alias="createdAt")
    updated_at: datetime = Field(default_factory=datetime.now, alias="updatedAt")
