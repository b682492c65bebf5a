#!/usr/bin/env python3
"""Plugin management CLI tool."""

import argparse
import asyncio
import json
import sys
from pathlib import Path

from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table

# Ensure project root is in path
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

load_dotenv(".env")

from devhost.constants import (
    DESCRIPTOR_FILE,
    INSTALLED_PLUGINS_DIR,
    PLUGIN_CATALOG_DIR,
    PLUGIN_STORE_FILE,
    WORKSPACE_DIR,
)
from devhost.plugins import ports
from devhost.plugins.errors import PluginInstallError
from devhost.plugins.installer import DirectoryInstaller
from devhost.plugins.manifest import ProjectDescriptor
from devhost.plugins.store import JsonPluginStore

console = Console()


def get_store() -> JsonPluginStore:
    """Create a JsonPluginStore instance."""
    return JsonPluginStore(PLUGIN_STORE_FILE)


def get_installer(store: JsonPluginStore) -> DirectoryInstaller:
    return DirectoryInstaller(store, INSTALLED_PLUGINS_DIR)


def cmd_list(args):
    """List all installed plugins."""
    records = get_store().list_records()

    if not records:
        console.print("No plugins installed.")
        return

    table = Table(title="Installed plugins")
    table.add_column("ID", style="cyan")
    table.add_column("Name")
    table.add_column("Version")
    table.add_column("Enabled")
    table.add_column("Size", justify="right")
    for r in records:
        table.add_row(r.id, r.name, r.version, "Yes" if r.enabled else "No", str(r.size))
    console.print(table)


def cmd_info(args):
    """Show detailed plugin information."""
    record = get_store().get_plugin_record(args.plugin_id)
    if not record:
        console.print(f"[red]Plugin '{args.plugin_id}' not found.[/red]")
        sys.exit(1)

    console.print(f"Plugin: [cyan]{record.id}[/cyan]")
    console.print(f"  Name:        {record.name}")
    console.print(f"  Version:     {record.version}")
    console.print(f"  Author:      {record.author}")
    console.print(f"  Description: {record.description}")
    console.print(f"  Path:        {INSTALLED_PLUGINS_DIR / record.id}")
    console.print(f"  Enabled:     {record.enabled}")
    console.print(f"  Permissions: {', '.join(record.permissions) or '-'}")
    console.print(f"  Installed:   {record.installed_at}")


def cmd_enable(args):
    """Enable a plugin."""
    if get_store().set_enabled(args.plugin_id, True) is None:
        console.print(f"[red]Plugin '{args.plugin_id}' not found.[/red]")
        sys.exit(1)
    console.print(f"Plugin '{args.plugin_id}' enabled.")


def cmd_disable(args):
    """Disable a plugin."""
    if get_store().set_enabled(args.plugin_id, False) is None:
        console.print(f"[red]Plugin '{args.plugin_id}' not found.[/red]")
        sys.exit(1)
    console.print(f"Plugin '{args.plugin_id}' disabled.")


def cmd_install(args):
    """Install a plugin from a local path or a catalog id."""
    source = Path(args.path)
    if not source.exists() and (PLUGIN_CATALOG_DIR / args.path).is_dir():
        source = PLUGIN_CATALOG_DIR / args.path
    source = source.resolve()

    if not source.exists():
        console.print(f"[red]Path does not exist: {source}[/red]")
        sys.exit(1)

    try:
        record = asyncio.run(get_installer(get_store()).install(source))
    except PluginInstallError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)

    console.print(f"Plugin '{record.id}' installed to {INSTALLED_PLUGINS_DIR / record.id}")


def cmd_uninstall(args):
    """Uninstall a plugin."""
    try:
        asyncio.run(get_installer(get_store()).uninstall(args.plugin_id))
    except PluginInstallError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)
    console.print(f"Plugin '{args.plugin_id}' uninstalled.")


async def _probe_workspace(root: Path):
    rows = []
    for project_dir in sorted(p for p in root.iterdir() if p.is_dir()):
        descriptor_path = project_dir / DESCRIPTOR_FILE
        if not descriptor_path.exists():
            continue
        try:
            with open(descriptor_path, "r", encoding="utf-8") as f:
                descriptor = ProjectDescriptor.model_validate(json.load(f))
        except (json.JSONDecodeError, ValueError) as e:
            rows.append((project_dir.name, "-", "-", f"invalid {DESCRIPTOR_FILE}: {e}"))
            continue

        configured = ports.extract_port_from_script(descriptor.dev_script)
        if not descriptor.dev_script:
            status = "no dev script"
            running = None
        elif configured is None:
            status = "unknown port"
            running = None
        else:
            running = await ports.find_running_port(configured)
            status = "running" if running else "not running"
        rows.append((project_dir.name, str(configured or "-"), str(running or "-"), status))
    return rows


def cmd_scan(args):
    """Show which workspace projects would be registered, without registering them."""
    root = Path(args.root).resolve() if args.root else WORKSPACE_DIR
    if not root.is_dir():
        console.print(f"[red]Workspace directory does not exist: {root}[/red]")
        sys.exit(1)

    rows = asyncio.run(_probe_workspace(root))
    if not rows:
        console.print(f"No projects with {DESCRIPTOR_FILE} under {root}")
        return

    table = Table(title=f"Workspace {root}")
    table.add_column("Project", style="cyan")
    table.add_column("Configured port", justify="right")
    table.add_column("Running port", justify="right")
    table.add_column("Status")
    for row in rows:
        table.add_row(*row)
    console.print(table)


def cmd_doctor(args):
    """Run health checks on the plugin system."""
    issues = []

    # Check directories
    if not WORKSPACE_DIR.exists():
        issues.append(f"Workspace directory missing: {WORKSPACE_DIR}")
    if not INSTALLED_PLUGINS_DIR.exists():
        issues.append(f"Installed plugins directory missing: {INSTALLED_PLUGINS_DIR}")

    # Check store file
    if PLUGIN_STORE_FILE.exists():
        try:
            with open(PLUGIN_STORE_FILE) as f:
                json.load(f)
        except json.JSONDecodeError as e:
            issues.append(f"Plugin store file has invalid JSON: {e}")

    # Check every record has an entry file on disk
    store = get_store()
    records = store.list_records()
    installer = get_installer(store)
    for r in records:
        plugin_dir = INSTALLED_PLUGINS_DIR / r.id
        if not plugin_dir.is_dir():
            issues.append(f"Plugin '{r.id}': directory missing: {plugin_dir}")
            continue
        try:
            manifest = installer.read_manifest(plugin_dir)
        except PluginInstallError as e:
            issues.append(f"Plugin '{r.id}': {e}")
            continue
        if not (plugin_dir / manifest.entry_file).exists():
            issues.append(f"Plugin '{r.id}': entry file missing: {manifest.entry_file}")

    if issues:
        console.print(f"[red]Found {len(issues)} issue(s):[/red]")
        for i, issue in enumerate(issues, 1):
            console.print(f"  {i}. {issue}")
        sys.exit(1)
    else:
        enabled = sum(1 for r in records if r.enabled)
        console.print(f"[green]All checks passed.[/green] {len(records)} plugin(s) installed, {enabled} enabled.")


def main():
    parser = argparse.ArgumentParser(description="devhost Plugin Manager")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # list
    subparsers.add_parser("list", help="List installed plugins")

    # info
    info_parser = subparsers.add_parser("info", help="Show plugin details")
    info_parser.add_argument("plugin_id", help="Plugin ID")

    # enable
    enable_parser = subparsers.add_parser("enable", help="Enable a plugin")
    enable_parser.add_argument("plugin_id", help="Plugin ID")

    # disable
    disable_parser = subparsers.add_parser("disable", help="Disable a plugin")
    disable_parser.add_argument("plugin_id", help="Plugin ID")

    # install
    install_parser = subparsers.add_parser("install", help="Install a plugin from a local path or catalog id")
    install_parser.add_argument("path", help="Path to plugin directory, or catalog plugin id")

    # uninstall
    uninstall_parser = subparsers.add_parser("uninstall", help="Uninstall a plugin")
    uninstall_parser.add_argument("plugin_id", help="Plugin ID")

    # scan
    scan_parser = subparsers.add_parser("scan", help="Dry-run workspace discovery")
    scan_parser.add_argument("--root", help="Workspace root (defaults to WORKSPACE_DIR)")

    # doctor
    subparsers.add_parser("doctor", help="Run health checks")

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    commands = {
        "list": cmd_list,
        "info": cmd_info,
        "enable": cmd_enable,
        "disable": cmd_disable,
        "install": cmd_install,
        "uninstall": cmd_uninstall,
        "scan": cmd_scan,
        "doctor": cmd_doctor,
    }

    commands[args.command](args)


if __name__ == "__main__":
    main()
