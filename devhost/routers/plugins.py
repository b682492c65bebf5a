"""Plugin host REST API - the message channel and workspace endpoints over HTTP."""

import logging
from typing import Any, Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from devhost.dependencies import (
    get_main_window,
    get_message_bus,
    get_workspace_scanner,
)
from devhost.plugins.errors import UnknownCommandError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["plugins"])


class BusRequest(BaseModel):
    """Request body for a message-channel command."""

    payload: Any = None


class ScanRequest(BaseModel):
    """Request body for a workspace scan."""

    root: Optional[str] = None


def _to_response(result: Any) -> Any:
    if isinstance(result, BaseModel):
        return result.model_dump(mode="json", by_alias=True)
    return result


@router.get("/bus")
async def list_commands():
    """List the commands the message channel accepts."""
    return {"commands": get_message_bus().commands()}


@router.post("/bus/{command}")
async def dispatch_command(command: str, body: BusRequest):
    """Dispatch a command, e.g. POST /api/bus/dev-plugin:launch {"payload": "alpha"}."""
    try:
        result = await get_message_bus().request(command, body.payload)
    except UnknownCommandError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return _to_response(result)


@router.get("/workspace/projects")
async def list_projects():
    """List projects registered by the last workspace scan."""
    scanner = get_workspace_scanner()
    return {
        "root": str(scanner.workspace_root),
        "projects": [
            p.model_dump(mode="json", by_alias=True) for p in scanner.get_registered_projects()
        ],
    }


@router.post("/workspace/scan")
async def scan_workspace(body: ScanRequest):
    """Rescan the workspace (or another root) and register running projects."""
    scanner = get_workspace_scanner()
    await scanner.scan_and_register_projects(body.root)
    return await list_projects()


@router.get("/host/directives")
async def drain_directives():
    """Return and clear directives queued for the host window renderer."""
    return {"directives": get_main_window().drain()}
