"""Main FastAPI application for the devhost plugin host."""

import logging
import os
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables from .env
load_dotenv('.env')

# Configure logging BEFORE importing any modules that use logger
log_level = os.getenv('LOG_LEVEL', 'INFO')
logging.basicConfig(
    level=getattr(logging, log_level.upper()),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Import after logging is configured
from fastapi import FastAPI
from devhost.dependencies import (
    get_dev_loader,
    get_main_window,
    get_message_bus,
    get_plugin_manager,
    get_webview_manager,
    get_workspace_scanner,
)
from devhost.routers import plugins_router

# Create FastAPI app
app = FastAPI(
    title="devhost",
    description="Plugin host with workspace auto-discovery and hot reload",
    version="1.0.0"
)

app.include_router(plugins_router)


@app.get("/")
async def root():
    return {"message": "devhost plugin host", "docs": "/docs"}


@app.on_event("startup")
async def startup_event():
    """Application startup event."""
    logger.info("Starting devhost")
    logger.info(f"Working directory: {Path.cwd()}")

    get_main_window()
    get_message_bus()
    await get_plugin_manager().initialize()
    await get_workspace_scanner().scan_and_register_projects()


@app.on_event("shutdown")
async def shutdown_event():
    """Application shutdown event."""
    logger.info("Shutting down devhost")
    get_workspace_scanner().cleanup()
    get_dev_loader().cleanup()
    get_webview_manager().cleanup()
    await get_plugin_manager().cleanup()


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", "9090"))
    uvicorn.run("app:app", host="127.0.0.1", port=port)
