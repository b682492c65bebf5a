from devhost.routers.plugins import router as plugins_router

__all__ = ["plugins_router"]
