"""FastAPI routers."""

from .automation import router as automation_router
from .channels import router as channels_router
from .cron import router as cron_router
from .health import router as health_router

__all__ = ["automation_router", "channels_router", "cron_router", "health_router"]
