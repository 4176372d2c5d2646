"""
app/api/routers package marker.
"""

from app.api.routers.audit_router import router as audit_router
from app.api.routers.client_router import router as client_router
from app.api.routers.crawl_router import router as crawl_router
from app.api.routers.webhook_router import router as webhook_router

__all__ = [
    "audit_router",
    "client_router",
    "crawl_router",
    "webhook_router",
]
