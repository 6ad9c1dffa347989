"""HTTP routers; order matters where literal paths share a prefix."""

from . import admin, audit, clients, dashboard, documents, health, matters, portal, retention, sharing

ROUTERS = (
    health.router,
    admin.router,
    retention.router,
    clients.router,
    # /matters/shares must be matched before /matters/{matter_id}
    sharing.router,
    sharing.shared_router,
    matters.router,
    documents.router,
    dashboard.router,
    portal.router,
    audit.router,
)

__all__ = ["ROUTERS"]
