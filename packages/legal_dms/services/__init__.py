"""Business services of the DMS; one class per resource family."""

from .audit import AuditService
from .base import ConflictError, ServiceBase
from .clients import ClientService
from .dashboard import DashboardService
from .documents import DocumentService, ObjectStore
from .firms import FirmService
from .matters import MatterService
from .portal import ClientPortalService
from .retention import RetentionService
from .sharing import MatterSharingService
from .system import SystemSettingsService
from .users import AdminService

__all__ = [
    "AdminService",
    "AuditService",
    "ClientPortalService",
    "ClientService",
    "ConflictError",
    "DashboardService",
    "DocumentService",
    "FirmService",
    "MatterService",
    "MatterSharingService",
    "ObjectStore",
    "RetentionService",
    "ServiceBase",
    "SystemSettingsService",
]
