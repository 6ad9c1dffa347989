"""Legal document management service.

Multi-tenant matters, clients and documents with role and clearance based
access control, cross-firm matter sharing and a client portal.
"""

from __future__ import annotations

from typing import Any

__all__ = ["create_app", "DmsSettings"]


def __getattr__(name: str) -> Any:
    # FastAPI is only imported when the HTTP app is actually requested
    if name == "create_app":
        from .api import create_app

        return create_app
    if name == "DmsSettings":
        from .settings import DmsSettings

        return DmsSettings
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
