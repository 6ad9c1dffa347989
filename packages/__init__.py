"""Python packages of the legal DMS monorepo.

``legal_dms`` holds the service (models, services, HTTP API) and
``dms_cli`` the operational command line. ``env`` loads ``.env`` files.
"""

from __future__ import annotations

from .env import load_env

__all__ = ["load_env"]
