"""Runtime configuration helpers shared by CLI commands."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from packages.env import load_env
from packages.legal_dms.settings import DmsSettings


@dataclass(frozen=True)
class RuntimeConfig:
    """Resolved configuration for command handlers."""

    settings: DmsSettings
    log_level: str


def bootstrap() -> None:
    """Load environment variables once."""

    load_env()


def build_runtime_config(
    *,
    log_level: str,
    database_url: Optional[str] = None,
    echo_sql: Optional[bool] = None,
) -> RuntimeConfig:
    """Construct a :class:`RuntimeConfig`; explicit options override the environment."""

    settings = DmsSettings.from_env()
    if database_url:
        settings.database_url = database_url
    if echo_sql is not None:
        settings.echo_sql = echo_sql
    return RuntimeConfig(settings=settings, log_level=log_level)
