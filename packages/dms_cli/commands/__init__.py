"""Command registrations for the DMS CLI."""

from __future__ import annotations

from argparse import _SubParsersAction

from . import database, serve, shares

__all__ = ["register"]


def register(subparsers: _SubParsersAction) -> None:
    """Register all CLI commands with *subparsers*."""

    serve.register(subparsers)
    database.register(subparsers)
    shares.register(subparsers)
