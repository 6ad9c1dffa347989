"""Run the DMS FastAPI service."""

from __future__ import annotations

from argparse import _SubParsersAction, Namespace

from ..config import RuntimeConfig

__all__ = ["register", "run"]


def register(subparsers: _SubParsersAction) -> None:
    parser = subparsers.add_parser("serve", help="Run the DMS API server")
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=8000)
    parser.add_argument(
        "--reload",
        action="store_true",
        help="Enable auto-reload for development",
    )
    parser.set_defaults(handler=run)


def run(args: Namespace, config: RuntimeConfig) -> None:
    import uvicorn

    from packages.legal_dms.api import create_app

    host = getattr(args, "host", "127.0.0.1")
    port = int(getattr(args, "port", 8000))
    if getattr(args, "reload", False):
        # reload 모드는 import 문자열이 필요
        uvicorn.run(
            "packages.legal_dms.api:create_app",
            factory=True,
            host=host,
            port=port,
            reload=True,
            log_level=config.log_level.lower(),
        )
        return
    app = create_app(config.settings)
    uvicorn.run(app, host=host, port=port, log_level=config.log_level.lower())
