"""Command-line entry point for the legal DMS."""

from __future__ import annotations

import argparse
import logging
import os
import sys
from typing import Callable, List, Optional

import structlog

from . import commands
from .config import RuntimeConfig, bootstrap, build_runtime_config

CommandHandler = Callable[[argparse.Namespace, RuntimeConfig], None]

LOG_FORMATS = ("kv", "json")

# chatty third-party loggers held at WARNING unless debugging
_QUIET_LOGGERS = ("botocore", "boto3", "urllib3", "s3transfer", "pypdf")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="dms-cli",
        description="Database, seed and server commands for the legal document management service.",
    )
    logging_group = parser.add_argument_group("logging")
    logging_group.add_argument(
        "--log-level",
        default=os.getenv("LOG_LEVEL", "INFO"),
        help="CRITICAL, ERROR, WARNING, INFO or DEBUG (env: LOG_LEVEL). Default: INFO",
    )
    logging_group.add_argument(
        "--log-format",
        choices=LOG_FORMATS,
        default=os.getenv("DMS_LOG_FORMAT", "kv"),
        help="key=value lines for terminals, json for log shippers (env: DMS_LOG_FORMAT)",
    )
    database_group = parser.add_argument_group("database")
    database_group.add_argument(
        "--db-url",
        dest="database_url",
        help="Database URL for this run (env: DMS_DATABASE_URL or DATABASE_URL)",
    )
    database_group.add_argument(
        "--echo-sql",
        action="store_true",
        default=None,
        help="Log every SQL statement (env: DMS_ECHO_SQL)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)
    commands.register(subparsers)
    return parser


def _renderer(log_format: str):
    if log_format == "json":
        return structlog.processors.JSONRenderer(sort_keys=True)
    return structlog.processors.KeyValueRenderer(
        key_order=["timestamp", "level", "logger", "event"],
        sort_keys=True,
    )


def configure_logging(level_name: str, log_format: str = "kv") -> None:
    """Route structlog and stdlib records through one stderr handler."""

    level_value = getattr(logging, level_name.upper(), logging.INFO)
    timestamper = structlog.processors.TimeStamper(fmt="iso", key="timestamp")
    pre_chain = [
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        timestamper,
    ]

    structlog.configure(
        processors=[
            *pre_chain,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=_renderer(log_format), foreign_pre_chain=pre_chain
        )
    )
    handler.setLevel(level_value)
    logging.basicConfig(level=level_value, handlers=[handler], force=True)

    if level_value > logging.DEBUG:
        for name in _QUIET_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)


def main(argv: Optional[List[str]] = None) -> None:
    bootstrap()
    parser = build_parser()
    args = parser.parse_args(argv)

    level_name = str(args.log_level).upper()
    configure_logging(level_name, args.log_format)

    handler: CommandHandler = getattr(args, "handler", None)
    if not callable(handler):
        parser.error("Command handler missing")

    runtime = build_runtime_config(
        log_level=level_name,
        database_url=args.database_url,
        echo_sql=args.echo_sql,
    )
    structlog.get_logger(__name__).debug("cli_command", command=args.command)

    handler(args, runtime)


if __name__ == "__main__":  # pragma: no cover
    main()
