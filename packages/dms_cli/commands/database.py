"""Schema management commands: migrations, enum DDL and demo data."""

from __future__ import annotations

from argparse import _SubParsersAction, Namespace

from ..config import RuntimeConfig

__all__ = ["register"]


def register(subparsers: _SubParsersAction) -> None:
    migrate = subparsers.add_parser("migrate", help="Apply pending SQL migrations")
    migrate.add_argument(
        "--dry-run",
        action="store_true",
        help="List pending migrations without applying them",
    )
    migrate.set_defaults(handler=_cmd_migrate)

    create = subparsers.add_parser(
        "create-tables", help="Create tables from the ORM models (development only)"
    )
    create.set_defaults(handler=_cmd_create_tables)

    enums = subparsers.add_parser(
        "render-enums", help="Print CREATE TYPE statements for the DMS enums"
    )
    enums.set_defaults(handler=_cmd_render_enums)

    seed = subparsers.add_parser("seed", help="Insert system roles and a demo firm")
    seed.add_argument("--domain", default="demo.law", help="Email domain for demo users")
    seed.set_defaults(handler=_cmd_seed)


def _cmd_migrate(args: Namespace, config: RuntimeConfig) -> None:
    from packages.legal_dms.migrate import describe, run_migrations
    from packages.legal_dms.settings import init_engine

    engine = init_engine(config.settings)
    try:
        applied = run_migrations(engine, dry_run=bool(getattr(args, "dry_run", False)))
    finally:
        engine.dispose()
    label = "Pending" if getattr(args, "dry_run", False) else "Applied"
    print(f"{label}: {describe(applied)}")


def _cmd_create_tables(_: Namespace, config: RuntimeConfig) -> None:
    from packages.legal_dms.settings import DmsDatabase, init_engine

    engine = init_engine(config.settings)
    try:
        DmsDatabase(engine).create_all()
    finally:
        engine.dispose()
    print("Tables created")


def _cmd_render_enums(_: Namespace, __: RuntimeConfig) -> None:
    from packages.legal_dms.schema.enums import render_enum_sql

    print(render_enum_sql())


def _cmd_seed(args: Namespace, config: RuntimeConfig) -> None:
    from packages.legal_dms.seed import seed_demo
    from packages.legal_dms.settings import DmsDatabase, init_engine

    engine = init_engine(config.settings)
    session = DmsDatabase(engine).session()
    try:
        result = seed_demo(session, domain=getattr(args, "domain", "demo.law"))
        print(f"Firm: {result.firm.name} ({result.firm.id})")
        print(f"Roles created: {result.roles_created}")
        for role, user in result.users.items():
            print(f"- {role}: {user.email} ({user.id})")
        print(f"Client: {result.client.name} ({result.client.id})")
        print(f"Matter: {result.matter.title} ({result.matter.id})")
    finally:
        session.close()
        engine.dispose()
