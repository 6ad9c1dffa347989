"""Matter sharing maintenance."""

from __future__ import annotations

from argparse import _SubParsersAction, Namespace

from ..config import RuntimeConfig

__all__ = ["register", "run"]


def register(subparsers: _SubParsersAction) -> None:
    parser = subparsers.add_parser(
        "expire-shares", help="Mark shares past their expiry date as expired"
    )
    parser.set_defaults(handler=run)


def run(_: Namespace, config: RuntimeConfig) -> None:
    from packages.legal_dms.services import MatterSharingService
    from packages.legal_dms.settings import DmsDatabase, init_engine

    engine = init_engine(config.settings)
    session = DmsDatabase(engine).session()
    try:
        expired = MatterSharingService(session, config.settings).expire_old_shares()
    finally:
        session.close()
        engine.dispose()
    print(f"Expired shares: {expired}")
