#!/usr/bin/env python3
"""CLI for Prep Tracker API management tasks.

Usage:
    python -m cli <command>

Commands:
    migrate        Run database migrations
    sweep-streaks  Zero streaks that can no longer be extended
"""

import argparse
import asyncio
import sys
from datetime import date
from pathlib import Path

from core import get_logger
from core.logger import configure_logging

logger = get_logger(__name__)


def _get_alembic_config():
    from alembic.config import Config

    api_dir = Path(__file__).resolve().parent
    cfg = Config(str(api_dir / "alembic.ini"))
    # Absolute script_location so the command works from any working directory.
    cfg.set_main_option("script_location", str(api_dir / "alembic"))
    return cfg


def cmd_migrate(target: str = "head") -> int:
    """Run database migrations."""
    from alembic import command

    logger.info("migrations.starting", target=target)
    command.upgrade(_get_alembic_config(), target)
    logger.info("migrations.complete", target=target)
    return 0


async def _sweep_streaks(today: date | None) -> int:
    from core.database import create_engine, create_session_maker, dispose_engine
    from services.stats_service import sweep_lapsed_streaks

    engine = create_engine()
    try:
        session_maker = create_session_maker(engine)
        async with session_maker() as session:
            swept = await sweep_lapsed_streaks(session, today=today)
            await session.commit()
        return swept
    finally:
        await dispose_engine(engine)


def cmd_sweep_streaks(today: date | None = None) -> int:
    """Persist streak decay for users inactive for two or more days."""
    swept = asyncio.run(_sweep_streaks(today))
    print(f"Zeroed {swept} lapsed streak(s)")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Prep Tracker API CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    migrate = subparsers.add_parser("migrate", help="Run database migrations")
    migrate.add_argument(
        "target",
        nargs="?",
        default="head",
        help="Target revision (default: head)",
    )

    sweep = subparsers.add_parser(
        "sweep-streaks",
        help="Zero streaks whose last activity is two or more days old",
    )
    sweep.add_argument(
        "--today",
        type=date.fromisoformat,
        default=None,
        help="Treat this ISO date as today (default: current UTC date)",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    configure_logging()
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == "migrate":
        return cmd_migrate(args.target)
    elif args.command == "sweep-streaks":
        return cmd_sweep_streaks(args.today)
    else:
        parser.print_help()
        return 1


if __name__ == "__main__":
    sys.exit(main())
