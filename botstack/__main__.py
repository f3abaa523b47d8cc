"""
botstack.__main__ - CLI entry point

Usage:
    python -m botstack init-db
    python -m botstack seed --log-level DEBUG
"""

import argparse
import asyncio
import logging
import sys

from botstack.core.tools.registry import ToolRegistry
from botstack.models.database import get_db, init_db
from botstack.services.bot_tools import BotToolService
from botstack.services.custom_tools import CustomToolService
from botstack.settings import warn_insecure_settings
from botstack.tools import initialize_tools

logger = logging.getLogger("botstack")


async def seed(database_url: str | None = None) -> ToolRegistry:
    """
    Register built-in tools, persist their Tool records and load public custom tools.

    Returns:
        The populated registry
    """
    registry = initialize_tools(ToolRegistry())

    async with get_db(database_url) as session:
        created = await BotToolService(session, registry).ensure_tool_records()
        loaded = await CustomToolService(session, registry).load_public_custom_tools()

    logger.info(f"Seeded {created} tool record(s), loaded {loaded} public custom tool(s)")
    return registry


def main(argv: list[str] | None = None) -> None:
    """Parse arguments and run the selected command."""
    parser = argparse.ArgumentParser(
        prog="botstack",
        description="Manage the botstack tool registry database",
    )
    parser.add_argument(
        "command",
        choices=["init-db", "seed"],
        help="init-db creates all tables; seed registers built-in and public custom tools",
    )
    parser.add_argument(
        "--database-url",
        default=None,
        help="Database URL (default: BOTSTACK_DATABASE_URL)",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)",
    )

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )

    warn_insecure_settings()

    try:
        if args.command == "init-db":
            asyncio.run(init_db(args.database_url))
            logger.info("Database tables created")
        else:
            asyncio.run(seed(args.database_url))
    except KeyboardInterrupt:
        sys.exit(0)


if __name__ == "__main__":
    main()
