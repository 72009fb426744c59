#!/usr/bin/env python3
"""
LAN event voting server.
Users vote for their favourite games; admins record results that feed a
team leaderboard.
"""

import argparse
import asyncio
import logging
import os
from pathlib import Path

from lanoel.config import EventConfig
from lanoel.server import VotingSystem


async def main():
    """Main function with command line interface."""

    parser = argparse.ArgumentParser(
        description="LAN event game voting and team leaderboard server",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )

    parser.add_argument(
        "--config",
        default=os.getenv("CONFIG_PATH", "lanoel_config.json"),
        help="Configuration file path (env: CONFIG_PATH)"
    )
    parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Web server port (env: PORT, default 3000)"
    )
    parser.add_argument(
        "--host",
        default=None,
        help="Host to bind the server to (env: HOST)"
    )
    parser.add_argument(
        "--db",
        default=None,
        help="SQLite database file path (env: DB_PATH)"
    )
    parser.add_argument(
        "--log-level",
        default=os.getenv("LOG_LEVEL", "INFO"),
        help="Logging level (env: LOG_LEVEL)"
    )

    args = parser.parse_args()

    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    config_path = Path(args.config)

    if config_path.exists() and not config_path.is_file():
        print(f"Error: {args.config} exists but is not a file")
        return

    system = VotingSystem(EventConfig(args.config), db_path=args.db)

    await system.init_db()
    await system.print_leaderboard()

    await system.run_forever(args.host, args.port)


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        print("\nServer interrupted")
