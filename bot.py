#!/usr/bin/env python3
"""
ProjectBot - an IRC bot that helps with development projects
"""

import asyncio
import logging
import sys
from core.config import BotConfig, ConfigError
from core.logging_config import setup_logging
from core.server import IrcServer

def main():
    """Main entry point"""
    config_file = sys.argv[1] if len(sys.argv) > 1 else None

    try:
        config = BotConfig.load(config_file)
    except ConfigError as e:
        print(f"Configuration error: {e}")
        sys.exit(1)

    setup_logging(
        config.logging.level,
        config.logging.file,
        config.logging.timezone
    )
    logger = logging.getLogger("bot")
    logger.info(f"IRC Bot loading from {config.source}")

    server = IrcServer(config)

    try:
        connected = asyncio.run(server.run())
    except KeyboardInterrupt:
        print("\n🛑 Bot stopped by user")
        return

    if not connected:
        logger.error("Could not connect to the IRC server")
        sys.exit(1)

if __name__ == "__main__":
    main()
