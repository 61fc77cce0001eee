"""
Main entry point for notebase.

This module provides the main() function and server initialization.
"""

import asyncio

from mcp.server.stdio import stdio_server

from .logging import configure_logging, get_logger
from .tools import get_session, server


def main():
    """Main entry point."""
    configure_logging()
    logger = get_logger(__name__)

    async def run():
        session = await get_session()
        logger.info("server_starting", data_path=str(session.store.path))
        try:
            async with stdio_server() as (read_stream, write_stream):
                await server.run(read_stream, write_stream, server.create_initialization_options())
        finally:
            await session.close()
            session.store.close()
            logger.info("server_stopped")

    asyncio.run(run())


if __name__ == "__main__":
    main()
