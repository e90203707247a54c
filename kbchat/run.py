"""Launcher that sets the Windows event loop policy before uvicorn starts."""
import asyncio
import sys

if sys.platform == "win32":
    asyncio.set_event_loop_policy(asyncio.WindowsProactorEventLoopPolicy())

import uvicorn

from kbchat.config import get_config


def main() -> None:
    config = get_config()
    uvicorn.run("kbchat.main:app", host=config.server.host, port=config.server.port)


if __name__ == "__main__":
    main()
