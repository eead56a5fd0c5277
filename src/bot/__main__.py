"""Entry point for running bot as module."""

import asyncio

from src.bot.main import main


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
