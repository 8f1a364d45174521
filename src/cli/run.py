import argparse
import asyncio
import logging
import signal
import time
from typing import List, Optional

from services.config import load_config
from services.logging import setup_logging
from workflows.runner import ForgeRunner


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="fish-forge",
        description="Generate fish from live weather, market and news signals.",
    )
    parser.add_argument(
        "--test",
        action="store_true",
        help="Test mode: 10 second cooldown, mock collectors, generate at startup",
    )
    parser.add_argument("--config", help="Path to config.yml")
    parser.add_argument(
        "--once",
        action="store_true",
        help="Collect one round of signals, generate at most one fish and exit",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    return parser.parse_args(argv)


async def main(argv: Optional[List[str]] = None) -> None:
    start_time = time.perf_counter()
    args = parse_args(argv)

    setup_logging(logging.DEBUG if args.debug else logging.INFO)
    logger = logging.getLogger(__name__)

    config = load_config(args.config, test_mode=args.test)

    shutdown = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, shutdown.set)
        except NotImplementedError:
            # Windows event loops have no signal handler support
            pass

    runner = ForgeRunner.from_config(config, shutdown=shutdown)

    if args.once:
        processed = await runner.run_once()
        logger.info(f"Single run completed (generated: {processed})")
    else:
        await runner.run()

    logger.info(f"Total time: {time.perf_counter() - start_time:.1f}s")


def cli() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    cli()
