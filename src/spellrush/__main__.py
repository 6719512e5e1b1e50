"""Main entry point for the game."""
import argparse
import asyncio
import logging
from pathlib import Path
from typing import List, Optional

from spellrush.app import SpellRushApp
from spellrush.config import ensure_directories, settings
from spellrush.exceptions import SpellRushError
from spellrush.logging_config import setup_logging
from spellrush.monitoring import start_monitoring

logger = logging.getLogger(__name__)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="spellrush", description="Spell the word before the obstacle hits.")
    parser.add_argument("--learner", help="learner email; created on first use")
    parser.add_argument("--words", type=Path, help="word list JSON file")
    return parser.parse_args(argv)


async def main(args: argparse.Namespace) -> None:
    """Run one console session."""
    app = SpellRushApp(learner_email=args.learner, words_file=args.words)
    app.start()
    try:
        await app.play()
    finally:
        logger.info("Cleaning up...")
        app.stop()


def run(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)

    # Ensure all required directories exist
    ensure_directories()

    setup_logging("Starting SpellRush ...")

    if settings.monitoring.enabled:
        start_monitoring(settings.monitoring.port)
        logger.info("Metrics exported on port %d", settings.monitoring.port)

    try:
        asyncio.run(main(args))
    except KeyboardInterrupt:
        logger.info("Received keyboard interrupt, shutting down...")
    except SpellRushError as e:
        logger.error("%s", e)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(run())
