"""
Terminal tail viewer: ``python -m client [--url URL] [--chat ID] [--date DD.MM.YYYY]``.
"""
import argparse
import asyncio
import logging
import os
import sys

import httpx
from dotenv import load_dotenv

from client.api_client import ViewerApiClient
from client.engine import ReconciliationEngine
from client.renderer import RenderSurface


logger = logging.getLogger(__name__)


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="python -m client", description="Follow archived Telegram chats")
    parser.add_argument("--url", default=os.getenv("VIEWER_URL", "http://localhost:3005"))
    parser.add_argument("--chat", default=None, help="Only show this chat id")
    parser.add_argument("--date", default=None, help="Show one day (DD.MM.YYYY)")
    parser.add_argument("--interval", type=float, default=3.0, help="Seconds between polls")
    parser.add_argument("--history-days", type=int, default=0, help="Days of history to backfill at start")
    parser.add_argument("--debug", action="store_true")
    return parser.parse_args(argv)


async def run(args: argparse.Namespace) -> None:
    api = ViewerApiClient(args.url)
    engine = ReconciliationEngine(
        api,
        surface=RenderSurface(output=print),
        timezone=os.getenv("TIMEZONE"),
        poll_interval_seconds=args.interval,
    )
    engine.state.selected_date = args.date
    if args.chat:
        engine.select_chat(args.chat)

    try:
        for _ in range(args.history_days):
            try:
                await engine.load_previous_day()
            except httpx.TransportError as e:
                logger.warning(f"History backfill stopped, server unreachable: {e}")
                break
            await asyncio.sleep(engine.HISTORY_DEBOUNCE_SECONDS)
        await engine.run()
    finally:
        await api.close()


def main(argv=None) -> None:
    load_dotenv()
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.WARNING,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[logging.StreamHandler(sys.stderr)]
    )
    try:
        asyncio.run(run(args))
    except KeyboardInterrupt:
        logger.info("Stopped")


if __name__ == "__main__":
    main()
