#!/usr/bin/env python3
"""
Main entry point for the site crawler.
"""

import asyncio
import argparse
import logging
import signal
import sys
from dataclasses import asdict
from pathlib import Path
from typing import Optional

from sitecrawler import __version__
from sitecrawler.crawler import crawl, CrawlStream
from sitecrawler.utils.config import Config, load_config
from sitecrawler.utils.logger import setup_logging
from sitecrawler.utils.monitoring import CrawlerMonitor, MetricsCollector


class CrawlerApp:
    """Main application class for the site crawler."""

    def __init__(self):
        self.logger = logging.getLogger(__name__)
        self.stream: Optional[CrawlStream] = None
        self._shutdown_event = asyncio.Event()

    def setup_signal_handlers(self):
        """Setup signal handlers for graceful shutdown."""
        loop = asyncio.get_running_loop()

        def signal_handler(signum):
            self.logger.info(f"Received signal {signum}, initiating shutdown...")
            self._shutdown_event.set()

        for signum in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(signum, signal_handler, signum)

    async def run(self, config: Config) -> int:
        """Run the crawler, printing every page as it arrives."""
        self.setup_signal_handlers()

        self.logger.info("=== SITE CRAWLER STARTING ===")
        self.logger.info(f"Root URL: {config.crawler.root_url}")
        self.logger.info(f"Workers: {config.crawler.worker_count}")

        monitor = CrawlerMonitor(MetricsCollector(config.monitoring.prometheus_port))
        if config.monitoring.metrics_enabled:
            monitor.metrics.start_server()

        self.stream = crawl(config.crawler.root_url, config=config, monitor=monitor)
        consume_task = asyncio.create_task(self._consume(self.stream))
        shutdown_task = asyncio.create_task(self._shutdown_event.wait())

        try:
            done, pending = await asyncio.wait(
                [consume_task, shutdown_task],
                return_when=asyncio.FIRST_COMPLETED
            )

            for task in pending:
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass

            if shutdown_task in done:
                self.logger.info("Shutdown requested, stopping crawler...")
                return 130

            consume_task.result()
            return 0

        except Exception as e:
            self.logger.error(f"Crawl failed: {e}", exc_info=True)
            return 1

        finally:
            await self.stream.aclose()
            self.logger.info(f"Pages received: {self.stream.pages_received}")
            self.logger.info("=== SITE CRAWLER FINISHED ===")

    async def _consume(self, stream: CrawlStream):
        async with stream:
            async for page in stream:
                print(f"{page.url}\t{page.title}", flush=True)


def build_config(args: argparse.Namespace) -> Config:
    """Build configuration from an optional file plus command-line overrides."""
    overrides = {'root_url': args.root_url, 'worker_count': args.workers}
    if args.config:
        return load_config(args.config, overrides)

    if not args.root_url:
        raise ValueError("Either --config or --root-url must be given")
    return Config.for_root(args.root_url, args.workers or 4)


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Same-site web crawler",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py --root-url https://example.com/docs/
  python main.py --root-url https://example.com/ --workers 8
  python main.py --config config.yaml
  python main.py --config config.yaml --json-logs
        """
    )

    parser.add_argument(
        '--config',
        help='Path to YAML configuration file'
    )

    parser.add_argument(
        '--root-url',
        help='URL to start crawling from; only URLs with this prefix are crawled'
    )

    parser.add_argument(
        '--workers',
        type=int,
        help='Number of concurrent workers (default: 4)'
    )

    parser.add_argument(
        '--json-logs',
        action='store_true',
        help='Emit structured JSON log lines'
    )

    parser.add_argument(
        '--version',
        action='version',
        version=f'Site Crawler {__version__}'
    )

    args = parser.parse_args()

    if args.config and not Path(args.config).exists():
        print(f"Error: Configuration file '{args.config}' not found.", file=sys.stderr)
        return 1

    try:
        config = build_config(args)
    except (ValueError, TypeError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    setup_logging(asdict(config.logging), enable_json=args.json_logs or config.logging.json)

    app = CrawlerApp()
    try:
        return asyncio.run(app.run(config))
    except KeyboardInterrupt:
        print("\nInterrupted by user", file=sys.stderr)
        return 130


if __name__ == '__main__':
    sys.exit(main())
