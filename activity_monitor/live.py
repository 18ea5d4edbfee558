"""Account activity monitor.

Replays the watched account's history from the indexing API, then tails new
blocks over a WebSocket subscription until interrupted.

Processing flow:
1. Chain head snapshot -> hand-off block
2. Normal + internal history up to the hand-off block -> console
3. newHeads WebSocket -> queue -> per-block normal + internal activity -> console

Usage:
    activity-monitor --address 0x...
    python -m activity_monitor.live
"""

from argparse import ArgumentParser
import signal
import sys

import asyncio

from rich.console import Console

from activity_monitor.chain.ws_source import WebSocketHeadSource
from activity_monitor.core.errors import ConfigurationError, SubscriptionExhaustedError
from activity_monitor.engine.reconciler import ReconciliationEngine
from activity_monitor.engine.reporting import ErrorReporter
from activity_monitor.helpers.config import MonitorConfig, load_monitor_config
from activity_monitor.helpers.logging import LOG_LEVELS, get_logger, set_log_level
from activity_monitor.indexer.client import EtherscanClient
from activity_monitor.sinks.console import ConsoleSink


logger = get_logger(__name__)

EXIT_TERMINAL = 1
EXIT_CONFIGURATION = 2


def build_parser() -> ArgumentParser:
    parser = ArgumentParser(
        description="Backfill and live-tail activity for one account"
    )
    parser.add_argument(
        "--address", help="Account to watch (default: ADDRESS environment variable)"
    )
    parser.add_argument(
        "--log-level",
        type=str.upper,
        choices=list(LOG_LEVELS),
        help="Logging level (default: LOG_LEVEL or INFO)",
    )
    parser.add_argument(
        "--history-preview",
        type=int,
        help="Historical events shown per kind (default: HISTORY_PREVIEW or 5)",
    )
    parser.add_argument(
        "--color", action="store_true", help="Colorize log output"
    )
    return parser


def build_engine(
    config: MonitorConfig,
    console: Console | None = None,
    reporter: ErrorReporter | None = None,
) -> ReconciliationEngine:
    """Wire the production collaborators for ``config``."""
    client = EtherscanClient(
        config.etherscan_api_key,
        config.etherscan_base_url,
        chain_id=config.etherscan_chain_id,
        page_size=config.page_size,
        max_results=config.max_results,
        timeout=config.etherscan_timeout,
    )
    chain = WebSocketHeadSource(
        config.ws_url,
        config.http_url,
        timeout=config.rpc_timeout,
        rpc_max_retries=config.rpc_max_retries,
        retry_base_delay=config.retry_base_delay,
        retry_max_delay=config.retry_max_delay,
    )
    sink = ConsoleSink(
        config.address, console, history_preview=config.history_preview
    )
    return ReconciliationEngine(config, client, chain, sink, reporter)


async def main(argv: list[str] | None = None) -> int:
    """Main entry point. Returns the process exit code."""
    args = build_parser().parse_args(argv)
    console = Console()

    try:
        config = load_monitor_config(
            address=args.address,
            history_preview=args.history_preview,
            log_level=args.log_level,
        )
        set_log_level(config.log_level, log_color=args.color or None)
    except (ConfigurationError, ValueError) as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        return EXIT_CONFIGURATION

    engine = build_engine(config, console)

    # Setup signal handlers
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, engine.shutdown)

    console.print(
        f"[bold cyan]Monitoring {config.address}[/bold cyan] [dim](Ctrl+C to stop)[/dim]"
    )
    try:
        await engine.run()
    except SubscriptionExhaustedError:
        logger.exception("Block subscription could not be restored")
        return EXIT_TERMINAL
    except Exception:
        logger.exception("Fatal error")
        return EXIT_TERMINAL
    finally:
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.remove_signal_handler(sig)

    logger.info("Monitor stopped (status: %s)", engine.reporter.status)
    return 0


def cli() -> None:
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        logger.info("Received keyboard interrupt, exiting...")


if __name__ == "__main__":
    cli()
