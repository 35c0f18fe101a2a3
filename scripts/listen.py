#!/usr/bin/env python3
"""
Decode Raydium swap and liquidity events from a transaction stream.

Reads stream records (one JSON object per line) from a file or stdin:
- Decodes CPMM, CLMM and AMM V4 instructions
- Takes amounts from the token transfers each instruction executed
- Applies market/token/amm filters
- Prints events to stdout and forwards them to webhook/Telegram

Status and statistics go to stderr so stdout stays machine-readable.
"""

import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

import logging
import os
import select
import signal
import threading
from datetime import datetime
from typing import IO, Iterable, Iterator, List, Optional

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from typer import Option, Typer

from raydiumtx.core.config import Config, parse_output_format
from raydiumtx.core.exceptions import StreamRecordError
from raydiumtx.core.models import OutputFormat, StreamRecord
from raydiumtx.core.utils import mask_url
from raydiumtx.ingest.pipeline import RecordOutcome, SwapPipeline
from raydiumtx.ingest.stream import iter_lines, parse_record_line
from raydiumtx.notify.base import QueuedNotifier
from raydiumtx.notify.formatter import format_event
from raydiumtx.notify.telegram import TelegramNotifier
from raydiumtx.notify.webhook import WebhookNotifier

app = Typer(help="Raydium swap/liquidity event decoder")
console = Console(stderr=True)

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
    stream=sys.stderr,
)
logger = logging.getLogger("listen")

# Seconds between stop checks while the stream is idle
POLL_INTERVAL = 0.2


class SessionStats:
    """Counters aggregated from record outcomes."""

    def __init__(self):
        self.start_time = datetime.now()
        self.records = 0
        self.invalid_records = 0
        self.events = 0
        self.filtered = 0
        self.decode_errors = 0
        self.reconcile_errors = 0

    def add(self, outcome: RecordOutcome) -> None:
        self.records += 1
        self.events += len(outcome.events)
        self.filtered += outcome.filtered
        self.decode_errors += outcome.decode_errors
        self.reconcile_errors += outcome.reconcile_errors

    def summary(self) -> str:
        runtime = str(datetime.now() - self.start_time).split('.')[0]
        return (
            f"\n[bold]Session Summary:[/bold]\n"
            f"  Records processed: {self.records}\n"
            f"  Invalid records: {self.invalid_records}\n"
            f"  Events emitted: {self.events}\n"
            f"  Filtered out: {self.filtered}\n"
            f"  Decode skips: {self.decode_errors}\n"
            f"  Reconcile drops: {self.reconcile_errors}\n"
            f"  Runtime: {runtime}"
        )


def follow_lines(
    stream: IO[str],
    stop_event: threading.Event,
    poll_interval: float = POLL_INTERVAL,
) -> Iterator[str]:
    """
    Yield stream lines until EOF or until stop_event is set.

    A blocking read on a quiet stdin would hold up shutdown, so the
    descriptor is polled and only read once data is available.
    """
    fd = stream.fileno()
    pending = b""

    while not stop_event.is_set():
        ready, _, _ = select.select([fd], [], [], poll_interval)
        if not ready:
            continue
        chunk = os.read(fd, 65536)
        if not chunk:
            break
        *complete, pending = (pending + chunk).split(b"\n")
        for line in complete:
            yield line.decode("utf-8", errors="replace")

    if pending and not stop_event.is_set():
        yield pending.decode("utf-8", errors="replace")


def read_records(
    lines: Iterable[str],
    stats: SessionStats,
    stop_event: threading.Event,
) -> Iterator[StreamRecord]:
    """Parse stream lines, logging and skipping malformed records."""
    for line_no, line in enumerate(iter_lines(lines), start=1):
        if stop_event.is_set():
            return
        try:
            yield parse_record_line(line)
        except StreamRecordError as e:
            stats.invalid_records += 1
            logger.warning(f"[STREAM] Line {line_no}: {e}")


def build_notifiers(config: Config) -> List[QueuedNotifier]:
    notifiers = []
    webhook = WebhookNotifier.from_config(config)
    if webhook:
        notifiers.append(webhook.start())
    telegram = TelegramNotifier.from_config(config)
    if telegram:
        notifiers.append(telegram.start())
    return notifiers


def print_status(config: Config, workers: int, source: str) -> None:
    """Print current configuration status."""
    table = Table(title="RaydiumTX Decoder", show_header=False)
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")

    markets = ", ".join(sorted(m.label for m in config.filter_markets)) or "All"
    table.add_row("Input", source)
    table.add_row("Output", config.output_format.value)
    table.add_row("Workers", str(workers))
    table.add_row("Markets", markets)
    table.add_row("Tokens", str(len(config.filter_tokens)) if config.filter_tokens else "All")
    table.add_row("AMMs", str(len(config.filter_amms)) if config.filter_amms else "All")
    table.add_row("Webhook", mask_url(config.webhook_url) if config.webhook_url else "Disabled")
    table.add_row(
        "Telegram",
        "Enabled" if config.telegram_bot_token and config.telegram_chat_id else "Disabled",
    )

    console.print(table)


@app.command()
def main(
    input_path: Optional[Path] = Option(
        None, "--input", "-i", exists=True, dir_okay=False,
        help="Stream file (JSON lines). Reads stdin if omitted",
    ),
    output_format: Optional[str] = Option(
        None, "--format", "-f", help="text, json or json_pretty (overrides OUTPUT_FORMAT)"
    ),
    workers: Optional[int] = Option(
        None, "--workers", "-w", help="Worker threads (overrides PIPELINE_WORKERS)"
    ),
    verbose: bool = Option(False, "--verbose", "-v", help="Verbose logging"),
):
    """
    Decode Raydium events from a stream of transaction records.

    Configure filters with FILTER_MARKETS, FILTER_TOKENS and FILTER_AMMS in
    .env. Set WEBHOOK_URL or TELEGRAM_BOT_TOKEN/TELEGRAM_CHAT_ID to forward
    events.
    """
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    load_dotenv()
    config = Config.from_env()
    if output_format:
        config.output_format = parse_output_format(output_format)
    worker_count = max(1, workers) if workers else config.pipeline_workers

    try:
        vault_mints = config.load_vault_mints()
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]ERROR: {e}[/red]")
        raise typer.Exit(1)

    pipeline = SwapPipeline(
        filter_config=config.filter_config(),
        vault_mints=vault_mints,
    )
    notifiers = build_notifiers(config)
    stats = SessionStats()
    stop_event = threading.Event()

    # Handle graceful shutdown
    def signal_handler(sig, frame):
        console.print("\n[yellow]Shutting down...[/yellow]")
        stop_event.set()
        # A second Ctrl+C interrupts immediately
        signal.signal(signal.SIGINT, signal.default_int_handler)

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    source = str(input_path) if input_path else "stdin"
    print_status(config, worker_count, source)
    console.print(Panel(
        "[bold]RaydiumTX - Raydium Event Decoder[/bold]\n\n"
        "Programs: CPMM, CLMM, AMM V4\n"
        "Amounts: executed token transfers",
        title="Starting",
        border_style="blue",
    ))

    stream = open(input_path, "r") if input_path else sys.stdin
    try:
        # Files never block, so only stdin is polled
        lines = stream if input_path else follow_lines(stream, stop_event)
        records = read_records(lines, stats, stop_event)
        for outcome in pipeline.run(records, workers=worker_count, stop_event=stop_event):
            stats.add(outcome)
            for event in outcome.events:
                typer.echo(format_event(event, config.output_format))
                if config.output_format == OutputFormat.TEXT:
                    typer.echo("")
                for notifier in notifiers:
                    notifier.try_send(event)
    except KeyboardInterrupt:
        console.print("[yellow]Interrupted[/yellow]")
    finally:
        if input_path:
            stream.close()
        for notifier in notifiers:
            notifier.shutdown()

    console.print(stats.summary())


if __name__ == "__main__":
    app()
