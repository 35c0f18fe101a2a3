#!/usr/bin/env python3
"""
Decode a single transaction by signature.

Fetches the transaction over JSON-RPC (RPC_HTTP_URL or --rpc-url) and
prints every Raydium event found in it, ignoring filters.
"""

import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

import logging
from typing import Optional

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table
from typer import Argument, Option, Typer

from raydiumtx.core.config import Config, parse_output_format
from raydiumtx.core.exceptions import StreamRecordError
from raydiumtx.core.utils import mask_url, shorten_address
from raydiumtx.ingest.pipeline import SwapPipeline
from raydiumtx.ingest.rpc import SolanaRpcClient
from raydiumtx.ingest.stream import record_from_rpc_transaction
from raydiumtx.notify.formatter import format_event

app = Typer(help="Decode Raydium events from one transaction")
console = Console(stderr=True)

logging.basicConfig(
    level=logging.WARNING,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
    stream=sys.stderr,
)


@app.command()
def main(
    signature: str = Argument(..., help="Transaction signature"),
    rpc_url: Optional[str] = Option(None, "--rpc-url", help="HTTP RPC endpoint"),
    output_format: str = Option("text", "--format", "-f", help="text, json or json_pretty"),
    verbose: bool = Option(False, "--verbose", "-v", help="Verbose logging"),
):
    """Fetch a transaction and print its Raydium events."""
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    load_dotenv()
    config = Config.from_env()
    url = rpc_url or config.rpc_http_url
    if not url:
        console.print("[red]ERROR: No RPC endpoint configured.[/red]")
        console.print("\nSet RPC_HTTP_URL in .env or pass --rpc-url")
        raise typer.Exit(1)

    fmt = parse_output_format(output_format)
    console.print(f"[dim]Fetching {shorten_address(signature)} from {mask_url(url)}[/dim]")

    tx = SolanaRpcClient(url).get_transaction(signature)
    if tx is None:
        console.print("[red]Transaction not found[/red]")
        raise typer.Exit(1)

    try:
        record = record_from_rpc_transaction(tx)
    except StreamRecordError as e:
        console.print(f"[red]Could not read transaction: {e}[/red]")
        raise typer.Exit(1)

    if record is None:
        console.print("[yellow]Transaction failed on-chain, nothing to decode[/yellow]")
        raise typer.Exit(0)

    pipeline = SwapPipeline(vault_mints=config.load_vault_mints())
    outcome = pipeline.process(record)

    for event in outcome.events:
        typer.echo(format_event(event, fmt))

    table = Table(title="Decode Result", show_header=False)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Slot", str(record.slot))
    table.add_row("Events", str(len(outcome.events)))
    table.add_row("Decode skips", str(outcome.decode_errors))
    table.add_row("Reconcile drops", str(outcome.reconcile_errors))
    for item in outcome.unrecognized:
        table.add_row("Unrecognized", f"{item.protocol.label} {item.discriminator.hex()}")
    console.print(table)


if __name__ == "__main__":
    app()
