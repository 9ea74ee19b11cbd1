"""
Artwork indexer CLI
"""

import asyncio
import json
import sys
from typing import Optional

import typer
from loguru import logger
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from .config import Config
from .errors import IndexerError, InvalidAddress
from .media import MediaPipeline, classify_uri
from .models import Blockchain, IndexMode
from .storage import InMemoryArtworkStore, InMemoryMediaStore
from .workflow import IndexingWorkflow

app = typer.Typer(help="Artwork Indexer - NFT wallet indexing for Ethereum, Polygon and Tezos")
console = Console()


def _truncate(value: Optional[str], length: int = 20) -> str:
    if not value:
        return "-"
    return value[:length] + "..." if len(value) > length else value


def _build_workflow(config: Config, media: bool) -> IndexingWorkflow:
    pipeline = MediaPipeline(config.media, media_store=InMemoryMediaStore()) if media else None
    return IndexingWorkflow(config, media_pipeline=pipeline, artwork_store=InMemoryArtworkStore())


@app.callback()
def main_callback(
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Override LOG_LEVEL"),
):
    """Configure logging before any command runs"""
    level = (log_level or Config.from_env().log_level).upper()
    logger.remove()
    logger.add(sys.stderr, level=level)


@app.command()
def index(
    address: str = typer.Argument(..., help="Wallet address (0x... or tz.../KT1...)"),
    chain: str = typer.Option("ethereum", help="Blockchain (ethereum, polygon, tezos)"),
    mode: IndexMode = typer.Option(IndexMode.OWNED, help="Index owned or created tokens"),
    no_media: bool = typer.Option(False, "--no-media", help="Skip media resolution"),
    max_pages: Optional[int] = typer.Option(None, "--max-pages", help="Stop after this many pages"),
    output: Optional[str] = typer.Option(None, "--output", "-o", help="Output file (JSON)"),
):
    """Index every artwork a wallet owns or created"""
    config = Config.from_env()
    try:
        blockchain = Blockchain.from_string(chain)
    except ValueError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(2)

    async def run():
        workflow = _build_workflow(config, media=not no_media)
        try:
            with Progress(
                SpinnerColumn(),
                TextColumn("[progress.description]{task.description}"),
                console=console,
            ) as progress:
                task = progress.add_task(f"Indexing {address}...", total=None)

                async def on_page(job, page):
                    progress.update(
                        task,
                        description=f"Indexing {address}: {job.pages_fetched} pages, {len(job.artworks)} artworks",
                    )

                job = await workflow.run_job(address, blockchain, mode, max_pages=max_pages, on_page=on_page)
                progress.update(task, completed=True)
        finally:
            await workflow.close()

        style = "green" if job.abort_reason is None else "yellow"
        console.print(f"\n[bold {style}]{job.state.value}: {len(job.artworks)} artworks from {job.pages_fetched} pages[/bold {style}]")
        if job.abort_reason:
            console.print(f"[yellow]Aborted: {job.abort_reason}[/yellow]")

        if job.artworks:
            table = Table(title=f"Artworks for {address}")
            table.add_column("Contract", style="cyan")
            table.add_column("Token ID", style="yellow")
            table.add_column("Title", style="white")
            table.add_column("Creator", style="magenta")
            table.add_column("Platform", style="blue")

            for artwork in job.artworks[:20]:
                table.add_row(
                    _truncate(artwork.contract_address),
                    _truncate(artwork.token_id),
                    artwork.title or "Untitled",
                    _truncate(artwork.creator.username or artwork.creator.address) if artwork.creator else "-",
                    artwork.collection.platform.value,
                )
            console.print(table)

            if len(job.artworks) > 20:
                console.print(f"\n[dim]... and {len(job.artworks) - 20} more[/dim]")

        if output:
            with open(output, "w") as f:
                json.dump([a.model_dump(mode="json") for a in job.artworks], f, indent=2)
            console.print(f"\n[green]Saved to {output}[/green]")

    try:
        asyncio.run(run())
    except InvalidAddress as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(2)


@app.command()
def item(
    contract: str = typer.Argument(..., help="Token contract address"),
    token_id: str = typer.Argument(..., help="Token ID"),
    chain: str = typer.Option("ethereum", help="Blockchain (ethereum, polygon, tezos)"),
    no_media: bool = typer.Option(False, "--no-media", help="Skip media resolution"),
):
    """Fetch and transform a single token"""
    config = Config.from_env()
    try:
        blockchain = Blockchain.from_string(chain)
    except ValueError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(2)

    async def run():
        workflow = _build_workflow(config, media=not no_media)
        try:
            artwork = await workflow.get_single_item(contract, token_id, blockchain)
        except IndexerError as e:
            console.print(f"[red]{e}[/red]")
            raise typer.Exit(1)
        finally:
            await workflow.close()

        if artwork is None:
            console.print(f"[yellow]No artwork found for {contract}:{token_id}[/yellow]")
            raise typer.Exit(1)
        console.print_json(json.dumps(artwork.model_dump(mode="json")))

    asyncio.run(run())


@app.command()
def gateways(
    uri: str = typer.Argument(..., help="Media URI (ipfs://, ar://, onchfs://, https://)"),
):
    """Show how a media URI is classified and which URLs are tried"""
    config = Config.from_env()
    try:
        classified = classify_uri(uri, config.media)
    except IndexerError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)

    table = Table(title=f"{classified.kind.value}: {_truncate(uri, 60)}")
    table.add_column("#", style="cyan")
    table.add_column("Candidate URL", style="white")
    table.add_column("Timeout", style="yellow")
    for position, url in enumerate(classified.candidates, start=1):
        table.add_row(str(position), url, f"{classified.timeout:.0f}s")
    console.print(table)


def main():
    app()


if __name__ == "__main__":
    main()
