"""Command line interface for bulklist."""

import asyncio
import logging
import random
from pathlib import Path
from typing import List, Optional

import click
import uvicorn

from bulklist.analysis.grouping import random_chunk_sizer, weighted_confidence_picker
from bulklist.config import settings
from bulklist.db.connection import get_db_context, init_db, make_engine
from bulklist.db.repositories import ListingRepository
from bulklist.models.batch import PipelineStage
from bulklist.models.listing import CommitMode
from bulklist.pipeline.commit import CommitResult
from bulklist.pipeline.controller import BulkListingPipeline
from bulklist.services.enrichment import SimulatedEnricher
from bulklist.services.persistence import ListingStore

logger = logging.getLogger(__name__)

PHOTO_SUFFIXES = {".jpg", ".jpeg", ".png", ".gif", ".webp", ".heic"}


def find_photos(photo_dir: Path) -> List[str]:
    """Photo files directly inside ``photo_dir`` in name order."""
    return [
        str(path)
        for path in sorted(photo_dir.iterdir())
        if path.is_file() and path.suffix.lower() in PHOTO_SUFFIXES
    ]


async def run_batch(pipeline: BulkListingPipeline, mode: CommitMode) -> CommitResult:
    """Drive a batch from confirmed groups to a commit."""
    await pipeline.run_processing()
    if pipeline.stage == PipelineStage.SHIPPING:
        pipeline.complete_shipping()
    return await pipeline.commit(mode)


@click.group()
@click.option(
    "--log-level",
    default=None,
    help="Logging level (defaults to BULKLIST_LOG_LEVEL or INFO)",
)
def cli(log_level: Optional[str]) -> None:
    """Turn folders of item photos into listings."""
    logging.basicConfig(
        level=(log_level or settings.log_level).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@cli.command()
@click.argument(
    "photo_dir", type=click.Path(exists=True, file_okay=False, path_type=Path)
)
@click.option(
    "--mode",
    type=click.Choice([m.value for m in CommitMode]),
    default=CommitMode.DRAFT.value,
    help="Save listings as drafts or post them as active",
)
@click.option("--seed", type=int, default=None, help="Seed for simulated analysis")
@click.option(
    "--failure-rate",
    type=click.FloatRange(0.0, 1.0),
    default=0.0,
    help="Fraction of groups whose analysis fails",
)
@click.option("--database-url", default=None, help="Listing store database URL")
def run(
    photo_dir: Path,
    mode: str,
    seed: Optional[int],
    failure_rate: float,
    database_url: Optional[str],
) -> None:
    """Group, analyze and commit every photo in PHOTO_DIR."""
    photos = find_photos(photo_dir)
    if not photos:
        raise click.ClickException(f"No photos found in {photo_dir}")

    engine = make_engine(database_url)
    init_db(engine)

    rng = random.Random(seed)
    pipeline = BulkListingPipeline(
        SimulatedEnricher(seed=seed, failure_rate=failure_rate),
        ListingStore(engine),
        chunk_size=random_chunk_sizer(rng=rng),
        confidence=weighted_confidence_picker(rng=rng),
    )
    pipeline.add_photos(photos)
    groups = pipeline.start_grouping()
    click.echo(f"Grouped {len(photos)} photos into {len(groups)} items")
    pipeline.confirm_groups()

    result = asyncio.run(run_batch(pipeline, CommitMode(mode)))

    for group in pipeline.groups:
        marker = "posted" if group.is_posted else group.status.value
        click.echo(f"  {group.name}: {marker} ({group.status_message or ''})")
    pipeline.finish()

    if not result.success:
        raise click.ClickException(result.message)
    click.echo(result.message)


@cli.command()
@click.option("--host", default="127.0.0.1", help="Host to bind")
@click.option("--port", type=int, default=8000, help="Port to bind")
def serve(host: str, port: int) -> None:
    """Run the HTTP API."""
    click.echo(f"Starting web server at http://{host}:{port}")
    uvicorn.run("bulklist.api.app:app", host=host, port=port)


@cli.command()
@click.option(
    "--status",
    type=click.Choice([m.value for m in CommitMode]),
    default=None,
    help="Only show drafts or active listings",
)
@click.option("--limit", type=int, default=20, help="Maximum listings to show")
@click.option("--database-url", default=None, help="Listing store database URL")
def listings(status: Optional[str], limit: int, database_url: Optional[str]) -> None:
    """Show stored listings, newest first."""
    engine = make_engine(database_url)
    init_db(engine)
    with get_db_context(engine) as session:
        rows = ListingRepository(session).by_status(status, limit=limit)
        if not rows:
            click.echo("No listings found")
            return
        for listing in rows:
            price = f"${listing.price:.2f}" if listing.price is not None else "-"
            click.echo(f"{listing.id}  {listing.status:<6}  {price:>9}  {listing.title}")
