#!/usr/bin/env python3
"""
Tour & Travels admin CLI
Seeding, completion backfill and dashboard summaries
"""

import asyncio
import json
from datetime import datetime
from typing import Optional

import click

from .database import close_client, get_database
from .pricing.catalog import load_catalog
from .redis_service import redis_service
from .seed_data import seed_database
from .services.dashboard import DashboardService
from .services.lifecycle import BookingLifecycleService


def _run(coro):
    try:
        return asyncio.run(coro)
    finally:
        close_client()


@click.group()
def cli():
    """Tour & Travels booking administration."""


@cli.command()
@click.option('--keep', is_flag=True, help='Keep existing records instead of clearing seeded collections')
def seed(keep):
    """Seed vehicle categories and sample directory data."""
    counts = _run(seed_database(get_database(), reset=not keep))
    for collection, count in counts.items():
        click.echo(f"   {collection}: {count}")


async def _backfill(dry_run: bool):
    db = get_database()
    lifecycle = BookingLifecycleService(db, await load_catalog(db))
    codes = await lifecycle.repair_completed(dry_run=dry_run)

    # Repairs are not status transitions, so no event clears cached summaries
    if codes and not dry_run:
        await redis_service.connect()
        try:
            await redis_service.invalidate_dashboard_cache()
        finally:
            await redis_service.disconnect()
    return codes


@cli.command('backfill-completed')
@click.option('--dry-run', is_flag=True, help='Only list bookings that would be repaired')
def backfill_completed(dry_run):
    """Set completion timestamps on Completed bookings that lack them."""
    click.echo("🔎 Looking for Completed bookings without a completion time...")
    codes = _run(_backfill(dry_run))

    if not codes:
        click.echo("   ✅ Nothing to repair")
        return
    verb = "Would repair" if dry_run else "Repaired"
    click.echo(f"   {verb} {len(codes)} booking(s):")
    for code in codes:
        click.echo(f"      {code}")


async def _summary(start: Optional[datetime], end: Optional[datetime]):
    return await DashboardService(get_database()).summarize(start, end)


@cli.command()
@click.option('--start', type=click.DateTime(), default=None, help='Created on or after (UTC)')
@click.option('--end', type=click.DateTime(), default=None, help='Created on or before (UTC)')
def summary(start, end):
    """Print the dashboard summary as JSON."""
    click.echo(json.dumps(_run(_summary(start, end)), indent=2))


if __name__ == '__main__':
    cli()
