#!/usr/bin/env python3
"""
Run the scrape pipeline from the command line.

Usage:
    cd backend
    python -m scrapers.run_scrape [site_key ...]

Examples:
    python -m scrapers.run_scrape                 # Scrape all enabled sites into the database
    python -m scrapers.run_scrape quickRent       # Scrape one site
    python -m scrapers.run_scrape --dry-run       # Extract only, print listings
    python -m scrapers.run_scrape --list          # List all sites
"""

import asyncio
import argparse
import logging
import json

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

from scrapers.config import get_site_config, get_site_summary, get_source_pages
from scrapers.manager import ScrapeOrchestrator


def build_source_map(site_keys):
    if not site_keys:
        return get_source_pages()
    return {key: get_site_config(key).page for key in site_keys}


async def dry_run(source_map, strict: bool):
    """Scrape and print listings without touching the database."""
    orchestrator = ScrapeOrchestrator(strict=strict)
    try:
        listings = await orchestrator.scrape_all(source_map)
    finally:
        await orchestrator.close()

    print(f"\nFound {len(listings)} listings\n")
    for i, listing in enumerate(listings, 1):
        print(f"{i}. {listing.title}")
        print(f"   Price: {listing.price}")
        print(f"   Location: {listing.location}")
        print(f"   Key: {listing.listing_url}")
    print()
    print(json.dumps(orchestrator.get_results_summary(), indent=2))


async def full_run(source_map, strict: bool, batch_size: int):
    """Scrape and reconcile into the configured database."""
    from api.config import settings
    from api.database import init_db
    from api.rentals import RentalStore
    from scrapers.pipeline import run_scrape_cycle

    settings.data_dir.mkdir(exist_ok=True)
    init_db()
    summary = await run_scrape_cycle(RentalStore(), source_map, batch_size=batch_size, strict=strict)
    print(json.dumps(summary, indent=2))


def main():
    parser = argparse.ArgumentParser(description='Run the rental scrape pipeline')
    parser.add_argument('sites', nargs='*', help='Site keys to scrape (default: all enabled)')
    parser.add_argument('--list', action='store_true', help='List all sites')
    parser.add_argument('--dry-run', action='store_true', help='Extract only; do not write to the database')
    parser.add_argument('--strict', action='store_true', help='Abort on the first failing site')
    parser.add_argument('--batch-size', type=int, default=None, help='Concurrent upserts per batch')

    args = parser.parse_args()

    if args.list:
        for site in get_site_summary():
            status = 'enabled' if site['enabled'] else 'disabled'
            print(f"{site['key']:<18} {site['name']:<18} {site['page']:<28} {status}")
        return

    source_map = build_source_map(args.sites)
    if args.dry_run:
        asyncio.run(dry_run(source_map, args.strict))
    else:
        asyncio.run(full_run(source_map, args.strict, args.batch_size))


if __name__ == '__main__':
    main()
