"""
One scrape cycle: scrape every source, then reconcile against the store.
"""

import logging
from datetime import datetime, timezone
from typing import Dict, Mapping, Optional

from .batch import reconcile
from .manager import ScrapeOrchestrator

logger = logging.getLogger('scraper.pipeline')


async def run_scrape_cycle(
    store,
    source_map: Optional[Mapping[str, str]] = None,
    batch_size: Optional[int] = None,
    strict: Optional[bool] = None,
    orchestrator: Optional[ScrapeOrchestrator] = None,
) -> Dict:
    """
    Scrape all sources and upsert the results.

    Args:
        store: Object exposing an async upsert_rental(record)
        source_map: Source key -> page locator (defaults to enabled sites)
        batch_size: Concurrent upserts per batch (defaults to settings)
        strict: Abort on the first failing source (defaults to settings)
        orchestrator: Reuse an orchestrator (a fresh one is built and closed otherwise)

    Returns:
        Summary with scraped/processed counts and per-source results
    """
    from api.config import settings

    if batch_size is None:
        batch_size = settings.scrape_batch_size
    if strict is None:
        strict = settings.scrape_strict

    started_at = datetime.now(timezone.utc)
    owns_orchestrator = orchestrator is None
    if owns_orchestrator:
        orchestrator = ScrapeOrchestrator(strict=strict)

    try:
        listings = await orchestrator.scrape_all(source_map, strict=strict)
        processed = await reconcile(listings, batch_size, store.upsert_rental)
    finally:
        if owns_orchestrator:
            await orchestrator.close()

    completed_at = datetime.now(timezone.utc)
    logger.info(f"Scrape cycle done: {len(listings)} scraped, {processed} inserted or updated")
    return {
        'started_at': started_at.isoformat(),
        'completed_at': completed_at.isoformat(),
        'scraped': len(listings),
        'processed': processed,
        'summary': orchestrator.get_results_summary(),
    }
