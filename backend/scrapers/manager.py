"""
Scrape Orchestrator - runs fetch + extract across all configured sources.

Every source gets its own task; tasks run concurrently and their outcomes are
collected per source. By default a failing source is logged and skipped so
the others still contribute listings. In strict mode the first failure
cancels the remaining sources and is raised to the caller.
"""

import asyncio
from typing import Dict, List, Mapping, Optional
from datetime import datetime, timezone
import logging

from .base import AnnotatedListing, Colors, RawListing, ScrapeResult
from .config import SITES, get_selectors, get_source_pages
from .crawlers.static import StaticCrawler
from .utils.extractors import extract_listings
from .utils.normalizers import slugify

logger = logging.getLogger('scraper.manager')


def derive_listing_url(page_locator: str, title: str) -> str:
    """
    Build the stable business key for a listing.

    Same page + same title text always gives the same key, e.g.
    ("quick-rent.html", "Early Bird Special") -> "quick-rent.html#early-bird-special".
    """
    return f"{page_locator}#{slugify(title)}"


def annotate_listings(
    source_key: str,
    page_locator: str,
    listings: List[RawListing],
) -> List[AnnotatedListing]:
    """Tag raw listings with their listing_url, preserving order."""
    return [
        AnnotatedListing(
            title=listing.title,
            price=listing.price,
            location=listing.location,
            listing_url=derive_listing_url(page_locator, listing.title),
            source=source_key,
        )
        for listing in listings
    ]


class ScrapeOrchestrator:
    """
    Orchestrates scraping across sources.

    Usage:
        orchestrator = ScrapeOrchestrator()

        # Scrape every enabled source
        listings = await orchestrator.scrape_all()

        # Scrape an explicit source map, aborting on the first failure
        listings = await orchestrator.scrape_all({'quickRent': 'quick-rent.html'}, strict=True)
    """

    def __init__(self, crawler: Optional[StaticCrawler] = None, strict: bool = False):
        """
        Initialize the orchestrator.

        Args:
            crawler: Fetcher to use (built from settings when omitted)
            strict: Abort all sources on the first failure
        """
        self.crawler = crawler
        self.strict = strict
        self.results: Dict[str, ScrapeResult] = {}

    def _get_crawler(self) -> StaticCrawler:
        if self.crawler is None:
            from api.config import settings
            self.crawler = StaticCrawler.from_settings(settings)
        return self.crawler

    async def scrape_source(self, source_key: str, page_locator: str) -> List[AnnotatedListing]:
        """
        Fetch and extract one source.

        Raises:
            ConfigurationError: Unknown source key
            FetchError: Page could not be retrieved
        """
        selectors = get_selectors(source_key)
        result = ScrapeResult(source=source_key, started_at=datetime.now(timezone.utc))
        self.results[source_key] = result

        try:
            markup = await self._get_crawler().fetch(page_locator)
        except Exception as e:
            result.errors += 1
            result.error_details.append({'page': page_locator, 'error': str(e)})
            result.completed_at = datetime.now(timezone.utc)
            raise

        raw_listings = extract_listings(markup, selectors)
        keyed = [listing for listing in raw_listings if listing.title]
        result.skipped = len(raw_listings) - len(keyed)
        if result.skipped:
            logger.warning(f"{source_key}: skipped {result.skipped} listing(s) without a title")

        annotated = annotate_listings(source_key, page_locator, keyed)
        result.total = len(annotated)
        result.completed_at = datetime.now(timezone.utc)
        logger.info(f"{Colors.green('[OK]')} {source_key}: {len(annotated)} listing(s) from {page_locator}")
        return annotated

    async def scrape_all(
        self,
        source_map: Optional[Mapping[str, str]] = None,
        strict: Optional[bool] = None,
    ) -> List[AnnotatedListing]:
        """
        Scrape several sources concurrently.

        Args:
            source_map: Source key -> page locator (defaults to all enabled sites)
            strict: Override the orchestrator's failure policy for this run

        Returns:
            Annotated listings from every source that succeeded, grouped by
            source in source_map order
        """
        if source_map is None:
            source_map = get_source_pages()
        strict = self.strict if strict is None else strict

        # Unknown keys are a configuration problem, reported before any fetch starts
        for source_key in source_map:
            get_selectors(source_key)

        self.results = {}
        source_keys = list(source_map.keys())
        logger.info(f"Starting scrape for {len(source_keys)} sources: {source_keys}")

        if strict:
            outcomes = await self._gather_strict(source_map)
        else:
            outcomes = await asyncio.gather(
                *(self.scrape_source(key, source_map[key]) for key in source_keys),
                return_exceptions=True,
            )

        listings: List[AnnotatedListing] = []
        for key, outcome in zip(source_keys, outcomes):
            if isinstance(outcome, BaseException):
                logger.error(f"{Colors.red('[ERR]')} {key}: {outcome}")
                continue
            listings.extend(outcome)

        logger.info(f"Scrape complete: {len(listings)} listing(s) from {len(source_keys)} source(s)")
        return listings

    async def _gather_strict(self, source_map: Mapping[str, str]) -> list:
        tasks = [
            asyncio.create_task(self.scrape_source(key, locator), name=f"scrape:{key}")
            for key, locator in source_map.items()
        ]
        if not tasks:
            return []

        done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)
        failed = [task for task in tasks if task in done and task.exception() is not None]
        if failed:
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)
            raise failed[0].exception()

        return [task.result() for task in tasks]

    async def close(self):
        if self.crawler is not None:
            await self.crawler.close()

    def list_sources(self) -> List[Dict]:
        """List all configured sources."""
        return [
            {'key': key, 'name': config.name, 'page': config.page, 'enabled': config.enabled}
            for key, config in SITES.items()
        ]

    def get_results_summary(self) -> Dict:
        """
        Get summary of the last scrape.

        Returns:
            Summary dictionary with totals
        """
        successful = sum(1 for r in self.results.values() if r.success)
        return {
            'total_sites': len(self.results),
            'successful': successful,
            'failed': len(self.results) - successful,
            'total_listings': sum(r.total for r in self.results.values()),
            'skipped_listings': sum(r.skipped for r in self.results.values()),
            'sites': {k: v.to_dict() for k, v in self.results.items()},
        }
