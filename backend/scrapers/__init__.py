"""
Rental listing scrape pipeline.

This module provides:
- Declarative per-site selector sets (config)
- A static page fetcher for URLs and bundled pages (crawlers)
- Listing extraction and key derivation (utils, manager)
- Batched reconciliation against the rental store (batch)
- A fixed-interval scheduler (scheduler)
"""

from .base import ListingSelectors, SiteConfig, RawListing, AnnotatedListing, ScrapeResult
from .config import SITES, get_site_config, get_selectors, get_enabled_sites, get_source_pages
from .errors import (
    RentalFinderError,
    ConfigurationError,
    FetchError,
    ExtractionError,
    PersistenceConflictError,
    UpsertFailure,
    QueryError,
)
from .manager import ScrapeOrchestrator, derive_listing_url
from .batch import reconcile
from .scheduler import RentalScheduler
from .pipeline import run_scrape_cycle

__all__ = [
    'ListingSelectors',
    'SiteConfig',
    'RawListing',
    'AnnotatedListing',
    'ScrapeResult',
    'SITES',
    'get_site_config',
    'get_selectors',
    'get_enabled_sites',
    'get_source_pages',
    'RentalFinderError',
    'ConfigurationError',
    'FetchError',
    'ExtractionError',
    'PersistenceConflictError',
    'UpsertFailure',
    'QueryError',
    'ScrapeOrchestrator',
    'derive_listing_url',
    'reconcile',
    'RentalScheduler',
    'run_scrape_cycle',
]
