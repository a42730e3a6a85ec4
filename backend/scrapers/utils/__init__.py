"""Shared utilities for scrapers."""

from .normalizers import (
    clean_text,
    slugify,
)
from .extractors import (
    parse_document,
    extract_field,
    iter_listings,
    extract_listings,
)

__all__ = [
    'clean_text',
    'slugify',
    'parse_document',
    'extract_field',
    'iter_listings',
    'extract_listings',
]
