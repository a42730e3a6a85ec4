"""
Listing extraction from raw markup.

Markup is parsed with BeautifulSoup's lenient html.parser, so broken tags are
recovered from rather than raised on. Each element matching the container
selector yields one RawListing whose fields are looked up inside that
container only.
"""

import logging
from typing import Iterator, List, Optional

from bs4 import BeautifulSoup, Tag

from ..base import ListingSelectors, RawListing, LISTING_FIELDS
from ..errors import ExtractionError
from .normalizers import clean_text

logger = logging.getLogger(__name__)


def parse_document(markup: str) -> BeautifulSoup:
    """
    Parse markup into a traversable document.

    Raises:
        ExtractionError: If the parser cannot produce a document at all
    """
    try:
        return BeautifulSoup(markup or '', 'html.parser')
    except Exception as e:
        raise ExtractionError(f"Unable to parse document: {e}") from e


def extract_field(container: Tag, selector: str) -> str:
    """Trimmed text of the first match inside container, or '' when absent."""
    element: Optional[Tag] = container.select_one(selector)
    if element is None:
        return ''
    return clean_text(element.get_text())


def iter_listings(markup: str, selectors: ListingSelectors) -> Iterator[RawListing]:
    """
    Lazily yield one RawListing per container, in document order.

    Duplicate containers produce duplicate records.
    """
    soup = parse_document(markup)
    for container in soup.select(selectors.container):
        values = {name: extract_field(container, getattr(selectors, name)) for name in LISTING_FIELDS}
        yield RawListing(**values)


def extract_listings(markup: str, selectors: ListingSelectors) -> List[RawListing]:
    """
    Extract all listings from markup.

    Never raises for malformed markup; a document that cannot be parsed
    at all degrades to an empty list.
    """
    try:
        return list(iter_listings(markup, selectors))
    except ExtractionError as e:
        logger.warning(f"Extraction degraded to no listings: {e}")
        return []
