"""
Base data structures for the rental scrape pipeline.

Selector sets describe where a listing and its fields live in a source's
markup; the listing records flow from the extractor through the orchestrator
into the batch reconciler.
"""

from typing import List, Dict, Optional
from dataclasses import dataclass, field, asdict
from datetime import datetime

import soupsieve

from .errors import ConfigurationError


# ANSI color codes for terminal output
class Colors:
    """ANSI color codes for colorized logging."""
    RESET = '\033[0m'
    BOLD = '\033[1m'

    GREEN = '\033[92m'
    YELLOW = '\033[93m'
    RED = '\033[91m'
    BLUE = '\033[94m'
    CYAN = '\033[96m'
    GRAY = '\033[90m'

    @staticmethod
    def green(text):
        return f"{Colors.GREEN}{text}{Colors.RESET}"

    @staticmethod
    def yellow(text):
        return f"{Colors.YELLOW}{text}{Colors.RESET}"

    @staticmethod
    def red(text):
        return f"{Colors.RED}{text}{Colors.RESET}"

    @staticmethod
    def blue(text):
        return f"{Colors.BLUE}{text}{Colors.RESET}"

    @staticmethod
    def cyan(text):
        return f"{Colors.CYAN}{text}{Colors.RESET}"

    @staticmethod
    def gray(text):
        return f"{Colors.GRAY}{text}{Colors.RESET}"

    @staticmethod
    def bold(text):
        return f"{Colors.BOLD}{text}{Colors.RESET}"


LISTING_FIELDS = ('title', 'price', 'location')


@dataclass(frozen=True)
class ListingSelectors:
    """CSS selectors locating a listing container and its fields."""
    container: str
    title: str
    price: str
    location: str

    def __post_init__(self):
        for name in ('container',) + LISTING_FIELDS:
            value = getattr(self, name)
            if not isinstance(value, str) or not value.strip():
                raise ConfigurationError(f"Selector '{name}' must be a non-empty string")
            try:
                soupsieve.compile(value)
            except soupsieve.SelectorSyntaxError as e:
                raise ConfigurationError(f"Selector '{name}' is not valid CSS ({value!r}): {e}") from e

        field_selectors = {getattr(self, name) for name in LISTING_FIELDS}
        if self.container in field_selectors:
            raise ConfigurationError(
                f"Container selector {self.container!r} must differ from the field selectors"
            )

    def field_selectors(self) -> Dict[str, str]:
        return {name: getattr(self, name) for name in LISTING_FIELDS}


@dataclass(frozen=True)
class SiteConfig:
    """Configuration for a scraping source."""
    name: str                           # Full display name
    page: str                           # Default page locator (URL, path or bare page name)
    selectors: ListingSelectors         # Where listings live in the page
    enabled: bool = True                # Whether to include in scheduled scrapes


@dataclass
class RawListing:
    """A listing as scraped: trimmed display strings, no parsing."""
    title: str = ''
    price: str = ''
    location: str = ''

    def to_dict(self) -> Dict:
        return asdict(self)


@dataclass
class AnnotatedListing(RawListing):
    """A scraped listing tagged with its stable business key."""
    listing_url: str = ''
    source: Optional[str] = None


@dataclass
class ScrapeResult:
    """Result of scraping one source."""
    source: str
    started_at: datetime
    completed_at: Optional[datetime] = None
    total: int = 0
    skipped: int = 0
    errors: int = 0
    error_details: List[Dict] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.errors == 0

    @property
    def duration_seconds(self) -> Optional[float]:
        if self.completed_at and self.started_at:
            return (self.completed_at - self.started_at).total_seconds()
        return None

    def to_dict(self) -> Dict:
        return {
            'source': self.source,
            'started_at': self.started_at.isoformat(),
            'completed_at': self.completed_at.isoformat() if self.completed_at else None,
            'duration_seconds': self.duration_seconds,
            'total': self.total,
            'skipped': self.skipped,
            'errors': self.errors,
            'error_details': self.error_details[:10],  # Limit error details
            'success': self.success,
        }
