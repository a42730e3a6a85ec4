"""
Site configurations for the known rental listing sources.

Each site has a SiteConfig that defines:
- The default page locator (URL, path, or a page bundled in backend/pages)
- The CSS selectors for the listing container and its fields

Adding a source only requires a new entry here.
"""

from typing import Dict

from .base import SiteConfig, ListingSelectors
from .errors import ConfigurationError


# ============================================================
# SELECTOR SETS
# ============================================================

# All bundled pages tag their listings with the shared rental-* classes
GENERAL_SELECTORS = ListingSelectors(
    container='.rental-listing',
    title='.rental-title',
    price='.rental-price',
    location='.rental-location',
)


# ============================================================
# SITE CONFIGURATIONS
# ============================================================

SITES: Dict[str, SiteConfig] = {
    'luxeStay': SiteConfig(
        name='LuxeStay',
        page='luxe-stay.html',
        selectors=GENERAL_SELECTORS,
    ),

    'quickRent': SiteConfig(
        name='QuickRent',
        page='quick-rent.html',
        selectors=GENERAL_SELECTORS,
    ),

    'realtyHub': SiteConfig(
        name='RealtyHub',
        page='realty-hub.html',
        selectors=GENERAL_SELECTORS,
    ),

    'apartmentFinder': SiteConfig(
        name='ApartmentFinder',
        page='apartment-finder.html',
        selectors=GENERAL_SELECTORS,
    ),
}


def validate_sites(sites: Dict[str, SiteConfig]) -> None:
    """
    Check every site entry at load time.

    Selector sets validate themselves on construction; this catches entries
    that were built some other way or that have an empty page locator.
    """
    for key, config in sites.items():
        if not isinstance(config.selectors, ListingSelectors):
            raise ConfigurationError(f"Site '{key}' has no selector set")
        if not config.page:
            raise ConfigurationError(f"Site '{key}' has no page locator")


validate_sites(SITES)


# ============================================================
# HELPER FUNCTIONS
# ============================================================

def get_site_config(site_key: str) -> SiteConfig:
    """
    Get configuration for a site by its key.

    Args:
        site_key: Site identifier (e.g., 'quickRent')

    Returns:
        SiteConfig for the site

    Raises:
        ConfigurationError: If site_key is not found
    """
    if site_key not in SITES:
        valid_keys = ', '.join(sorted(SITES.keys()))
        raise ConfigurationError(f"Unknown site: '{site_key}'. Valid sites: {valid_keys}")
    return SITES[site_key]


def get_selectors(site_key: str) -> ListingSelectors:
    """Get the selector set for a site; unknown keys raise ConfigurationError."""
    return get_site_config(site_key).selectors


def get_enabled_sites() -> dict:
    """Get all enabled sites."""
    return {k: v for k, v in SITES.items() if v.enabled}


def get_source_pages() -> Dict[str, str]:
    """Default source key -> page locator map used by scheduled scrapes."""
    return {k: v.page for k, v in get_enabled_sites().items()}


def list_sites() -> list:
    """List all site keys."""
    return list(SITES.keys())


def get_site_summary() -> list:
    """Get a summary of all sites for display."""
    summary = []
    for key, config in SITES.items():
        summary.append({
            'key': key,
            'name': config.name,
            'page': config.page,
            'enabled': config.enabled,
            'selectors': {'container': config.selectors.container, **config.selectors.field_selectors()},
        })
    return summary
