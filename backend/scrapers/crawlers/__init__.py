"""Page fetchers for listing sources."""

from .static import StaticCrawler, coerce_markup, is_http_url

__all__ = ['StaticCrawler', 'coerce_markup', 'is_http_url']
