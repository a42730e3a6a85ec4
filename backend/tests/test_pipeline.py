"""
End-to-end tests: scrape -> reconcile -> store.
"""

import asyncio

from scrapers.manager import ScrapeOrchestrator
from scrapers.pipeline import run_scrape_cycle


class PageCrawler:
    def __init__(self, pages):
        self.pages = pages

    async def fetch(self, locator):
        return self.pages[locator]

    async def close(self):
        pass


class TestScrapeCycle:

    def test_quick_rent_into_empty_store(self, store, quick_rent_html):
        orchestrator = ScrapeOrchestrator(crawler=PageCrawler({'quick-rent.html': quick_rent_html}))

        summary = asyncio.run(run_scrape_cycle(
            store, {'quickRent': 'quick-rent.html'}, batch_size=10, orchestrator=orchestrator,
        ))

        assert summary['scraped'] == 3
        assert summary['processed'] == 3

        found = asyncio.run(store.get_rentals(limit=10))
        assert found['total'] == 3
        assert {r['listing_url'] for r in found['results']} == {
            'quick-rent.html#office-district-studio',
            'quick-rent.html#transit-hub-apartment',
            'quick-rent.html#early-bird-special',
        }

    def test_rescrape_only_applies_changes(self, store, quick_rent_html):
        pages = {'quick-rent.html': quick_rent_html}
        orchestrator = ScrapeOrchestrator(crawler=PageCrawler(pages))
        source_map = {'quickRent': 'quick-rent.html'}

        asyncio.run(run_scrape_cycle(store, source_map, batch_size=2, orchestrator=orchestrator))
        unchanged = asyncio.run(run_scrape_cycle(store, source_map, batch_size=2, orchestrator=orchestrator))

        pages['quick-rent.html'] = quick_rent_html.replace('$1,250', '$1,199')
        changed = asyncio.run(run_scrape_cycle(store, source_map, batch_size=2, orchestrator=orchestrator))

        assert unchanged['processed'] == 0
        assert changed['processed'] == 1
        found = asyncio.run(store.get_rentals({'listing_url': 'quick-rent.html#early-bird-special'}))
        assert found['results'][0]['price'] == '$1,199'

    def test_scrape_never_deletes(self, store, quick_rent_html):
        pages = {'quick-rent.html': quick_rent_html}
        orchestrator = ScrapeOrchestrator(crawler=PageCrawler(pages))
        source_map = {'quickRent': 'quick-rent.html'}

        asyncio.run(run_scrape_cycle(store, source_map, batch_size=5, orchestrator=orchestrator))
        pages['quick-rent.html'] = ''
        summary = asyncio.run(run_scrape_cycle(store, source_map, batch_size=5, orchestrator=orchestrator))

        assert summary['scraped'] == 0
        assert asyncio.run(store.get_rentals())['total'] == 3

    def test_non_ascii_titles_are_stored_separately(self, store):
        html = ''.join(
            f'<div class="rental-listing"><div class="rental-title">{t}</div>'
            f'<div class="rental-price">$900</div><div class="rental-location">Centre</div></div>'
            for t in ('東京アパート', 'Москва квартира')
        )
        pages = {'a.html': html}

        def cycle():
            orchestrator = ScrapeOrchestrator(crawler=PageCrawler(pages))
            return asyncio.run(run_scrape_cycle(
                store, {'quickRent': 'a.html'}, batch_size=1, orchestrator=orchestrator,
            ))

        assert cycle()['processed'] == 2
        assert asyncio.run(store.get_rentals())['total'] == 2
        # Unchanged page: nothing to apply
        assert cycle()['processed'] == 0
