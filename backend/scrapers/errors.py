"""Exception hierarchy shared by the scrape pipeline and the rental store."""


class RentalFinderError(Exception):
    """Base class for all rental finder errors."""


class ConfigurationError(RentalFinderError):
    """Invalid static configuration (unknown source, bad batch size, bad selectors)."""


class FetchError(RentalFinderError):
    """Network or local read failure for one page locator."""

    def __init__(self, locator: str, cause: BaseException):
        self.locator = locator
        self.cause = cause
        super().__init__(f"Failed to fetch '{locator}': {cause}")


class ExtractionError(RentalFinderError):
    """The document could not be parsed at all."""


class PersistenceConflictError(RentalFinderError):
    """A concurrent insert lost the race for a listing_url."""

    def __init__(self, listing_url: str):
        self.listing_url = listing_url
        super().__init__(f"Rental already exists: {listing_url}")


class UpsertFailure(RentalFinderError):
    """One record failed to upsert inside a reconcile batch."""

    def __init__(self, listing_url: str, cause: BaseException):
        self.listing_url = listing_url
        self.cause = cause
        super().__init__(f"Upsert failed for '{listing_url}': {cause}")


class QueryError(RentalFinderError):
    """Unsupported filter field, operator or sort specification."""
