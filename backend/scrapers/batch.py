"""
Batch reconciler - applies scraped listings to the store in bounded batches.

Records inside a batch are upserted concurrently; batches run one after the
other, so at most batch_size store operations are in flight at once. A failing
record is logged and skipped, never aborting the batch or the run.
"""

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, Iterator, List, Sequence, TypeVar, Union

from .errors import ConfigurationError, UpsertFailure

logger = logging.getLogger('scraper.batch')

T = TypeVar('T')

UpsertFn = Callable[[Any], Union[Any, Awaitable[Any]]]


def iter_batches(records: Sequence[T], batch_size: int) -> Iterator[List[T]]:
    """Consecutive slices of at most batch_size records."""
    for start in range(0, len(records), batch_size):
        yield list(records[start:start + batch_size])


async def _call_upsert(upsert_fn: UpsertFn, record: Any) -> Any:
    result = upsert_fn(record)
    if inspect.isawaitable(result):
        result = await result
    return result


def _record_key(record: Any) -> str:
    return getattr(record, 'listing_url', None) or (
        record.get('listing_url') if isinstance(record, dict) else None
    ) or repr(record)


async def reconcile(records: Sequence[Any], batch_size: int, upsert_fn: UpsertFn) -> int:
    """
    Upsert records in sequential batches of concurrent calls.

    Args:
        records: Listings to apply
        batch_size: Maximum concurrent upserts (positive integer)
        upsert_fn: Sync or async callable; a falsy return means "no change"

    Returns:
        Number of records whose upsert succeeded with a truthy result

    Raises:
        ConfigurationError: If batch_size is not a positive integer
    """
    if isinstance(batch_size, bool) or not isinstance(batch_size, int) or batch_size <= 0:
        raise ConfigurationError(f"batch_size must be a positive integer, got {batch_size!r}")

    records = list(records)
    name = getattr(upsert_fn, '__name__', repr(upsert_fn))
    processed = 0
    failed = 0

    for batch in iter_batches(records, batch_size):
        outcomes = await asyncio.gather(
            *(_call_upsert(upsert_fn, record) for record in batch),
            return_exceptions=True,
        )
        for record, outcome in zip(batch, outcomes):
            if isinstance(outcome, BaseException):
                failed += 1
                logger.warning(str(UpsertFailure(_record_key(record), outcome)))
            elif outcome:
                processed += 1

    logger.info(f"{processed} rentals processed with {name} ({len(records)} attempted, {failed} failed)")
    return processed
