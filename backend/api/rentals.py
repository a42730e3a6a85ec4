"""
Rental store - persistence operations keyed by listing_url.

Each operation opens its own session and runs in the default executor, so the
event loop keeps serving while several store calls are in flight. All four
mutating/reading operations are safe to call concurrently for the same key:
inserts rely on the unique index, deletes are conditional bulk statements.
"""

import asyncio
import functools
import logging
import math
from dataclasses import asdict, is_dataclass
from typing import Any, Dict, Mapping, Optional

from sqlalchemy import asc, desc
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from api.database import Rental, SessionLocal, utc_now
from scrapers.errors import PersistenceConflictError, QueryError

logger = logging.getLogger(__name__)

# Fields a scrape or caller may write; listing_url is only written on insert
MUTABLE_FIELDS = ('source', 'title', 'price', 'location')
INSERT_FIELDS = ('listing_url',) + MUTABLE_FIELDS

FILTERABLE_FIELDS = {
    'id': Rental.id,
    'listing_url': Rental.listing_url,
    'source': Rental.source,
    'title': Rental.title,
    'price': Rental.price,
    'location': Rental.location,
    'created_at': Rental.created_at,
    'updated_at': Rental.updated_at,
    'is_deleted': Rental.is_deleted,
    'deleted_at': Rental.deleted_at,
}

FILTER_OPERATORS = {
    '$eq': lambda column, value: column == value,
    '$ne': lambda column, value: column != value,
    '$lt': lambda column, value: column < value,
    '$lte': lambda column, value: column <= value,
    '$gt': lambda column, value: column > value,
    '$gte': lambda column, value: column >= value,
    '$in': lambda column, value: column.in_(_as_list(value)),
    '$nin': lambda column, value: column.not_in(_as_list(value)),
    '$contains': lambda column, value: column.ilike(f"%{value}%"),
}

DEFAULT_SORT = {'price': 1}


def _as_list(value) -> list:
    if isinstance(value, (list, tuple, set)):
        return list(value)
    raise QueryError(f"Expected a list, got {value!r}")


def _as_record_dict(record: Any) -> Dict[str, Any]:
    if record is None:
        return {}
    if isinstance(record, Mapping):
        return dict(record)
    if is_dataclass(record):
        return asdict(record)
    return dict(vars(record))


def total_pages(total: int, page_size: int) -> int:
    """ceil(total / page_size); zero rows means zero pages."""
    if page_size <= 0:
        raise ValueError("page_size must be positive")
    return math.ceil(total / page_size)


def apply_filters(query, filters: Optional[Mapping[str, Any]]):
    """
    Apply a filter mapping to a Rental query.

    {field: value} means equality; {field: {"$op": value, ...}} applies each
    operator. Soft-deleted rows are excluded unless is_deleted is named.
    """
    filters = dict(filters or {})
    if 'is_deleted' not in filters:
        query = query.filter(Rental.is_deleted == False)  # noqa: E712

    for field, condition in filters.items():
        column = FILTERABLE_FIELDS.get(field)
        if column is None:
            raise QueryError(f"Cannot filter on '{field}'")

        if isinstance(condition, Mapping):
            for op, value in condition.items():
                operator = FILTER_OPERATORS.get(op)
                if operator is None:
                    raise QueryError(f"Unsupported operator '{op}' for '{field}'")
                query = query.filter(operator(column, value))
        elif condition is None:
            query = query.filter(column.is_(None))
        else:
            query = query.filter(column == condition)
    return query


def apply_sort(query, sort: Optional[Mapping[str, Any]]):
    """Order by each field in turn; 1/"asc" ascending, -1/"desc" descending."""
    for field, direction in (sort or DEFAULT_SORT).items():
        column = FILTERABLE_FIELDS.get(field)
        if column is None:
            raise QueryError(f"Cannot sort on '{field}'")
        if direction in (1, '1', 'asc', 'ASC'):
            query = query.order_by(asc(column))
        elif direction in (-1, '-1', 'desc', 'DESC'):
            query = query.order_by(desc(column))
        else:
            raise QueryError(f"Invalid sort direction for '{field}': {direction!r}")
    # Stable pagination across equal sort keys
    return query.order_by(asc(Rental.id))


class RentalStore:
    """
    Async facade over the rentals table.

    Usage:
        store = RentalStore()
        row = await store.add_rental(listing)        # dict or None if it exists
        row = await store.update_rental(url, {...})  # dict or None if no change
        page = await store.get_rentals({'source': 'quickRent'}, skip=0, limit=20)
    """

    def __init__(self, session_factory: Optional[sessionmaker] = None):
        self.session_factory = session_factory or SessionLocal

    async def _run(self, fn, *args, **kwargs):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, functools.partial(self._in_session, fn, *args, **kwargs))

    def _in_session(self, fn, *args, **kwargs):
        db: Session = self.session_factory()
        try:
            return fn(db, *args, **kwargs)
        finally:
            db.close()

    # ------------------------------------------------------------
    # Insert
    # ------------------------------------------------------------

    async def add_rental(self, record: Any) -> Optional[Dict]:
        """
        Insert a rental unless its listing_url already exists.

        Returns:
            The inserted row, or None when a row with this key exists
            (including when a concurrent insert won the race)
        """
        data = _as_record_dict(record)
        if not data.get('listing_url'):
            raise ValueError("rental must include a listing_url")
        try:
            return await self._run(self._add_rental, data)
        except PersistenceConflictError as e:
            logger.debug(f"Skipped insert: {e}")
            return None

    @staticmethod
    def _add_rental(db: Session, data: Dict) -> Dict:
        values = {k: data[k] for k in INSERT_FIELDS if data.get(k) is not None}
        rental = Rental(**values)
        db.add(rental)
        try:
            db.commit()
        except IntegrityError as e:
            db.rollback()
            raise PersistenceConflictError(data['listing_url']) from e
        db.refresh(rental)
        return rental.to_dict()

    # ------------------------------------------------------------
    # Update
    # ------------------------------------------------------------

    async def update_rental(self, listing_url: str, updates: Any) -> Optional[Dict]:
        """
        Update an existing rental's fields.

        listing_url (and any system field) in updates is ignored. Returns None
        when the row does not exist or nothing would change.
        """
        changes = {k: v for k, v in _as_record_dict(updates).items() if k in MUTABLE_FIELDS}
        return await self._run(self._update_rental, listing_url, changes)

    @staticmethod
    def _update_rental(db: Session, listing_url: str, changes: Dict) -> Optional[Dict]:
        rental = db.query(Rental).filter(Rental.listing_url == listing_url).first()
        if rental is None:
            return None

        changed = {k: v for k, v in changes.items() if getattr(rental, k) != v}
        if not changed:
            return None

        for key, value in changed.items():
            setattr(rental, key, value)
        rental.updated_at = utc_now()
        db.commit()
        db.refresh(rental)
        return rental.to_dict()

    async def upsert_rental(self, record: Any) -> Optional[Dict]:
        """
        Scrape-path upsert: insert new listings, update changed ones.

        Soft-deleted rows keep their deleted flag; scraping never restores them.
        """
        added = await self.add_rental(record)
        if added is not None:
            return added
        data = {k: v for k, v in _as_record_dict(record).items() if v is not None}
        return await self.update_rental(data['listing_url'], data)

    # ------------------------------------------------------------
    # Delete
    # ------------------------------------------------------------

    async def delete_rental(self, listing_url: str, hard: bool = False) -> Optional[Dict]:
        """
        Soft delete (default) or hard delete a rental.

        Returns the affected row, or None when there is nothing to delete
        (no row, or a soft delete of an already soft-deleted row).
        """
        if hard:
            return await self._run(self._hard_delete, listing_url)
        return await self._run(self._soft_delete, listing_url)

    @staticmethod
    def _soft_delete(db: Session, listing_url: str) -> Optional[Dict]:
        count = db.query(Rental).filter(
            Rental.listing_url == listing_url,
            Rental.is_deleted == False,  # noqa: E712
        ).update({'is_deleted': True, 'deleted_at': utc_now()}, synchronize_session=False)
        db.commit()
        if not count:
            return None
        rental = db.query(Rental).filter(Rental.listing_url == listing_url).first()
        return rental.to_dict() if rental else None

    @staticmethod
    def _hard_delete(db: Session, listing_url: str) -> Optional[Dict]:
        rental = db.query(Rental).filter(Rental.listing_url == listing_url).first()
        if rental is None:
            return None
        snapshot = rental.to_dict()
        count = db.query(Rental).filter(Rental.listing_url == listing_url).delete(synchronize_session=False)
        db.commit()
        return snapshot if count else None

    # ------------------------------------------------------------
    # Retrieval
    # ------------------------------------------------------------

    async def get_rentals(
        self,
        filters: Optional[Mapping[str, Any]] = None,
        skip: int = 0,
        limit: int = 20,
        sort: Optional[Mapping[str, Any]] = None,
    ) -> Dict:
        """
        Filtered, sorted slice of rentals plus the total match count.

        Sorting compares the stored display strings as text, so the default
        price sort is lexical: "$950" sorts after "$1,100".

        Returns:
            {"results": [...], "total": int}; total ignores skip/limit
        """
        if skip < 0 or limit < 0:
            raise ValueError("skip and limit must be non-negative")
        return await self._run(self._get_rentals, filters, skip, limit, sort)

    @staticmethod
    def _get_rentals(db: Session, filters, skip: int, limit: int, sort) -> Dict:
        query = apply_filters(db.query(Rental), filters)
        total = query.count()
        if limit == 0:
            return {'results': [], 'total': total}
        rentals = apply_sort(query, sort).offset(skip).limit(limit).all()
        return {'results': [r.to_dict() for r in rentals], 'total': total}

    async def get_rentals_page(
        self,
        filters: Optional[Mapping[str, Any]] = None,
        page: int = 1,
        page_size: int = 20,
        sort: Optional[Mapping[str, Any]] = None,
    ) -> Dict:
        """Page-numbered retrieval used by the HTTP endpoint."""
        if page < 1 or page_size < 1:
            raise ValueError("page and page_size must be at least 1")
        found = await self.get_rentals(filters, skip=(page - 1) * page_size, limit=page_size, sort=sort)
        return {
            'results': found['results'],
            'total': found['total'],
            'page': page,
            'page_size': page_size,
            'total_pages': total_pages(found['total'], page_size),
        }
