"""
Pytest configuration and fixtures for Rental Finder tests.
"""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from api.database import Base, Rental, make_engine
from api.main import app, get_store
from api.rentals import RentalStore
from scrapers.base import AnnotatedListing


@pytest.fixture(scope="function")
def db_engine(tmp_path):
    """File-backed SQLite so store calls from worker threads see the same data."""
    engine = make_engine(f"sqlite:///{tmp_path / 'test_rentals.db'}")
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def session_factory(db_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=db_engine)


@pytest.fixture(scope="function")
def db_session(session_factory):
    """Create a fresh database session for each test."""
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def store(session_factory):
    return RentalStore(session_factory)


@pytest.fixture(scope="function")
def client(store):
    """Create a test client with the store dependency overridden."""
    app.dependency_overrides[get_store] = lambda: store

    # Without the context manager the lifespan (and its scheduler) never starts
    test_client = TestClient(app)
    yield test_client

    app.dependency_overrides.clear()


@pytest.fixture
def listing():
    return AnnotatedListing(
        title="Early Bird Special",
        price="$1,250",
        location="Financial District, Downtown",
        listing_url="quick-rent.html#early-bird-special",
        source="quickRent",
    )


@pytest.fixture
def sample_rental(db_session):
    """Create a sample rental for testing."""
    rental = Rental(
        listing_url="luxe-stay.html#executive-downtown-suite",
        source="luxeStay",
        title="Executive Downtown Suite",
        price="$1850/mo",
        location="Financial Center",
    )
    db_session.add(rental)
    db_session.commit()
    db_session.refresh(rental)
    return rental


QUICK_RENT_HTML = """
<div class="list-listing rental-listing">
  <div class="list-title rental-title">Office District Studio</div>
  <div class="price-tag rental-price">$1,100</div>
  <div class="list-address rental-location">Business Center, Downtown</div>
</div>
<div class="list-listing rental-listing">
  <div class="list-title rental-title">Transit Hub Apartment</div>
  <div class="price-tag rental-price">$1,450</div>
  <div class="list-address rental-location">Metro Station Area, Midtown</div>
</div>
<div class="list-listing rental-listing">
  <div class="list-title rental-title">Early Bird Special</div>
  <div class="price-tag rental-price">$1,250</div>
  <div class="list-address rental-location">Financial District, Downtown</div>
</div>
<div class="rental-listing>
  <div class="rental-title">Bad Title
  <div class="rental-price">$1000</div>
</div>
"""


@pytest.fixture
def quick_rent_html():
    """Three well-formed listings followed by one malformed container."""
    return QUICK_RENT_HTML
