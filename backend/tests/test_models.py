"""
Tests for database models.
"""

import pytest
from sqlalchemy.exc import IntegrityError


class TestRentalModel:
    """Test the Rental model."""

    def test_create_rental(self, db_session):
        """Test creating a rental."""
        from api.database import Rental

        rental = Rental(
            listing_url="quick-rent.html#family-townhouse",
            source="quickRent",
            title="Family Townhouse",
            price="$2,650",
            location="Residential Area, Suburbs",
        )
        db_session.add(rental)
        db_session.commit()

        assert rental.id is not None
        assert rental.is_deleted is False
        assert rental.deleted_at is None
        assert rental.created_at is not None
        assert rental.updated_at is not None

    def test_listing_url_is_unique(self, db_session, sample_rental):
        """Two rentals cannot share a listing_url."""
        from api.database import Rental

        db_session.add(Rental(listing_url=sample_rental.listing_url, title="Copy"))
        with pytest.raises(IntegrityError):
            db_session.commit()
        db_session.rollback()

    def test_listing_url_is_required(self, db_session):
        from api.database import Rental

        db_session.add(Rental(title="No key"))
        with pytest.raises(IntegrityError):
            db_session.commit()
        db_session.rollback()

    def test_text_fields_default_to_empty(self, db_session):
        from api.database import Rental

        rental = Rental(listing_url="page.html#bare")
        db_session.add(rental)
        db_session.commit()

        assert rental.title == ''
        assert rental.price == ''
        assert rental.location == ''

    def test_to_dict(self, sample_rental):
        data = sample_rental.to_dict()

        assert data['listing_url'] == "luxe-stay.html#executive-downtown-suite"
        assert data['price'] == "$1850/mo"
        assert data['is_deleted'] is False
        assert data['deleted_at'] is None
        assert isinstance(data['created_at'], str)
