from sqlalchemy import create_engine, Column, Integer, String, DateTime, Boolean, Index
from sqlalchemy.orm import declarative_base, sessionmaker
from datetime import datetime, timezone


def utc_now():
    """Return current UTC time (timezone-aware). Replaces deprecated datetime.utcnow()."""
    return datetime.now(timezone.utc)

Base = declarative_base()


class Rental(Base):
    __tablename__ = 'rentals'

    id = Column(Integer, primary_key=True)

    # Business key derived from source page + title; immutable after insert
    listing_url = Column(String, unique=True, nullable=False)
    source = Column(String, index=True)  # quickRent, luxeStay, etc.

    # Scraped display strings (no numeric parsing)
    title = Column(String, nullable=False, default='')
    price = Column(String, nullable=False, default='')
    location = Column(String, nullable=False, default='')

    # Metadata
    created_at = Column(DateTime, default=utc_now)
    updated_at = Column(DateTime, default=utc_now, onupdate=utc_now)

    # Soft delete
    is_deleted = Column(Boolean, default=False, nullable=False, index=True)
    deleted_at = Column(DateTime)

    # Indexes for common filter/sort patterns
    __table_args__ = (
        Index('ix_rentals_price', 'price'),
        Index('ix_rentals_location', 'location'),
        Index('ix_rentals_deleted_price', 'is_deleted', 'price'),
    )

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'listing_url': self.listing_url,
            'source': self.source,
            'title': self.title,
            'price': self.price,
            'location': self.location,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
            'is_deleted': bool(self.is_deleted),
            'deleted_at': self.deleted_at.isoformat() if self.deleted_at else None,
        }


# Database setup - import settings for database URL
from api.config import settings


def make_engine(database_url: str):
    """Create an engine; SQLite connections are shared with worker threads."""
    if database_url.startswith('sqlite'):
        return create_engine(
            database_url,
            echo=False,
            connect_args={"check_same_thread": False, "timeout": 30},
        )
    # Configure engine with connection pooling for better performance
    return create_engine(
        database_url,
        echo=False,
        pool_size=5,           # Number of connections to keep in pool
        max_overflow=10,       # Additional connections allowed beyond pool_size
        pool_pre_ping=True,    # Verify connections before use (handles stale connections)
        pool_recycle=3600,     # Recycle connections after 1 hour
    )


engine = make_engine(settings.database_url)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

def init_db(bind=None):
    Base.metadata.create_all(bind=bind or engine)

def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
