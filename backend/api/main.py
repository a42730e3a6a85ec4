from contextlib import asynccontextmanager
from fastapi import FastAPI, Depends, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response
from typing import Any, Dict, List, Optional
import json
import logging
import asyncio
import re

from api.database import init_db, engine
from api.config import settings
from api.rentals import RentalStore
from scrapers.config import get_site_summary
from scrapers.errors import ConfigurationError, QueryError
from scrapers.pipeline import run_scrape_cycle
from scrapers.scheduler import RentalScheduler
from pydantic import BaseModel

# Setup logging directory
settings.log_dir.mkdir(exist_ok=True)


# Custom formatter to strip ANSI color codes from file logs
class ColorStripFormatter(logging.Formatter):
    """Formatter that strips ANSI color codes from log messages."""
    ansi_escape = re.compile(r'\x1B(?:[@-Z\\-_]|\[[0-?]*[ -/]*[@-~])')

    def format(self, record):
        message = super().format(record)
        return self.ansi_escape.sub('', message)

# Setup logging with color support for console, stripped for file
file_handler = logging.FileHandler(settings.log_file, encoding='utf-8')
file_handler.setFormatter(ColorStripFormatter(settings.log_format))

console_handler = logging.StreamHandler()
console_handler.setFormatter(logging.Formatter(settings.log_format))

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper()),
    handlers=[file_handler, console_handler],
    force=True  # Override any existing configuration
)

# Scraper loggers get their own handlers so background runs log exactly once
scraper_logger = logging.getLogger('scraper')
scraper_logger.propagate = False
# Only add handlers if not already present (prevents duplicates on module reload)
if not scraper_logger.handlers:
    scraper_file_handler = logging.FileHandler(settings.log_file, encoding='utf-8')
    scraper_file_handler.setFormatter(ColorStripFormatter(settings.log_format))
    scraper_logger.addHandler(scraper_file_handler)

    scraper_console_handler = logging.StreamHandler()
    scraper_console_handler.setFormatter(logging.Formatter(settings.log_format))
    scraper_logger.addHandler(scraper_console_handler)
scraper_logger.setLevel(getattr(logging, settings.log_level.upper()))

logger = logging.getLogger(__name__)


# Filter to suppress noisy polling endpoint access logs
class PollingEndpointFilter(logging.Filter):
    # Endpoints that poll frequently and clutter logs
    SUPPRESSED_ENDPOINTS = ['/health']

    def filter(self, record):
        msg = record.getMessage()
        for endpoint in self.SUPPRESSED_ENDPOINTS:
            if endpoint in msg:
                return False
        return True

# Apply filter to uvicorn access logger at module load time
uvicorn_access_logger = logging.getLogger("uvicorn.access")
uvicorn_access_logger.addFilter(PollingEndpointFilter())


def get_store() -> RentalStore:
    """Rental store dependency (overridden in tests)."""
    return RentalStore()


async def cleanup_resources():
    """Clean up all resources on shutdown."""
    logger.info("Cleaning up resources...")
    try:
        logger.info("Closing database connections...")
        # Run dispose in executor since it's synchronous
        await asyncio.wait_for(
            asyncio.get_running_loop().run_in_executor(
                None,
                lambda: engine.dispose(close=True)
            ),
            timeout=2.0
        )
        logger.info("Database connections closed")
    except asyncio.TimeoutError:
        logger.warning("Database cleanup timed out")
    logger.info("Resource cleanup complete")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.
    Initializes the database and runs the scrape scheduler while serving.
    """
    # Startup
    logger.info("=" * 60)
    logger.info("Rental Finder Backend Starting Up")
    logger.info("=" * 60)
    logger.info(f"Log file: {settings.log_file}")
    logger.info(f"Database: {settings.database_url}")
    logger.info(f"Pages dir: {settings.pages_dir}")
    settings.data_dir.mkdir(exist_ok=True)
    init_db()
    logger.info("Database initialized successfully")

    scheduler = None
    if settings.scheduler_enabled:
        store = RentalStore()
        scheduler = RentalScheduler(
            settings.scrape_interval_seconds,
            lambda: run_scrape_cycle(store),
            prevent_overlap=settings.scheduler_prevent_overlap,
        )
        scheduler.start()
    app.state.scheduler = scheduler
    logger.info("Backend ready to accept requests")

    yield  # Application runs here

    # Shutdown
    logger.info("=" * 60)
    logger.info("Rental Finder Backend Shutting Down")
    logger.info("=" * 60)

    if scheduler is not None:
        await scheduler.stop()

    try:
        await asyncio.wait_for(cleanup_resources(), timeout=5.0)
    except asyncio.TimeoutError:
        logger.warning("Shutdown cleanup timed out, forcing exit")
    except Exception as e:
        logger.error(f"Error during shutdown cleanup: {e}")

    logger.info("Shutdown complete")


app = FastAPI(
    title="Rental Finder API",
    version="1.0.0",
    lifespan=lifespan
)

# Note: allow_credentials must be False when allow_origins is ["*"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/favicon.ico", include_in_schema=False)
async def favicon():
    """Return empty response for favicon requests"""
    return Response(status_code=204)


# Pydantic models for API responses
class RentalResponse(BaseModel):
    id: int
    listing_url: str
    source: Optional[str]
    title: str
    price: str
    location: str
    created_at: Optional[str]
    updated_at: Optional[str]
    is_deleted: bool
    deleted_at: Optional[str]


class RentalPageResponse(BaseModel):
    results: List[RentalResponse]
    total: int
    page: int
    page_size: int
    total_pages: int


def parse_json_param(name: str, raw: Optional[str]) -> Optional[Dict[str, Any]]:
    """Decode a JSON object passed as a query parameter."""
    if raw is None or raw.strip() == '':
        return None
    try:
        value = json.loads(raw)
    except json.JSONDecodeError as e:
        raise HTTPException(status_code=400, detail=f"Invalid JSON in '{name}': {e}")
    if not isinstance(value, dict):
        raise HTTPException(status_code=400, detail=f"'{name}' must be a JSON object")
    return value


# API Endpoints

@app.get("/")
async def root():
    return {"message": "Rental Finder API", "version": "1.0.0"}


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.get("/api/sources")
async def get_sources():
    """List configured listing sources and their selectors"""
    return get_site_summary()


@app.get("/api/rentals", response_model=RentalPageResponse)
async def get_rentals(
    filters: Optional[str] = Query(None, description='JSON filter, e.g. {"location": {"$contains": "Downtown"}}'),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=500),
    sort: Optional[str] = Query(None, description='JSON sort, e.g. {"price": 1}'),
    store: RentalStore = Depends(get_store),
):
    """Get rentals with filtering, sorting and pagination"""
    filter_spec = parse_json_param('filters', filters)
    sort_spec = parse_json_param('sort', sort)
    try:
        return await store.get_rentals_page(filter_spec, page=page, page_size=page_size, sort=sort_spec)
    except QueryError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Rental retrieval failed: {e}")
        raise HTTPException(status_code=500, detail=str(e) or "Unknown error occurred")


@app.delete("/api/rentals", response_model=RentalResponse)
async def delete_rental(
    listing_url: str = Query(..., min_length=1),
    hard: bool = Query(False, description="Physically remove the row instead of marking it deleted"),
    store: RentalStore = Depends(get_store),
):
    """Soft delete (default) or hard delete a rental"""
    deleted = await store.delete_rental(listing_url, hard=hard)
    if deleted is None:
        raise HTTPException(status_code=404, detail="Rental not found")
    return deleted


@app.post("/api/scrape")
async def scrape_now(
    strict: Optional[bool] = Query(None, description="Abort on the first failing source"),
    store: RentalStore = Depends(get_store),
):
    """Run one scrape cycle immediately"""
    try:
        return await run_scrape_cycle(store, strict=strict)
    except ConfigurationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Scrape cycle failed: {e}")
        raise HTTPException(status_code=500, detail=str(e))


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        app,
        host=settings.api_host,
        port=settings.api_port,
        access_log=True,
        log_config=None,
        timeout_keep_alive=5,
        timeout_graceful_shutdown=5.0,
    )
