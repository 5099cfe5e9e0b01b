# carwash/main.py

import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI
from sqlalchemy import text
from sqlalchemy.orm import Session

from .config import settings
from .database import get_db, init_db
from .dependencies import build_reservation_service
from .redis_client import redis_client
from .routers import bookings, slots

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def create_app(service=None, warmup_days: int | None = None, create_tables: bool = True) -> FastAPI:
    """
    Build the API.

    Args:
        service: reservation service to serve; the production stack if omitted
        warmup_days: days of availability to precompute at startup
            (settings.cache_warmup_days for the production stack, 0 otherwise)
        create_tables: create missing tables on startup (SQLite development)
    """
    if warmup_days is None:
        warmup_days = settings.cache_warmup_days if service is None else 0

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if create_tables:
            init_db()
        if app.state.reservation_service is None:
            app.state.reservation_service = build_reservation_service()

        reservation_service = app.state.reservation_service
        if warmup_days and hasattr(reservation_service, "warmup_caches"):
            try:
                reservation_service.warmup_caches(warmup_days)
            except Exception:
                logger.exception("Cache warmup failed, starting cold")
        yield

    app = FastAPI(title="Car Wash Booking API", lifespan=lifespan)
    app.state.reservation_service = service

    app.include_router(slots.router)
    app.include_router(bookings.router)

    @app.get("/health")
    def health(db: Session = Depends(get_db)):
        try:
            redis_ok = bool(redis_client.ping())
        except Exception as e:
            logger.warning(f"Health check: redis unreachable: {e}")
            redis_ok = False
        db.execute(text("SELECT 1"))
        return {"database": True, "redis": redis_ok}

    return app


app = create_app()
