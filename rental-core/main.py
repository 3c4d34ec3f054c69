"""FastAPI entrypoint for the rental core.

Layout:
- `routes/` for the HTTP adapter over the entity services
- `services/` for integrity, cascade and reservation rules
- `db/` for SQLAlchemy models, the entity store and schema setup
- `scheduler/` for the APScheduler integrity sweep
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from collections.abc import AsyncIterator

from fastapi import FastAPI
from fastapi.exceptions import HTTPException, RequestValidationError

from rental_core.config import settings
from rental_core.core.domain_exceptions import DomainException
from rental_core.core.exceptions import (
    domain_exception_handler,
    http_exception_handler,
    request_validation_handler,
    timeout_handler,
)
from rental_core.core.middleware import RequestContextMiddleware
from rental_core.db.init_db import close_db, init_db
from rental_core.routes import cars, cities, locations, reservations, states, users
from rental_core.scheduler.integrity_sweep import start_scheduler
from rental_core.services.reservation_service import ensure_lease_outlives_booking

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI) -> AsyncIterator[None]:
    """Initialize app resources before serving traffic."""
    ensure_lease_outlives_booking()
    await init_db()
    logger.info("Database tables initialized.")

    scheduler = None
    if settings.SCHEDULER_ENABLED:
        try:
            scheduler = start_scheduler()
        except Exception:
            logger.exception("Failed to start scheduler.")

    yield

    if scheduler:
        scheduler.shutdown(wait=False)
        logger.info("Integrity sweep scheduler shut down.")
    await close_db()


app = FastAPI(
    title="Rental Core API",
    version="0.1.0",
    description="Referential integrity and reservation scheduling for the car rental catalog.",
    lifespan=lifespan,
)

app.add_middleware(RequestContextMiddleware)

app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, request_validation_handler)
app.add_exception_handler(DomainException, domain_exception_handler)
app.add_exception_handler(asyncio.TimeoutError, timeout_handler)

app.include_router(states.router)
app.include_router(cities.router)
app.include_router(locations.router)
app.include_router(cars.router)
app.include_router(reservations.router)
app.include_router(users.router)


@app.get("/", tags=["health"])
def root() -> dict[str, str]:
    """Simple status endpoint for uptime checks."""
    return {"status": "Rental Core Running"}


if __name__ == "__main__":
    import os

    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", "8000")))
