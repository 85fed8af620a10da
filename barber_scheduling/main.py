# barber_scheduling/main.py

import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Callable, Iterator

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy.engine import Engine
from sqlalchemy.exc import DBAPIError
from sqlmodel import Session

from . import db
from .business_calendar import SettingsCache
from .catalog import ServiceCatalog
from .config import config
from .core import utc_now
from .exceptions import DomainException, InfrastructureException
from .routers import appointments_routes, settings_routes, time_blocks_routes

logging.basicConfig(
    level=config.log_level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

logger = logging.getLogger(__name__)


def create_app(bind: Engine = None, clock: Callable[[], datetime] = utc_now) -> FastAPI:
    bind = bind or db.engine

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        db.create_db_and_tables(bind)
        with Session(bind) as session:
            ServiceCatalog(session).seed_defaults()
        logger.info("Scheduling API ready (timezone %s)", config.business_timezone)
        yield

    app = FastAPI(title="Barber Scheduling API", lifespan=lifespan)
    app.state.settings_cache = SettingsCache()
    app.state.clock = clock

    if bind is not db.engine:

        def get_bound_session() -> Iterator[Session]:
            with Session(bind) as session:
                yield session

        app.dependency_overrides[db.get_session] = get_bound_session

    @app.exception_handler(DomainException)
    async def domain_exception_handler(request: Request, exc: DomainException) -> JSONResponse:
        if isinstance(exc, InfrastructureException):
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        else:
            logger.info("%s %s rejected: %s", request.method, request.url.path, exc.code)
        http_exc = exc.to_http_exception()
        return JSONResponse(status_code=http_exc.status_code, content={"detail": http_exc.detail})

    @app.exception_handler(DBAPIError)
    async def store_exception_handler(request: Request, exc: DBAPIError) -> JSONResponse:
        # store errors raised outside serializable_transaction
        return await domain_exception_handler(request, db.translate_store_error(exc))

    @app.get("/health")
    def health_check():
        return {"status": "ok"}

    app.include_router(appointments_routes.router)
    app.include_router(settings_routes.router)
    app.include_router(time_blocks_routes.router)
    return app


app = create_app()
