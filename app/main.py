from contextlib import asynccontextmanager

from fastapi import FastAPI

from app.till.api import api_router
from app.till.core.config import settings
from app.till.core.errors import setup_exception_handlers
from app.till.core.logging import configure_logging
from app.till.middleware.observability import ObservabilityMiddleware
from app.till.middleware.trace import TraceIdMiddleware


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.SEED_DEMO_CATALOG:
        from app.till.db.seed import run_seed
        from app.till.db.session import SessionLocal

        with SessionLocal() as db:
            run_seed(db)
    yield


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(title=settings.APP_NAME, lifespan=lifespan)
    app.add_middleware(TraceIdMiddleware)
    app.add_middleware(ObservabilityMiddleware)
    setup_exception_handlers(app)
    app.include_router(api_router)
    return app


app = create_app()
