import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from prometheus_fastapi_instrumentator import Instrumentator
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from sqlalchemy import inspect

from .config import settings
from .db import Base, engine
from .logging import setup_logging, RequestIdMiddleware
from .models import models  # noqa: F401  registers tables on Base.metadata
from .auth.router import router as auth_router
from .routes.organizations import router as organizations_router
from .routes.projects import router as projects_router
from .routes.tasks import router as tasks_router
from .routes.services import router as services_router
from .routes.invoices import router as invoices_router
from .routes.expenses import router as expenses_router
from .routes.vendors import router as vendors_router
from .routes.documents import router as documents_router
from .routes.drawings import router as drawings_router
from .routes.proposals import router as proposals_router
from .routes.files import router as files_router
from .routes.integrations import router as integrations_router


log = structlog.get_logger()


def init_db() -> None:
    existing_tables = set(inspect(engine).get_table_names())
    missing = set(Base.metadata.tables.keys()) - existing_tables
    if missing:
        log.info("db_create_tables", count=len(missing))
        Base.metadata.create_all(bind=engine)


def create_app() -> FastAPI:
    setup_logging()
    app = FastAPI(title=settings.app_name)

    # Middlewares
    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    limiter = Limiter(key_func=get_remote_address, default_limits=[settings.rate_limit])
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_middleware(SlowAPIMiddleware)

    # Routers
    app.include_router(auth_router)
    app.include_router(organizations_router)
    app.include_router(projects_router)
    app.include_router(tasks_router)
    app.include_router(services_router)
    app.include_router(invoices_router)
    app.include_router(expenses_router)
    app.include_router(vendors_router)
    app.include_router(documents_router)
    app.include_router(drawings_router)
    app.include_router(proposals_router)
    app.include_router(files_router)
    app.include_router(integrations_router)

    # Metrics
    Instrumentator().instrument(app).expose(app)

    @app.get("/health")
    def health():
        return {"status": "ok", "environment": settings.environment}

    @app.on_event("startup")
    def _startup():
        log.info("startup", app=settings.app_name, environment=settings.environment)
        if settings.auto_create_db:
            init_db()

    return app


app = create_app()
