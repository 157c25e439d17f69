import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from pgdash.config import settings
from pgdash.database import AsyncSessionLocal, create_all
from pgdash.exception_handlers import register_exception_handlers
from pgdash.middleware.logging import StructuredLoggingMiddleware, setup_structured_logging
from pgdash.routes import auth, health, permissions, roles, tenants, users
from pgdash.services.permission_service import permission_catalog, sync_catalog
from pgdash.services.role_service import seed_system_roles

logger = logging.getLogger(__name__)


async def bootstrap() -> None:
    """Sync the permission catalog, seed system roles and load the catalog snapshot."""
    async with AsyncSessionLocal() as db:
        await sync_catalog(db)
        await seed_system_roles(db)
        await permission_catalog.reload(db)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting %s (%s)", settings.app_name, settings.environment)
    if not settings.is_production:
        # Production schemas are managed by Alembic
        await create_all()
    await bootstrap()
    yield
    logger.info("Shutting down %s", settings.app_name)


def create_app() -> FastAPI:
    """Create the FastAPI application."""
    setup_structured_logging(settings.log_level, json_format=settings.log_json)

    app = FastAPI(
        title=settings.app_name,
        description="Authentication and role-based access control for the PG dashboard",
        debug=settings.debug,
        version=settings.app_version,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(StructuredLoggingMiddleware)

    register_exception_handlers(app)

    app.include_router(health.router)
    app.include_router(auth.router, prefix="/auth", tags=["Auth"])
    app.include_router(roles.router, prefix="/api/v1/admin/roles")
    app.include_router(permissions.router, prefix="/api/v1/admin/permissions")
    app.include_router(users.router, prefix="/api/v1/admin/users")
    app.include_router(tenants.router, prefix="/api/v1/admin/clients")

    if settings.debug:
        logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO)

    return app


app = create_app()
