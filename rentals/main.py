from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from rentals.api.v1 import api_router
from rentals.config import settings
from rentals.core.error_handlers import register_exception_handlers
from rentals.database import create_async_db_and_tables
from rentals.utils.logging import configure_logging, get_logger

configure_logging(settings.LOG_LEVEL)
logger = get_logger("rentals")


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: crear tablas solo si está habilitado (en producción manda Alembic)
    if settings.AUTO_CREATE_TABLES:
        try:
            await create_async_db_and_tables()
            logger.info("Conexión a base de datos establecida")
        except Exception as db_error:
            logger.warning(f"Error de conexión a base de datos: {db_error}")
            logger.info("La aplicación iniciará sin conexión a BD")

    yield

    logger.info("Cerrando aplicación...")


app = FastAPI(
    title=settings.PROJECT_NAME,
    description=settings.PROJECT_DESCRIPTION,
    version=settings.VERSION,
    openapi_url=f"{settings.API_V1_STR}/openapi.json",
    lifespan=lifespan
)

# Set all CORS enabled origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.BACKEND_CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

# Include API routes
app.include_router(api_router, prefix=settings.API_V1_STR)


@app.get("/")
async def root():
    return {
        "message": "API de Alquileres - Pagos y Facturas",
        "version": settings.VERSION,
        "docs": "/docs"
    }


@app.get("/health")
async def health_check():
    return {
        "status": "healthy",
        "version": settings.VERSION,
        "environment": settings.ENVIRONMENT
    }
