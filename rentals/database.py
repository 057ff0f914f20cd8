from contextlib import asynccontextmanager
from typing import AsyncGenerator, AsyncIterator

from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlalchemy.ext.asyncio import (
    AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
)

from rentals.config import settings
from rentals.models import Base


def enable_sqlite_write_locks(sync_engine: Engine) -> None:
    """
    SQLite no soporta SELECT ... FOR UPDATE.

    Para conservar la garantía de "bloquear antes de leer saldos", cada
    transacción se abre con BEGIN IMMEDIATE, que toma el lock de escritura de
    la base completa antes de la primera lectura.
    """
    @event.listens_for(sync_engine, "connect")
    def _disable_driver_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(sync_engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def build_engine(url: str, **kwargs) -> AsyncEngine:
    """Crear el engine asíncrono; en SQLite se activan los locks de escritura"""
    if url.startswith("sqlite"):
        engine = create_async_engine(url, **kwargs)
        enable_sqlite_write_locks(engine.sync_engine)
        return engine

    return create_async_engine(
        url,
        pool_pre_ping=True,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        echo=settings.DEBUG,
        **kwargs
    )


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
        autocommit=False
    )


async_engine = build_engine(settings.ASYNC_SQLALCHEMY_DATABASE_URI)
AsyncSessionLocal = build_session_factory(async_engine)


# Dependency para FastAPI (asíncrono)
async def get_async_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency para obtener sesión de base de datos asíncrona"""
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


@asynccontextmanager
async def atomic(session: AsyncSession) -> AsyncIterator[AsyncSession]:
    """
    Unidad de trabajo: confirma si el bloque termina bien y revierte ante
    cualquier excepción, liberando los locks tomados dentro del bloque.
    """
    try:
        yield session
        await session.commit()
    except BaseException:
        await session.rollback()
        raise


async def create_async_db_and_tables(engine: AsyncEngine = async_engine):
    """Crea todas las tablas en la base de datos (versión asíncrona)"""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def drop_async_db_and_tables(engine: AsyncEngine = async_engine):
    """Elimina todas las tablas de la base de datos"""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
