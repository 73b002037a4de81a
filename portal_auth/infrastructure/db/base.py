# caminho: portal_auth/infrastructure/db/base.py
# Funções:
# - create_async_engine_settings(): configura engine async do SQLAlchemy
# - create_session_factory(): async_sessionmaker ligado ao engine
# - get_session(): fornece AsyncSession via FastAPI Depends (engine da aplicação)

from __future__ import annotations

from collections.abc import AsyncGenerator

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import registry
from sqlalchemy.pool import StaticPool

from portal_auth.config.settings import Settings

SQLITE_MEMORY_URLS = ('sqlite+aiosqlite://', 'sqlite+aiosqlite:///:memory:')

mapper_registry = registry()
Base = mapper_registry.generate_base()


def create_async_engine_settings(settings: Settings) -> AsyncEngine:
    url = settings.DATABASE_URL

    if url in SQLITE_MEMORY_URLS:
        # SQLite em memória (testes): conexão única compartilhada
        return create_async_engine(
            url,
            poolclass=StaticPool,
            connect_args={'check_same_thread': False},
        )

    if url.startswith('sqlite+aiosqlite://'):
        # SQLite em arquivo: uma conexão por sessão, escritores aguardam o lock
        return create_async_engine(
            url,
            connect_args={'check_same_thread': False, 'timeout': 30},
        )

    return create_async_engine(
        url,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_timeout=settings.DB_POOL_TIMEOUT_S,
        # Verifica a conexão antes de usar, forçando a reabertura se cair
        pool_pre_ping=True,
        pool_recycle=1800,
        connect_args={'timeout': 60},
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


async def init_models(engine: AsyncEngine) -> None:
    from portal_auth.infrastructure.db import models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def get_session(request: Request) -> AsyncGenerator[AsyncSession, None]:
    session_factory: async_sessionmaker[AsyncSession] = request.app.state.session_factory
    session = session_factory()
    try:
        yield session
    except Exception:
        await session.rollback()
        raise
    finally:
        await session.close()
