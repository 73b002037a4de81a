# caminho: portal_auth/interfaces/api/app.py
# Funções:
# - create_application(): configura FastAPI com estado por instância, middlewares, rotas e handlers
# - lifespan(): cria tabelas (opcional), bootstrap do SuperAdmin e encerramento de conexões

from __future__ import annotations

from collections.abc import Callable
from contextlib import asynccontextmanager
from datetime import datetime

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pwdlib import PasswordHash

from portal_auth.config import get_settings
from portal_auth.config.settings import Settings
from portal_auth.infrastructure.cache.redis import close_redis_client, create_redis_client
from portal_auth.infrastructure.db.base import create_async_engine_settings, create_session_factory, init_models
from portal_auth.infrastructure.db.utils import utc_now
from portal_auth.infrastructure.security.totp import TotpVerifier
from portal_auth.interfaces.api.dependencies import require_admin_auth
from portal_auth.interfaces.api.middleware import IpAllowlistMiddleware
from portal_auth.interfaces.api.routers import auth, health, users
from portal_auth.shared.errors import register_exception_handlers
from portal_auth.shared.logging import log_info, setup_logging
from portal_auth.shared.rate_limit import InMemoryIpRateLimiter, IpRateLimiter, RedisIpRateLimiter
from portal_auth.shared.system_bootstrap import bootstrap_root_admin


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: Settings = app.state.settings
    if settings.DB_CREATE_ALL:
        await init_models(app.state.engine)
    await bootstrap_root_admin(settings, app.state.session_factory, app.state.clock)
    log_info('APP_STARTUP', {'environment': settings.DEPLOYMENT_ENVIRONMENT, 'database': settings.POSTGRES_DSN_SAFE})

    yield

    log_info('APP_SHUTDOWN', {'reason': 'lifespan'})
    if app.state.redis is not None:
        await close_redis_client(app.state.redis)
    await app.state.engine.dispose()


def _build_ip_rate_limiter(settings: Settings, redis_client) -> IpRateLimiter:
    if redis_client is not None:
        return RedisIpRateLimiter(
            redis_client,
            settings.ADMIN_MAX_IP_ATTEMPTS,
            settings.ip_window_seconds,
        )
    return InMemoryIpRateLimiter(
        settings.ADMIN_MAX_IP_ATTEMPTS,
        settings.ip_window_seconds,
        max_entries=settings.ADMIN_IP_TRACKER_MAX_ENTRIES,
    )


def create_application(
    settings: Settings | None = None,
    *,
    clock: Callable[[], datetime] = utc_now,
) -> FastAPI:
    settings = settings or get_settings()
    setup_logging(level=settings.LOG_LEVEL)

    app = FastAPI(
        title='portal-auth',
        version='0.1.0',
        lifespan=lifespan,
        dependencies=[Depends(require_admin_auth)],
    )

    # Estado por instância: cada aplicação (e cada teste) tem seu engine e seu limitador
    engine = create_async_engine_settings(settings)
    redis_client = create_redis_client(settings) if settings.RATE_LIMIT_BACKEND == 'redis' else None
    app.state.settings = settings
    app.state.clock = clock
    app.state.engine = engine
    app.state.session_factory = create_session_factory(engine)
    app.state.redis = redis_client
    app.state.ip_rate_limiter = _build_ip_rate_limiter(settings, redis_client)
    app.state.password_hasher = PasswordHash.recommended()
    app.state.totp = TotpVerifier(settings.TOTP_ISSUER, settings.TOTP_VALID_WINDOW)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=False,
        allow_methods=['GET', 'POST', 'PATCH', 'DELETE', 'OPTIONS'],
        allow_headers=['Authorization', 'Content-Type'],
    )
    # Adicionado por último: é o primeiro a processar a requisição
    app.add_middleware(IpAllowlistMiddleware, settings=settings)

    register_exception_handlers(app)

    prefix = settings.API_PREFIX.rstrip('/')
    app.include_router(health.router, prefix=prefix)
    app.include_router(auth.router, prefix=prefix)
    app.include_router(users.router, prefix=prefix)

    return app
