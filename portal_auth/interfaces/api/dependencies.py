# caminho: portal_auth/interfaces/api/dependencies.py
# Funções:
# - get_client_info(): IP best-effort + User-Agent da requisição
# - get_bearer_token(): extrai o token do cabeçalho Authorization
# - get_auth_service() / get_user_service(): instanciam os serviços com adapters concretos
# - require_admin_auth(): dependência global; valida a sessão Active fora das rotas abertas
# - get_admin_context(): contexto obrigatório para rotas protegidas

from __future__ import annotations

from typing import Annotated, Optional

from fastapi import Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from portal_auth.application.admins.use_cases import (
    AdminAdapters,
    AdminAuthService,
    AdminContext,
    AdminUserService,
)
from portal_auth.config.constants import BEARER_PREFIX, OPEN_PATHS
from portal_auth.config.settings import Settings
from portal_auth.infrastructure.db.base import get_session
from portal_auth.infrastructure.repositories.admin_repository import (
    AdminRepositoryImpl,
    AdminSessionRepositoryImpl,
)
from portal_auth.infrastructure.repositories.audit_repository import SqlAlchemyAuditLogger
from portal_auth.shared.client_ip import ClientInfo, client_info_from_request
from portal_auth.shared.errors import AuthenticationFailed


def get_client_info(request: Request) -> ClientInfo:
    settings: Settings = request.app.state.settings
    return client_info_from_request(request, settings.PLATFORM_CLIENT_IP_HEADER)


def get_bearer_token(authorization: Annotated[Optional[str], Header()] = None) -> Optional[str]:
    if not authorization or not authorization.startswith(BEARER_PREFIX):
        return None
    return authorization[len(BEARER_PREFIX):].strip() or None


def get_admin_adapters(session: AsyncSession = Depends(get_session)) -> AdminAdapters:
    return AdminAdapters(
        admins=AdminRepositoryImpl(session),
        sessions=AdminSessionRepositoryImpl(session),
        audit=SqlAlchemyAuditLogger(session),
    )


def get_auth_service(
    request: Request,
    adapters: AdminAdapters = Depends(get_admin_adapters),
) -> AdminAuthService:
    state = request.app.state
    return AdminAuthService(
        adapters=adapters,
        settings=state.settings,
        password_hasher=state.password_hasher,
        totp=state.totp,
        clock=state.clock,
        ip_rate_limiter=state.ip_rate_limiter,
    )


def get_user_service(
    request: Request,
    adapters: AdminAdapters = Depends(get_admin_adapters),
) -> AdminUserService:
    state = request.app.state
    return AdminUserService(
        adapters=adapters,
        settings=state.settings,
        password_hasher=state.password_hasher,
        clock=state.clock,
    )


def _relative_path(request: Request) -> str:
    prefix = request.app.state.settings.API_PREFIX.rstrip('/')
    path = request.url.path
    if prefix and path.startswith(prefix):
        path = path[len(prefix):] or '/'
    return path.rstrip('/') or '/'


async def require_admin_auth(
    request: Request,
    token: Optional[str] = Depends(get_bearer_token),
    client: ClientInfo = Depends(get_client_info),
    service: AdminAuthService = Depends(get_auth_service),
) -> Optional[AdminContext]:
    """Instalada em FastAPI(dependencies=...); o resultado fica em cache por requisição."""
    if request.method == 'OPTIONS' or _relative_path(request) in OPEN_PATHS:
        return None
    return await service.authenticate(token, client)


async def get_admin_context(
    context: Optional[AdminContext] = Depends(require_admin_auth),
) -> AdminContext:
    if context is None:
        raise AuthenticationFailed('Authentication required')
    return context


CurrentAdmin = Annotated[AdminContext, Depends(get_admin_context)]
