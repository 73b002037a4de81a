# caminho: portal_auth/interfaces/api/routers/auth.py
# Funções:
# - Endpoints de autenticação (bootstrap, login, verificação do 2FA, sessão atual, logout)

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Response, status

from portal_auth.application.admins.dto import (
    AdminAuthenticatedResponse,
    AdminBootstrapRequest,
    AdminLoginRequest,
    AdminLoginResponse,
    AdminMeResponse,
    AdminTwoFactorRequest,
    AdminUserEnvelope,
)
from portal_auth.application.admins.use_cases import AdminAuthService, to_user_out
from portal_auth.interfaces.api.dependencies import (
    CurrentAdmin,
    get_auth_service,
    get_bearer_token,
    get_client_info,
)
from portal_auth.shared.client_ip import ClientInfo

router = APIRouter(prefix='/admin', tags=['auth'])


@router.post(
    '/bootstrap',
    response_model=AdminUserEnvelope,
    status_code=status.HTTP_201_CREATED,
    summary='Criar o primeiro SuperAdmin',
    description="""Disponível apenas enquanto não existe nenhuma conta de administrador.

**Proteções**:
- Retorna 403 `Bootstrap already completed` quando já há contas.
- Toda tentativa é registrada na trilha de auditoria (`bootstrap`).
""",
)
async def bootstrap_admin(
    payload: AdminBootstrapRequest,
    client: ClientInfo = Depends(get_client_info),
    service: AdminAuthService = Depends(get_auth_service),
) -> AdminUserEnvelope:
    return await service.bootstrap(payload, client)


@router.post(
    '/login',
    response_model=AdminLoginResponse,
    response_model_exclude_none=True,
    summary='Login com senha (etapa 1)',
    description="""Valida e-mail e senha e abre uma sessão `Pending2FA`.

No primeiro acesso (`status=2fa_setup`) a resposta inclui `otpauth_url` e `secret`
uma única vez; nos demais (`status=2fa_required`) apenas o token da sessão.

**Proteções**:
- Limite de tentativas por IP em janela fixa (`ADMIN_MAX_IP_ATTEMPTS` / `ADMIN_IP_WINDOW_MINUTES`).
- Bloqueio temporário da conta após `ADMIN_MAX_LOGIN_ATTEMPTS` falhas (`ADMIN_LOCK_MINUTES`).
- Mensagem genérica para e-mail inexistente e senha errada.
""",
)
async def login(
    payload: AdminLoginRequest,
    client: ClientInfo = Depends(get_client_info),
    service: AdminAuthService = Depends(get_auth_service),
) -> AdminLoginResponse:
    return await service.login(payload, client)


@router.post(
    '/2fa/verify',
    response_model=AdminAuthenticatedResponse,
    summary='Verificar código TOTP (etapa 2)',
    description="""Recebe o token `Pending2FA` no cabeçalho `Authorization: Bearer` e o código TOTP.

Com código válido a sessão passa a `Active` e o mesmo token vale para as rotas protegidas.

**Proteções**:
- Sessão já ativa, revogada ou inexistente responde 401 `Invalid session`.
- Sessão expirada é revogada.
""",
)
async def verify_two_factor(
    payload: AdminTwoFactorRequest,
    token: Optional[str] = Depends(get_bearer_token),
    client: ClientInfo = Depends(get_client_info),
    service: AdminAuthService = Depends(get_auth_service),
) -> AdminAuthenticatedResponse:
    return await service.verify_two_factor(token, payload, client)


@router.get(
    '/me',
    response_model=AdminMeResponse,
    summary='Sessão atual',
)
async def me(context: CurrentAdmin) -> AdminMeResponse:
    return AdminMeResponse(user=to_user_out(context.admin), session_expires_at=context.session_expires_at)


@router.post(
    '/logout',
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
    summary='Encerrar sessão',
)
async def logout(
    context: CurrentAdmin,
    client: ClientInfo = Depends(get_client_info),
    service: AdminAuthService = Depends(get_auth_service),
) -> Response:
    await service.logout(context, client)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
