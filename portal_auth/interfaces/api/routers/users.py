# caminho: portal_auth/interfaces/api/routers/users.py
# Funções:
# - CRUD de contas de administrador (restrito a SuperAdmin)

from __future__ import annotations

from fastapi import APIRouter, Depends, Response, status

from portal_auth.application.admins.dto import (
    AdminCreateRequest,
    AdminUpdateRequest,
    AdminUserEnvelope,
    AdminUserListResponse,
)
from portal_auth.application.admins.use_cases import AdminUserService
from portal_auth.interfaces.api.dependencies import CurrentAdmin, get_client_info, get_user_service
from portal_auth.shared.client_ip import ClientInfo

router = APIRouter(prefix='/admin/users', tags=['users'])


@router.post(
    '',
    response_model=AdminUserEnvelope,
    status_code=status.HTTP_201_CREATED,
    summary='Criar administrador',
    description="""Cria uma conta com papel `SD` por padrão; o 2FA é configurado no primeiro login.

Retorna 409 `User already exists` para e-mail já cadastrado.
""",
)
async def create_user(
    payload: AdminCreateRequest,
    context: CurrentAdmin,
    client: ClientInfo = Depends(get_client_info),
    service: AdminUserService = Depends(get_user_service),
) -> AdminUserEnvelope:
    return await service.create_user(context, payload, client)


@router.get(
    '',
    response_model=AdminUserListResponse,
    summary='Listar administradores',
    description='Retorna todas as contas, das mais recentes para as mais antigas.',
)
async def list_users(
    context: CurrentAdmin,
    service: AdminUserService = Depends(get_user_service),
) -> AdminUserListResponse:
    return await service.list_users(context)


@router.patch(
    '/{admin_id}',
    response_model=AdminUserEnvelope,
    summary='Atualizar administrador',
    description="""Altera nome, papel ou estado ativo.

Desativar uma conta revoga todas as suas sessões. Não é possível desativar a própria
conta nem remover o próprio papel SuperAdmin.
""",
)
async def update_user(
    admin_id: str,
    payload: AdminUpdateRequest,
    context: CurrentAdmin,
    client: ClientInfo = Depends(get_client_info),
    service: AdminUserService = Depends(get_user_service),
) -> AdminUserEnvelope:
    return await service.update_user(context, admin_id, payload, client)


@router.post(
    '/{admin_id}/unlock',
    response_model=AdminUserEnvelope,
    summary='Desbloquear administrador',
    description='Zera o contador de falhas de login e remove o bloqueio temporário.',
)
async def unlock_user(
    admin_id: str,
    context: CurrentAdmin,
    client: ClientInfo = Depends(get_client_info),
    service: AdminUserService = Depends(get_user_service),
) -> AdminUserEnvelope:
    return await service.unlock_user(context, admin_id, client)


@router.delete(
    '/{admin_id}',
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
    summary='Remover administrador',
    description='Exclui a conta e suas sessões. A própria conta não pode ser removida (400).',
)
async def delete_user(
    admin_id: str,
    context: CurrentAdmin,
    client: ClientInfo = Depends(get_client_info),
    service: AdminUserService = Depends(get_user_service),
) -> Response:
    await service.delete_user(context, admin_id, client)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
