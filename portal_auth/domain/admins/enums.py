# caminho: portal_auth/domain/admins/enums.py
# Funções:
# - AdminRole: papéis fechados dos administradores do portal
# - AdminSessionStatus: estados de uma sessão (Pending2FA -> Active -> Revoked)
# - can_manage_admin_users(): decisão de autorização com correspondência exaustiva

from __future__ import annotations

from enum import Enum
from typing import NoReturn


def _assert_never(value: NoReturn) -> NoReturn:
    raise AssertionError(f'Unhandled value: {value!r}')


# ─────────────────────────────────────────────────────────────────────────────
# Papéis de administrador
# SuperAdmin gerencia contas de administradores; SD e ITMS operam o portal.
# ─────────────────────────────────────────────────────────────────────────────
class AdminRole(str, Enum):
    SUPER_ADMIN = 'SuperAdmin'
    SD = 'SD'
    ITMS = 'ITMS'


ADMIN_ROLE_DEFAULT: AdminRole = AdminRole.SD
ADMIN_ROLE_BOOTSTRAP: AdminRole = AdminRole.SUPER_ADMIN


# ─────────────────────────────────────────────────────────────────────────────
# Estado da sessão
# Pending2FA só dá acesso ao endpoint de verificação do 2FA; Active dá acesso
# às rotas protegidas; Revoked é terminal.
# ─────────────────────────────────────────────────────────────────────────────
class AdminSessionStatus(str, Enum):
    PENDING_2FA = 'Pending2FA'
    ACTIVE = 'Active'
    REVOKED = 'Revoked'


def parse_admin_role(value: str | AdminRole) -> AdminRole:
    """Converte o valor recebido em AdminRole (aceita o nome com qualquer caixa)."""
    if isinstance(value, AdminRole):
        return value
    raw = str(value).strip()
    for role in AdminRole:
        if raw.lower() == role.value.lower():
            return role
    raise ValueError(f'Unknown admin role: {value!r}')


def can_manage_admin_users(role: AdminRole) -> bool:
    match role:
        case AdminRole.SUPER_ADMIN:
            return True
        case AdminRole.SD | AdminRole.ITMS:
            return False
        case _:
            _assert_never(role)
