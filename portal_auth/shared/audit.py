# caminho: portal_auth/shared/audit.py
# Funções:
# - AuditAction: nomes das ações registradas na trilha de auditoria
# - AuditEvent: entrada append-only (ator, ação, resultado, IP, User-Agent, metadados)
# - AuditLogger: protocolo consumido pelos casos de uso

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol

from portal_auth.shared.client_ip import ClientInfo


class AuditAction(str, Enum):
    BOOTSTRAP = 'bootstrap'
    LOGIN_RATE_LIMITED = 'login_rate_limited'
    LOGIN_FAILED = 'login_failed'
    LOGIN_BLOCKED = 'login_blocked'
    LOGIN_LOCKED = 'login_locked'
    LOGIN_2FA_SETUP_REQUIRED = 'login_2fa_setup_required'
    LOGIN_2FA_REQUIRED = 'login_2fa_required'
    TWO_FACTOR_FAILED = '2fa_failed'
    TWO_FACTOR_VERIFIED = '2fa_verified'
    SESSION_EXPIRED = 'session_expired'
    LOGOUT = 'logout'
    CREATE_ADMIN_USER = 'create_admin_user'
    UPDATE_ADMIN_USER = 'update_admin_user'
    UNLOCK_ADMIN_USER = 'unlock_admin_user'
    DELETE_ADMIN_USER = 'delete_admin_user'


@dataclass(slots=True)
class AuditEvent:
    action: AuditAction
    success: bool
    user_id: str | None = None
    email: str | None = None
    ip_address: str | None = None
    user_agent: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_client(
        cls,
        action: AuditAction,
        success: bool,
        client: ClientInfo,
        *,
        user_id: str | None = None,
        email: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> 'AuditEvent':
        return cls(
            action=action,
            success=success,
            user_id=user_id,
            email=email,
            ip_address=client.ip,
            user_agent=client.user_agent,
            metadata=dict(metadata or {}),
        )


class AuditLogger(Protocol):
    async def record(self, event: AuditEvent) -> None: ...
