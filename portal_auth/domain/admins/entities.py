# caminho: portal_auth/domain/admins/entities.py
# Funções:
# - AdminAccount: entidade principal (credencial, estado do 2FA, falhas de login)
# - AdminSession: sessão bearer (apenas o hash do token é armazenado)

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from portal_auth.domain.admins.enums import AdminRole, AdminSessionStatus


@dataclass(slots=True)
class AdminAccount:
    email: str
    password_hash: str
    role: AdminRole
    name: Optional[str] = None
    totp_secret: Optional[str] = None
    totp_enabled: bool = False
    failed_login_count: int = 0
    lock_until: Optional[datetime] = None
    last_login_at: Optional[datetime] = None
    is_active: bool = True
    created_at: Optional[datetime] = None
    id: Optional[str] = None


@dataclass(slots=True)
class AdminSession:
    admin_id: str
    token_hash: str
    status: AdminSessionStatus
    expires_at: datetime
    created_at: Optional[datetime] = None
    last_used_at: Optional[datetime] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    id: Optional[str] = None

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at <= now
