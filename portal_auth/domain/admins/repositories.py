# caminho: portal_auth/domain/admins/repositories.py
# Funções:
# - AdminRepository: protocolo de persistência de contas de administrador
# - AdminSessionRepository: protocolo de persistência de sessões

from __future__ import annotations

from datetime import datetime
from typing import Optional, Protocol, Sequence

from portal_auth.domain.admins.entities import AdminAccount, AdminSession
from portal_auth.domain.admins.enums import AdminRole
from portal_auth.shared.security_lock import LockoutPolicy


class AdminRepository(Protocol):
    async def count(self) -> int: ...
    async def add(self, admin: AdminAccount) -> AdminAccount: ...
    async def get_by_id(self, admin_id: str) -> Optional[AdminAccount]: ...
    async def get_by_email(self, email: str) -> Optional[AdminAccount]: ...
    async def list(self) -> Sequence[AdminAccount]: ...
    async def remove(self, admin_id: str) -> Optional[AdminAccount]: ...

    async def register_login_failure(
        self,
        admin_id: str,
        *,
        policy: LockoutPolicy,
        now: datetime,
    ) -> tuple[int, bool]:
        """Incrementa o contador de forma atômica e aplica o bloqueio definido por `policy`.

        Retorna (contador após incremento, bloqueio aplicado agora).
        """
        ...

    async def clear_login_failures(self, admin_id: str) -> None: ...
    async def ensure_totp_secret(self, admin_id: str, secret: str) -> str: ...
    async def mark_two_factor_verified(self, admin_id: str, at: datetime) -> AdminAccount: ...

    async def update_profile(
        self,
        admin_id: str,
        *,
        name: Optional[str] = None,
        role: Optional[AdminRole] = None,
        is_active: Optional[bool] = None,
    ) -> Optional[AdminAccount]: ...


class AdminSessionRepository(Protocol):
    async def add(self, session_obj: AdminSession) -> AdminSession: ...
    async def get_by_token_hash(self, token_hash: str) -> Optional[AdminSession]: ...
    async def activate(self, session_id: str, at: datetime) -> None: ...
    async def touch(self, session_id: str, at: datetime) -> None: ...
    async def revoke(self, session_id: str) -> None: ...
    async def revoke_all_for_admin(self, admin_id: str) -> int: ...
