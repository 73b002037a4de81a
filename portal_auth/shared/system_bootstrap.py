# caminho: portal_auth/shared/system_bootstrap.py
# Funções:
# - bootstrap_root_admin(): cria o primeiro SuperAdmin a partir de ROOT_AUTH_* na inicialização

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime

from pwdlib import PasswordHash
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from portal_auth.config.settings import Settings
from portal_auth.domain.admins.entities import AdminAccount
from portal_auth.domain.admins.enums import ADMIN_ROLE_BOOTSTRAP
from portal_auth.infrastructure.db.utils import DuplicateRecordError
from portal_auth.infrastructure.repositories.admin_repository import AdminRepositoryImpl
from portal_auth.infrastructure.repositories.audit_repository import SqlAlchemyAuditLogger
from portal_auth.shared.audit import AuditAction, AuditEvent
from portal_auth.shared.logging import log_info, log_warning


async def bootstrap_root_admin(
    settings: Settings,
    session_factory: async_sessionmaker[AsyncSession],
    clock: Callable[[], datetime],
) -> AdminAccount | None:
    """Cria o SuperAdmin inicial somente quando a tabela de contas está vazia."""
    email = (settings.ROOT_AUTH_EMAIL or '').strip().lower()
    password = settings.ROOT_AUTH_PASSWORD.get_secret_value()

    if not email or not password:
        log_info('ROOT_ADMIN_BOOTSTRAP_SKIPPED', {'reason': 'missing_credentials'})
        return None

    async with session_factory() as session:
        admins = AdminRepositoryImpl(session)
        if await admins.count() > 0:
            log_info('ROOT_ADMIN_BOOTSTRAP_SKIPPED', {'reason': 'accounts_exist'})
            return None

        if len(password) < settings.ADMIN_PASSWORD_MIN_LENGTH:
            log_warning('ROOT_ADMIN_BOOTSTRAP_SKIPPED', {'reason': 'password_too_short'})
            return None

        try:
            admin = await admins.add(
                AdminAccount(
                    email=email,
                    password_hash=PasswordHash.recommended().hash(password),
                    role=ADMIN_ROLE_BOOTSTRAP,
                    name=settings.ROOT_AUTH_NAME.strip() or None,
                    created_at=clock(),
                )
            )
        except DuplicateRecordError:
            # outra instância criou a conta primeiro
            log_warning('ROOT_ADMIN_BOOTSTRAP_SKIPPED', {'reason': 'concurrent_bootstrap'})
            return None

        await SqlAlchemyAuditLogger(session).record(
            AuditEvent(
                action=AuditAction.BOOTSTRAP,
                success=True,
                user_id=admin.id,
                email=admin.email,
                metadata={'source': 'startup'},
            )
        )
        log_info('ROOT_ADMIN_BOOTSTRAP_CREATED', {'admin_id': admin.id})
        return admin
