# caminho: portal_auth/infrastructure/repositories/admin_repository.py
# Funções:
# - AdminRepositoryImpl: implementação SQLAlchemy do protocolo AdminRepository
# - AdminSessionRepositoryImpl: implementação para sessões (busca pelo hash do token)

from __future__ import annotations

from datetime import datetime
from typing import Optional, Sequence

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from portal_auth.domain.admins.entities import AdminAccount, AdminSession
from portal_auth.domain.admins.enums import AdminRole, AdminSessionStatus, parse_admin_role
from portal_auth.domain.admins.repositories import AdminRepository, AdminSessionRepository
from portal_auth.infrastructure.db.models import AdminSessionModel, AdminUserModel
from portal_auth.infrastructure.db.utils import as_utc, try_commit, utc_now
from portal_auth.shared.security_lock import LockoutPolicy


def _to_domain_admin(model: AdminUserModel) -> AdminAccount:
    return AdminAccount(
        id=model.id,
        email=model.email,
        name=model.name,
        role=parse_admin_role(model.role),
        password_hash=model.password_hash,
        totp_secret=model.totp_secret,
        totp_enabled=model.totp_enabled,
        failed_login_count=model.failed_login_count,
        lock_until=as_utc(model.lock_until),
        last_login_at=as_utc(model.last_login_at),
        is_active=model.is_active,
        created_at=as_utc(model.created_at),
    )


def _to_domain_session(model: AdminSessionModel) -> AdminSession:
    return AdminSession(
        id=model.id,
        admin_id=model.admin_id,
        token_hash=model.token_hash,
        status=AdminSessionStatus(model.status),
        created_at=as_utc(model.created_at),
        expires_at=as_utc(model.expires_at),
        last_used_at=as_utc(model.last_used_at),
        ip_address=model.ip_address,
        user_agent=model.user_agent,
    )


class AdminRepositoryImpl(AdminRepository):
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def count(self) -> int:
        result = await self._session.execute(select(func.count()).select_from(AdminUserModel))
        return int(result.scalar_one())

    async def add(self, admin: AdminAccount) -> AdminAccount:
        model = AdminUserModel(
            email=admin.email,
            name=admin.name,
            role=admin.role.value,
            password_hash=admin.password_hash,
            totp_secret=admin.totp_secret,
            totp_enabled=admin.totp_enabled,
            failed_login_count=admin.failed_login_count,
            lock_until=admin.lock_until,
            last_login_at=admin.last_login_at,
            is_active=admin.is_active,
            created_at=admin.created_at or utc_now(),
        )
        self._session.add(model)
        await try_commit(self._session)
        await self._session.refresh(model)
        return _to_domain_admin(model)

    async def get_by_id(self, admin_id: str) -> Optional[AdminAccount]:
        model = await self._session.get(AdminUserModel, admin_id, populate_existing=True)
        return _to_domain_admin(model) if model else None

    async def get_by_email(self, email: str) -> Optional[AdminAccount]:
        stmt = (
            select(AdminUserModel)
            .where(func.lower(AdminUserModel.email) == email.strip().lower())
            .execution_options(populate_existing=True)
        )
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        return _to_domain_admin(model) if model else None

    async def list(self) -> Sequence[AdminAccount]:
        stmt = select(AdminUserModel).order_by(AdminUserModel.created_at.desc(), AdminUserModel.email)
        result = await self._session.execute(stmt)
        return [_to_domain_admin(model) for model in result.scalars().all()]

    async def remove(self, admin_id: str) -> Optional[AdminAccount]:
        model = await self._session.get(AdminUserModel, admin_id)
        if model is None:
            return None
        removed = _to_domain_admin(model)
        await self._session.delete(model)
        await try_commit(self._session)
        return removed

    async def register_login_failure(
        self,
        admin_id: str,
        *,
        policy: LockoutPolicy,
        now: datetime,
    ) -> tuple[int, bool]:
        # Incremento no próprio UPDATE: requisições concorrentes nunca leem o mesmo valor
        stmt = (
            update(AdminUserModel)
            .where(AdminUserModel.id == admin_id)
            .values(failed_login_count=AdminUserModel.failed_login_count + 1)
            .returning(AdminUserModel.failed_login_count)
        )
        result = await self._session.execute(stmt)
        failed_count = result.scalar_one()

        lock_until = policy.lock_until_for(failed_count, now)
        locked = lock_until is not None
        if locked:
            await self._session.execute(
                update(AdminUserModel)
                .where(AdminUserModel.id == admin_id)
                .values(lock_until=lock_until)
            )
        await try_commit(self._session)
        return int(failed_count), locked

    async def clear_login_failures(self, admin_id: str) -> None:
        await self._session.execute(
            update(AdminUserModel)
            .where(AdminUserModel.id == admin_id)
            .values(failed_login_count=0, lock_until=None)
        )
        await try_commit(self._session)

    async def ensure_totp_secret(self, admin_id: str, secret: str) -> str:
        # Grava apenas se ainda não houver segredo; logins simultâneos convergem no mesmo valor
        await self._session.execute(
            update(AdminUserModel)
            .where(AdminUserModel.id == admin_id, AdminUserModel.totp_secret.is_(None))
            .values(totp_secret=secret)
        )
        await try_commit(self._session)
        result = await self._session.execute(
            select(AdminUserModel.totp_secret).where(AdminUserModel.id == admin_id)
        )
        return result.scalar_one()

    async def mark_two_factor_verified(self, admin_id: str, at: datetime) -> AdminAccount:
        await self._session.execute(
            update(AdminUserModel)
            .where(AdminUserModel.id == admin_id)
            .values(
                totp_enabled=True,
                last_login_at=at,
                failed_login_count=0,
                lock_until=None,
            )
        )
        await try_commit(self._session)
        admin = await self.get_by_id(admin_id)
        if admin is None:  # pragma: no cover - consistência garantida pelo serviço
            raise ValueError('Admin not found')
        return admin

    async def update_profile(
        self,
        admin_id: str,
        *,
        name: Optional[str] = None,
        role: Optional[AdminRole] = None,
        is_active: Optional[bool] = None,
    ) -> Optional[AdminAccount]:
        values: dict[str, object] = {}
        if name is not None:
            values['name'] = name or None
        if role is not None:
            values['role'] = role.value
        if is_active is not None:
            values['is_active'] = is_active

        if values:
            await self._session.execute(
                update(AdminUserModel).where(AdminUserModel.id == admin_id).values(**values)
            )
            await try_commit(self._session)
        return await self.get_by_id(admin_id)


class AdminSessionRepositoryImpl(AdminSessionRepository):
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def add(self, session_obj: AdminSession) -> AdminSession:
        model = AdminSessionModel(
            admin_id=session_obj.admin_id,
            token_hash=session_obj.token_hash,
            status=session_obj.status.value,
            ip_address=session_obj.ip_address,
            user_agent=session_obj.user_agent,
            created_at=session_obj.created_at or utc_now(),
            expires_at=session_obj.expires_at,
            last_used_at=session_obj.last_used_at,
        )
        self._session.add(model)
        await try_commit(self._session)
        await self._session.refresh(model)
        return _to_domain_session(model)

    async def get_by_token_hash(self, token_hash: str) -> Optional[AdminSession]:
        stmt = (
            select(AdminSessionModel)
            .where(AdminSessionModel.token_hash == token_hash)
            .execution_options(populate_existing=True)
        )
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        return _to_domain_session(model) if model else None

    async def activate(self, session_id: str, at: datetime) -> None:
        await self._session.execute(
            update(AdminSessionModel)
            .where(AdminSessionModel.id == session_id)
            .values(status=AdminSessionStatus.ACTIVE.value, last_used_at=at)
        )
        await try_commit(self._session)

    async def touch(self, session_id: str, at: datetime) -> None:
        await self._session.execute(
            update(AdminSessionModel)
            .where(AdminSessionModel.id == session_id)
            .values(last_used_at=at)
        )
        await try_commit(self._session)

    async def revoke(self, session_id: str) -> None:
        await self._session.execute(
            update(AdminSessionModel)
            .where(AdminSessionModel.id == session_id)
            .values(status=AdminSessionStatus.REVOKED.value)
        )
        await try_commit(self._session)

    async def revoke_all_for_admin(self, admin_id: str) -> int:
        result = await self._session.execute(
            update(AdminSessionModel)
            .where(
                AdminSessionModel.admin_id == admin_id,
                AdminSessionModel.status != AdminSessionStatus.REVOKED.value,
            )
            .values(status=AdminSessionStatus.REVOKED.value)
        )
        await try_commit(self._session)
        return int(result.rowcount or 0)
