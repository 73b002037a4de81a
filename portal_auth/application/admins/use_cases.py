# caminho: portal_auth/application/admins/use_cases.py
# Funções:
# - AdminAuthService: bootstrap, login (senha), verificação do 2FA, autenticação por sessão e logout
# - AdminUserService: gestão de contas admin (apenas SuperAdmin)
# - AdminContext: identidade resolvida para a requisição autenticada

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from pwdlib import PasswordHash

from portal_auth.application.admins.dto import (
    AdminAuthenticatedResponse,
    AdminBootstrapRequest,
    AdminCreateRequest,
    AdminLoginRequest,
    AdminLoginResponse,
    AdminTwoFactorRequest,
    AdminUpdateRequest,
    AdminUserEnvelope,
    AdminUserListResponse,
    AdminUserOut,
)
from portal_auth.config.settings import Settings
from portal_auth.domain.admins.entities import AdminAccount, AdminSession
from portal_auth.domain.admins.enums import (
    ADMIN_ROLE_BOOTSTRAP,
    ADMIN_ROLE_DEFAULT,
    AdminRole,
    AdminSessionStatus,
    can_manage_admin_users,
    parse_admin_role,
)
from portal_auth.domain.admins.repositories import AdminRepository, AdminSessionRepository
from portal_auth.infrastructure.db.utils import DuplicateRecordError
from portal_auth.infrastructure.security.session_tokens import generate_session_token, hash_session_token
from portal_auth.infrastructure.security.totp import TotpVerifier
from portal_auth.shared.audit import AuditAction, AuditEvent, AuditLogger
from portal_auth.shared.client_ip import ClientInfo
from portal_auth.shared.errors import (
    AccountLocked,
    AuthenticationFailed,
    AuthorizationFailed,
    RateLimited,
    ResourceConflict,
    ResourceNotFound,
    ValidationFailed,
)
from portal_auth.shared.logging import log_info, log_warning
from portal_auth.shared.rate_limit import IpRateLimiter, NullIpRateLimiter
from portal_auth.shared.security_lock import LockoutPolicy

Clock = Callable[[], datetime]


@dataclass(slots=True)
class AdminAdapters:
    admins: AdminRepository
    sessions: AdminSessionRepository
    audit: AuditLogger


@dataclass(slots=True, frozen=True)
class AdminContext:
    admin: AdminAccount
    session_id: str
    session_expires_at: datetime


def normalize_email(value: str) -> str:
    return value.strip().lower()


def to_user_out(admin: AdminAccount) -> AdminUserOut:
    return AdminUserOut(
        id=admin.id,
        email=admin.email,
        name=admin.name,
        role=admin.role,
        is_active=admin.is_active,
        totp_enabled=admin.totp_enabled,
        last_login_at=admin.last_login_at,
        created_at=admin.created_at,
    )


def _require_credentials(email: Optional[str], password: Optional[str]) -> tuple[str, str]:
    email_clean = normalize_email(email or '')
    if not email_clean or not password:
        raise ValidationFailed('Email and password are required')
    return email_clean, password


class _AdminServiceBase:
    def __init__(
        self,
        adapters: AdminAdapters,
        settings: Settings,
        password_hasher: PasswordHash,
        clock: Clock,
    ) -> None:
        self._admins = adapters.admins
        self._sessions = adapters.sessions
        self._audit = adapters.audit
        self._settings = settings
        self._hasher = password_hasher
        self._clock = clock

    async def _record(
        self,
        action: AuditAction,
        success: bool,
        client: ClientInfo,
        *,
        user_id: str | None = None,
        email: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        await self._audit.record(
            AuditEvent.from_client(action, success, client, user_id=user_id, email=email, metadata=metadata)
        )

    def _hash_new_password(self, password: str) -> str:
        if len(password) < self._settings.ADMIN_PASSWORD_MIN_LENGTH:
            raise ValidationFailed(
                f'Password must be at least {self._settings.ADMIN_PASSWORD_MIN_LENGTH} characters'
            )
        return self._hasher.hash(password)


class AdminAuthService(_AdminServiceBase):
    def __init__(
        self,
        adapters: AdminAdapters,
        settings: Settings,
        password_hasher: PasswordHash,
        totp: TotpVerifier,
        clock: Clock,
        ip_rate_limiter: IpRateLimiter | None = None,
    ) -> None:
        super().__init__(adapters, settings, password_hasher, clock)
        self._totp = totp
        self._ip_limiter = ip_rate_limiter or NullIpRateLimiter()
        self._lockout = LockoutPolicy(settings.ADMIN_MAX_LOGIN_ATTEMPTS, settings.lock_duration)

    # -- Bootstrap -------------------------------------------------------------

    async def bootstrap(self, payload: AdminBootstrapRequest, client: ClientInfo) -> AdminUserEnvelope:
        email, password = _require_credentials(payload.email, payload.password)

        if await self._admins.count() > 0:
            await self._record(AuditAction.BOOTSTRAP, False, client, email=email, metadata={'reason': 'already_completed'})
            log_warning('ADMIN_BOOTSTRAP_REJECTED', {'email': email})
            raise AuthorizationFailed('Bootstrap already completed')

        try:
            admin = await self.create_first_admin(email, password, payload.name, created_at=self._clock())
        except ValidationFailed:
            await self._record(AuditAction.BOOTSTRAP, False, client, email=email, metadata={'reason': 'password_policy'})
            raise
        await self._record(AuditAction.BOOTSTRAP, True, client, user_id=admin.id, email=admin.email)
        log_info('ADMIN_BOOTSTRAP_CREATED', {'admin_id': admin.id})
        return AdminUserEnvelope(user=to_user_out(admin))

    async def create_first_admin(
        self,
        email: str,
        password: str,
        name: str | None,
        *,
        created_at: datetime | None = None,
    ) -> AdminAccount:
        admin = AdminAccount(
            email=normalize_email(email),
            password_hash=self._hash_new_password(password),
            role=ADMIN_ROLE_BOOTSTRAP,
            name=(name or '').strip() or None,
            created_at=created_at,
        )
        try:
            return await self._admins.add(admin)
        except DuplicateRecordError as exc:
            raise ResourceConflict('User already exists') from exc

    # -- Login (senha) ---------------------------------------------------------

    async def login(self, payload: AdminLoginRequest, client: ClientInfo) -> AdminLoginResponse:
        email, password = _require_credentials(payload.email, payload.password)

        if client.ip:
            ip_state = await self._ip_limiter.record_attempt(client.ip)
            if ip_state.limited:
                await self._record(AuditAction.LOGIN_RATE_LIMITED, False, client, email=email)
                log_warning('ADMIN_LOGIN_RATE_LIMITED', {'ip': client.ip})
                raise RateLimited('Too many login attempts')

        admin = await self._admins.get_by_email(email)
        if admin is None:
            await self._record(AuditAction.LOGIN_FAILED, False, client, email=email)
            log_warning('ADMIN_INVALID_CREDENTIALS', {'email': email, 'ip': client.ip})
            raise AuthenticationFailed('Invalid credentials')

        if not admin.is_active:
            await self._record(
                AuditAction.LOGIN_BLOCKED, False, client,
                user_id=admin.id, email=admin.email, metadata={'reason': 'disabled'},
            )
            log_warning('ADMIN_LOGIN_DISABLED', {'admin_id': admin.id})
            raise AuthorizationFailed('Account disabled')

        now = self._clock()
        if self._lockout.is_locked(admin.lock_until, now):
            await self._record(
                AuditAction.LOGIN_LOCKED, False, client,
                user_id=admin.id, email=admin.email, metadata={'lock_until': admin.lock_until.isoformat()},
            )
            log_warning('ADMIN_LOGIN_BLOCKED_ATTEMPT', {'admin_id': admin.id, 'ip': client.ip})
            raise AccountLocked(
                'Account temporarily locked',
                retry_after_seconds=self._lockout.retry_after_seconds(admin.lock_until, now),
            )

        if not self._hasher.verify(password, admin.password_hash):
            await self._register_failure(admin, client, now)
            raise AuthenticationFailed('Invalid credentials')

        if admin.failed_login_count > 0 or admin.lock_until is not None:
            await self._admins.clear_login_failures(admin.id)

        secret = admin.totp_secret
        needs_setup = not admin.totp_enabled or not secret
        if not secret:
            secret = await self._admins.ensure_totp_secret(admin.id, self._totp.generate_secret())

        token, session = await self._open_session(admin, client, now)
        action = AuditAction.LOGIN_2FA_SETUP_REQUIRED if needs_setup else AuditAction.LOGIN_2FA_REQUIRED
        await self._record(action, True, client, user_id=admin.id, email=admin.email)
        log_info('ADMIN_LOGIN_PASSWORD_OK', {'admin_id': admin.id, 'session_id': session.id, 'setup': needs_setup})

        if needs_setup:
            return AdminLoginResponse(
                status='2fa_setup',
                session_token=token,
                session_expires_at=session.expires_at,
                user=to_user_out(admin),
                otpauth_url=self._totp.provisioning_uri(secret, admin.email),
                secret=secret,
            )
        return AdminLoginResponse(
            status='2fa_required',
            session_token=token,
            session_expires_at=session.expires_at,
            user=to_user_out(admin),
        )

    async def _register_failure(self, admin: AdminAccount, client: ClientInfo, now: datetime) -> None:
        failed_count, locked = await self._admins.register_login_failure(
            admin.id,
            policy=self._lockout,
            now=now,
        )
        await self._record(
            AuditAction.LOGIN_FAILED, False, client,
            user_id=admin.id, email=admin.email, metadata={'failed_count': failed_count, 'locked': locked},
        )
        if locked:
            log_warning('ADMIN_LOGIN_LOCKED', {'admin_id': admin.id, 'failed_count': failed_count, 'ip': client.ip})
        else:
            log_warning('ADMIN_INVALID_CREDENTIALS', {'admin_id': admin.id, 'failed_count': failed_count})

    async def _open_session(
        self, admin: AdminAccount, client: ClientInfo, now: datetime
    ) -> tuple[str, AdminSession]:
        token = generate_session_token()
        session = await self._sessions.add(
            AdminSession(
                admin_id=admin.id,
                token_hash=hash_session_token(token),
                status=AdminSessionStatus.PENDING_2FA,
                created_at=now,
                expires_at=now + self._settings.session_ttl,
                ip_address=client.ip,
                user_agent=client.user_agent,
            )
        )
        return token, session

    # -- Verificação do 2FA ----------------------------------------------------

    async def verify_two_factor(
        self,
        token: str | None,
        payload: AdminTwoFactorRequest,
        client: ClientInfo,
    ) -> AdminAuthenticatedResponse:
        code = (payload.code or '').strip()
        if not token or not code:
            raise ValidationFailed('Verification code required')

        session = await self._sessions.get_by_token_hash(hash_session_token(token))
        if session is None or session.status != AdminSessionStatus.PENDING_2FA:
            await self._record(AuditAction.TWO_FACTOR_FAILED, False, client, metadata={'reason': 'invalid_session'})
            raise AuthenticationFailed('Invalid session')

        now = self._clock()
        if session.is_expired(now):
            await self._sessions.revoke(session.id)
            await self._record(
                AuditAction.TWO_FACTOR_FAILED, False, client,
                user_id=session.admin_id, metadata={'reason': 'session_expired'},
            )
            raise AuthenticationFailed('Session expired')

        admin = await self._admins.get_by_id(session.admin_id)
        if admin is None:
            raise AuthenticationFailed('Invalid session')
        if not admin.is_active:
            await self._sessions.revoke(session.id)
            await self._record(
                AuditAction.TWO_FACTOR_FAILED, False, client,
                user_id=admin.id, email=admin.email, metadata={'reason': 'disabled'},
            )
            log_warning('ADMIN_2FA_DISABLED_ACCOUNT', {'admin_id': admin.id, 'session_id': session.id})
            raise AuthorizationFailed('Account disabled')
        if not admin.totp_secret:
            raise ValidationFailed('2FA is not configured')

        if not self._totp.check(code, admin.totp_secret, for_time=now):
            await self._record(AuditAction.TWO_FACTOR_FAILED, False, client, user_id=admin.id, email=admin.email)
            log_warning('ADMIN_2FA_INVALID_CODE', {'admin_id': admin.id, 'session_id': session.id})
            raise AuthenticationFailed('Invalid verification code')

        admin = await self._admins.mark_two_factor_verified(admin.id, now)
        await self._sessions.activate(session.id, now)
        await self._record(AuditAction.TWO_FACTOR_VERIFIED, True, client, user_id=admin.id, email=admin.email)
        log_info('ADMIN_2FA_VERIFIED', {'admin_id': admin.id, 'session_id': session.id})
        return AdminAuthenticatedResponse(
            session_token=token,
            session_expires_at=session.expires_at,
            user=to_user_out(admin),
        )

    # -- Autenticação por requisição -------------------------------------------

    async def authenticate(self, token: str | None, client: ClientInfo) -> AdminContext:
        if not token:
            raise AuthenticationFailed('Authentication required')

        session = await self._sessions.get_by_token_hash(hash_session_token(token))
        if session is None or session.status != AdminSessionStatus.ACTIVE:
            raise AuthenticationFailed('Session expired or invalid')

        now = self._clock()
        if session.is_expired(now):
            await self._sessions.revoke(session.id)
            await self._record(AuditAction.SESSION_EXPIRED, False, client, user_id=session.admin_id)
            log_info('ADMIN_SESSION_EXPIRED', {'session_id': session.id})
            raise AuthenticationFailed('Session expired')

        admin = await self._admins.get_by_id(session.admin_id)
        if admin is None:
            raise AuthenticationFailed('Session expired or invalid')
        if not admin.is_active:
            raise AuthorizationFailed('User account disabled')

        try:
            await self._sessions.touch(session.id, now)
        except Exception as exc:
            # last_used_at é informativo; a requisição segue mesmo se a gravação falhar
            log_warning('ADMIN_SESSION_TOUCH_FAILED', {'session_id': session.id, 'error': type(exc).__name__})

        return AdminContext(admin=admin, session_id=session.id, session_expires_at=session.expires_at)

    async def logout(self, context: AdminContext | None, client: ClientInfo) -> None:
        if context is None:
            return
        await self._sessions.revoke(context.session_id)
        await self._record(AuditAction.LOGOUT, True, client, user_id=context.admin.id, email=context.admin.email)
        log_info('ADMIN_LOGOUT', {'admin_id': context.admin.id, 'session_id': context.session_id})


class AdminUserService(_AdminServiceBase):
    """Gestão de contas de administrador; toda operação exige papel SuperAdmin."""

    def _require_manager(self, context: AdminContext) -> AdminAccount:
        acting = context.admin
        if not can_manage_admin_users(acting.role):
            log_warning('ADMIN_USERS_FORBIDDEN', {'admin_id': acting.id, 'role': acting.role.value})
            raise AuthorizationFailed('Insufficient permissions')
        return acting

    @staticmethod
    def _parse_role(value: str | None, default: AdminRole | None) -> AdminRole | None:
        if value is None or not value.strip():
            return default
        try:
            return parse_admin_role(value)
        except ValueError as exc:
            raise ValidationFailed('Invalid role') from exc

    async def create_user(
        self, context: AdminContext, payload: AdminCreateRequest, client: ClientInfo
    ) -> AdminUserEnvelope:
        acting = self._require_manager(context)
        email, password = _require_credentials(payload.email, payload.password)
        role = self._parse_role(payload.role, ADMIN_ROLE_DEFAULT)

        admin = AdminAccount(
            email=email,
            password_hash=self._hash_new_password(password),
            role=role,
            name=(payload.name or '').strip() or None,
            created_at=self._clock(),
        )
        try:
            created = await self._admins.add(admin)
        except DuplicateRecordError as exc:
            await self._record(
                AuditAction.CREATE_ADMIN_USER, False, client,
                user_id=acting.id, email=acting.email, metadata={'reason': 'email_in_use'},
            )
            raise ResourceConflict('User already exists') from exc

        await self._record(
            AuditAction.CREATE_ADMIN_USER, True, client,
            user_id=acting.id, email=acting.email,
            metadata={'created_user_id': created.id, 'role': created.role.value},
        )
        log_info('ADMIN_CREATED', {'admin_id': created.id, 'acting_admin_id': acting.id})
        return AdminUserEnvelope(user=to_user_out(created))

    async def list_users(self, context: AdminContext) -> AdminUserListResponse:
        self._require_manager(context)
        admins = await self._admins.list()
        return AdminUserListResponse(users=[to_user_out(admin) for admin in admins])

    async def update_user(
        self, context: AdminContext, admin_id: str, payload: AdminUpdateRequest, client: ClientInfo
    ) -> AdminUserEnvelope:
        acting = self._require_manager(context)
        role = self._parse_role(payload.role, None)

        if admin_id == acting.id:
            if payload.is_active is False:
                raise ValidationFailed('You cannot deactivate your own account.')
            if role is not None and not can_manage_admin_users(role):
                raise ValidationFailed('You cannot remove your own SuperAdmin role.')

        target = await self._admins.get_by_id(admin_id)
        if target is None:
            raise ResourceNotFound('User not found')

        updated = await self._admins.update_profile(
            admin_id,
            name=payload.name.strip() if payload.name is not None else None,
            role=role,
            is_active=payload.is_active,
        )
        if updated is None:
            raise ResourceNotFound('User not found')

        revoked = 0
        if target.is_active and not updated.is_active:
            revoked = await self._sessions.revoke_all_for_admin(admin_id)

        changes = payload.model_dump(exclude_none=True)
        await self._record(
            AuditAction.UPDATE_ADMIN_USER, True, client,
            user_id=acting.id, email=acting.email,
            metadata={'updated_user_id': admin_id, 'changes': sorted(changes), 'revoked_sessions': revoked},
        )
        log_info('ADMIN_UPDATED', {'admin_id': admin_id, 'acting_admin_id': acting.id})
        return AdminUserEnvelope(user=to_user_out(updated))

    async def unlock_user(self, context: AdminContext, admin_id: str, client: ClientInfo) -> AdminUserEnvelope:
        acting = self._require_manager(context)
        target = await self._admins.get_by_id(admin_id)
        if target is None:
            raise ResourceNotFound('User not found')

        await self._admins.clear_login_failures(admin_id)
        await self._record(
            AuditAction.UNLOCK_ADMIN_USER, True, client,
            user_id=acting.id, email=acting.email,
            metadata={'unlocked_user_id': admin_id, 'failed_count': target.failed_login_count},
        )
        log_info('ADMIN_UNLOCKED', {'admin_id': admin_id, 'acting_admin_id': acting.id})
        unlocked = await self._admins.get_by_id(admin_id)
        return AdminUserEnvelope(user=to_user_out(unlocked or target))

    async def delete_user(self, context: AdminContext, admin_id: str, client: ClientInfo) -> None:
        acting = self._require_manager(context)
        if admin_id == acting.id:
            raise ValidationFailed('You cannot delete your own account.')

        deleted = await self._admins.remove(admin_id)
        if deleted is None:
            raise ResourceNotFound('User not found')

        await self._record(
            AuditAction.DELETE_ADMIN_USER, True, client,
            user_id=acting.id, email=acting.email,
            metadata={'deleted_user_id': deleted.id, 'deleted_email': deleted.email},
        )
        log_info('ADMIN_DELETED', {'admin_id': admin_id, 'acting_admin_id': acting.id})
