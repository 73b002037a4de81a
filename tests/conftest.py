from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from http import HTTPStatus

import pyotp
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import select, update

from portal_auth.config.settings import Settings
from portal_auth.infrastructure.db.models import AdminAuditLogModel, AdminSessionModel, AdminUserModel
from portal_auth.interfaces.api.app import create_application

ROOT_EMAIL = 'root@example.com'
ROOT_PASSWORD = 'Root-pass-123'


class FrozenClock:
    """Relógio controlado pelos testes (expiração de sessão, bloqueio e passo do TOTP)."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


def make_settings(**overrides) -> Settings:
    values = {
        'DATABASE_URL': 'sqlite+aiosqlite://',
        'DB_CREATE_ALL': True,
        'DEPLOYMENT_ENVIRONMENT': 'development',
        'LOG_LEVEL': 'DEBUG',
        'RATE_LIMIT_BACKEND': 'memory',
        'ADMIN_IP_ALLOWLIST': '',
        'ALLOWLIST_DEBUG': False,
        'ROOT_AUTH_EMAIL': None,
        'ROOT_AUTH_PASSWORD': '',
        'ADMIN_MAX_IP_ATTEMPTS': 1000,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@dataclass
class SignedIn:
    token: str
    secret: str
    user: dict


class AdminPortal:
    """Atalhos HTTP para os fluxos de bootstrap, login e 2FA."""

    def __init__(self, client: TestClient, clock: FrozenClock) -> None:
        self.client = client
        self.clock = clock
        self.secrets: dict[str, str] = {}

    def bootstrap(self, email: str = ROOT_EMAIL, password: str = ROOT_PASSWORD, name: str = 'Root'):
        response = self.client.post('/api/admin/bootstrap', json={'email': email, 'password': password, 'name': name})
        assert response.status_code == HTTPStatus.CREATED, response.text
        return response.json()['user']

    def login(self, email: str, password: str, **kwargs):
        return self.client.post('/api/admin/login', json={'email': email, 'password': password}, **kwargs)

    def code_for(self, secret: str) -> str:
        return pyotp.TOTP(secret).at(self.clock())

    def verify(self, token: str, code: str):
        return self.client.post(
            '/api/admin/2fa/verify',
            json={'code': code},
            headers={'Authorization': f'Bearer {token}'},
        )

    def sign_in(self, email: str = ROOT_EMAIL, password: str = ROOT_PASSWORD) -> SignedIn:
        response = self.login(email, password)
        assert response.status_code == HTTPStatus.OK, response.text
        data = response.json()
        key = email.strip().lower()
        if data['status'] == '2fa_setup':
            self.secrets[key] = data['secret']
        secret = self.secrets[key]

        verified = self.verify(data['session_token'], self.code_for(secret))
        assert verified.status_code == HTTPStatus.OK, verified.text
        return SignedIn(token=data['session_token'], secret=secret, user=verified.json()['user'])

    @staticmethod
    def auth(token: str) -> dict[str, str]:
        return {'Authorization': f'Bearer {token}'}

    def create_user(self, token: str, email: str, password: str = 'User-pass-123', role: str | None = None):
        payload = {'email': email, 'password': password, 'name': email.split('@')[0]}
        if role is not None:
            payload['role'] = role
        response = self.client.post('/api/admin/users', json=payload, headers=self.auth(token))
        assert response.status_code == HTTPStatus.CREATED, response.text
        return response.json()['user']

    # -- Consultas diretas ao banco (mesmo event loop da aplicação) -------------

    def _run(self, fn):
        return self.client.portal.call(fn)

    def db_user(self, email: str) -> AdminUserModel:
        async def _query():
            async with self.client.app.state.session_factory() as session:
                result = await session.execute(select(AdminUserModel).where(AdminUserModel.email == email))
                return result.scalar_one()

        return self._run(_query)

    def db_set_active(self, email: str, active: bool) -> None:
        """Altera is_active direto no banco, sem a revogação feita pelo endpoint."""

        async def _update():
            async with self.client.app.state.session_factory() as session:
                await session.execute(
                    update(AdminUserModel).where(AdminUserModel.email == email).values(is_active=active)
                )
                await session.commit()

        self._run(_update)

    def db_sessions(self, admin_id: str) -> list[AdminSessionModel]:
        async def _query():
            async with self.client.app.state.session_factory() as session:
                result = await session.execute(
                    select(AdminSessionModel).where(AdminSessionModel.admin_id == admin_id)
                )
                return list(result.scalars().all())

        return self._run(_query)

    def audit_entries(self, action: str | None = None) -> list[AdminAuditLogModel]:
        async def _query():
            async with self.client.app.state.session_factory() as session:
                stmt = select(AdminAuditLogModel)
                if action is not None:
                    stmt = stmt.where(AdminAuditLogModel.action == action)
                result = await session.execute(stmt)
                return list(result.scalars().all())

        return self._run(_query)


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc))


@pytest.fixture
def make_client(clock):
    opened: list[TestClient] = []

    def _make(**overrides) -> TestClient:
        app = create_application(make_settings(**overrides), clock=clock)
        client = TestClient(app)
        client.__enter__()
        opened.append(client)
        return client

    yield _make

    for client in opened:
        client.__exit__(None, None, None)


@pytest.fixture
def client(make_client) -> TestClient:
    return make_client()


@pytest.fixture
def portal(client, clock) -> AdminPortal:
    return AdminPortal(client, clock)


@pytest.fixture
def make_portal(make_client, clock):
    def _make(**overrides) -> AdminPortal:
        return AdminPortal(make_client(**overrides), clock)

    return _make
