import asyncio
from datetime import timedelta

from conftest import ROOT_EMAIL

from portal_auth.infrastructure.db.utils import as_utc
from portal_auth.infrastructure.repositories.admin_repository import AdminRepositoryImpl
from portal_auth.shared.security_lock import LockoutPolicy


def _file_portal(make_portal, tmp_path):
    # banco em arquivo: cada sessão usa sua própria conexão
    return make_portal(DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path / 'portal.db'}")


def test_concurrent_failures_are_each_counted_once(make_portal, tmp_path, clock):
    portal = _file_portal(make_portal, tmp_path)
    admin_id = portal.bootstrap()['id']
    policy = LockoutPolicy(max_attempts=5, lock_duration=timedelta(minutes=15))
    session_factory = portal.client.app.state.session_factory

    async def _fail_once():
        async with session_factory() as session:
            return await AdminRepositoryImpl(session).register_login_failure(admin_id, policy=policy, now=clock())

    async def _fail_concurrently():
        return await asyncio.gather(*(_fail_once() for _ in range(5)))

    results = portal.client.portal.call(_fail_concurrently)

    assert sorted(results) == [(1, False), (2, False), (3, False), (4, False), (5, True)]
    stored = portal.db_user(ROOT_EMAIL)
    assert stored.failed_login_count == 5
    assert as_utc(stored.lock_until) == clock() + timedelta(minutes=15)


def test_concurrent_secret_provisioning_converges(make_portal, tmp_path):
    portal = _file_portal(make_portal, tmp_path)
    admin_id = portal.bootstrap()['id']
    session_factory = portal.client.app.state.session_factory

    async def _ensure(secret):
        async with session_factory() as session:
            return await AdminRepositoryImpl(session).ensure_totp_secret(admin_id, secret)

    async def _ensure_concurrently():
        return await asyncio.gather(_ensure('JBSWY3DPEHPK3PXP'), _ensure('KRSXG5CTMVRXEZLU'))

    first, second = portal.client.portal.call(_ensure_concurrently)

    assert first == second
    assert first in {'JBSWY3DPEHPK3PXP', 'KRSXG5CTMVRXEZLU'}
    assert portal.db_user(ROOT_EMAIL).totp_secret == first


def test_failures_below_threshold_do_not_lock(portal, clock):
    admin_id = portal.bootstrap()['id']
    policy = LockoutPolicy(max_attempts=3, lock_duration=timedelta(minutes=15))

    async def _fail_twice():
        async with portal.client.app.state.session_factory() as session:
            admins = AdminRepositoryImpl(session)
            return [await admins.register_login_failure(admin_id, policy=policy, now=clock()) for _ in range(2)]

    assert portal.client.portal.call(_fail_twice) == [(1, False), (2, False)]
    assert portal.db_user(ROOT_EMAIL).lock_until is None
