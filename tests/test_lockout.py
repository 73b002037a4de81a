from http import HTTPStatus

from conftest import ROOT_EMAIL, ROOT_PASSWORD


def test_account_locks_after_threshold_and_rejects_correct_password(make_portal, clock):
    portal = make_portal(ADMIN_MAX_LOGIN_ATTEMPTS=3, ADMIN_LOCK_MINUTES=15)
    portal.bootstrap()

    statuses = [portal.login(ROOT_EMAIL, 'wrong-password').status_code for _ in range(3)]
    assert statuses == [HTTPStatus.UNAUTHORIZED] * 3

    stored = portal.db_user(ROOT_EMAIL)
    assert stored.failed_login_count == 3
    assert stored.lock_until is not None

    locked = portal.login(ROOT_EMAIL, ROOT_PASSWORD)
    assert locked.status_code == HTTPStatus.TOO_MANY_REQUESTS
    assert locked.json() == {'error': 'Account temporarily locked'}
    assert locked.headers['Retry-After'] == str(15 * 60)
    assert len(portal.audit_entries('login_locked')) == 1

    metadata = sorted(
        (entry.metadata_json['failed_count'], entry.metadata_json['locked'])
        for entry in portal.audit_entries('login_failed')
    )
    assert metadata == [(1, False), (2, False), (3, True)]


def test_lock_expires_and_success_clears_failures(make_portal, clock):
    portal = make_portal(ADMIN_MAX_LOGIN_ATTEMPTS=2, ADMIN_LOCK_MINUTES=10)
    portal.bootstrap()
    portal.login(ROOT_EMAIL, 'wrong-password')
    portal.login(ROOT_EMAIL, 'wrong-password')

    clock.advance(minutes=10, seconds=1)
    response = portal.login(ROOT_EMAIL, ROOT_PASSWORD)

    assert response.status_code == HTTPStatus.OK
    stored = portal.db_user(ROOT_EMAIL)
    assert stored.failed_login_count == 0
    assert stored.lock_until is None


def test_locked_account_does_not_count_more_failures(make_portal):
    portal = make_portal(ADMIN_MAX_LOGIN_ATTEMPTS=2)
    portal.bootstrap()
    portal.login(ROOT_EMAIL, 'wrong-password')
    portal.login(ROOT_EMAIL, 'wrong-password')

    response = portal.login(ROOT_EMAIL, 'wrong-password')

    assert response.status_code == HTTPStatus.TOO_MANY_REQUESTS
    assert portal.db_user(ROOT_EMAIL).failed_login_count == 2


def test_disabled_account_rejected_before_password_and_lockout(make_portal):
    portal = make_portal(ADMIN_MAX_LOGIN_ATTEMPTS=2)
    portal.bootstrap()
    root = portal.sign_in()
    target = portal.create_user(root.token, 'analyst@example.com')
    portal.client.patch(
        f"/api/admin/users/{target['id']}", json={'is_active': False}, headers=portal.auth(root.token)
    )

    for password in ('wrong-password', 'wrong-password', 'wrong-password', 'User-pass-123'):
        response = portal.login('analyst@example.com', password)
        assert response.status_code == HTTPStatus.FORBIDDEN
        assert response.json() == {'error': 'Account disabled'}

    stored = portal.db_user('analyst@example.com')
    assert stored.failed_login_count == 0
    assert stored.lock_until is None
    blocked = portal.audit_entries('login_blocked')
    assert len(blocked) == 4
    assert all(entry.metadata_json == {'reason': 'disabled'} for entry in blocked)


def test_unlock_endpoint_clears_lock(make_portal):
    portal = make_portal(ADMIN_MAX_LOGIN_ATTEMPTS=2)
    portal.bootstrap()
    root = portal.sign_in()
    target = portal.create_user(root.token, 'analyst@example.com')
    portal.login('analyst@example.com', 'wrong-password')
    portal.login('analyst@example.com', 'wrong-password')
    assert portal.login('analyst@example.com', 'User-pass-123').status_code == HTTPStatus.TOO_MANY_REQUESTS

    response = portal.client.post(f"/api/admin/users/{target['id']}/unlock", headers=portal.auth(root.token))

    assert response.status_code == HTTPStatus.OK
    assert portal.login('analyst@example.com', 'User-pass-123').status_code == HTTPStatus.OK
    assert len(portal.audit_entries('unlock_admin_user')) == 1
