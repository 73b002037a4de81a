from http import HTTPStatus

from conftest import ROOT_EMAIL, ROOT_PASSWORD


def _start_login(portal):
    portal.bootstrap()
    data = portal.login(ROOT_EMAIL, ROOT_PASSWORD).json()
    return data['session_token'], data['secret']


def test_round_trip_login_verify_and_me(portal):
    portal.bootstrap()
    login = portal.login(ROOT_EMAIL, ROOT_PASSWORD).json()

    verified = portal.verify(login['session_token'], portal.code_for(login['secret']))

    assert verified.status_code == HTTPStatus.OK
    body = verified.json()
    assert body['status'] == 'authenticated'
    assert body['session_token'] == login['session_token']
    assert body['user']['totp_enabled'] is True
    assert body['user']['last_login_at'] is not None

    me = portal.client.get('/api/admin/me', headers=portal.auth(login['session_token']))
    assert me.status_code == HTTPStatus.OK
    assert me.json()['user']['id'] == login['user']['id']
    assert me.json()['session_expires_at'] == body['session_expires_at']
    assert len(portal.audit_entries('2fa_verified')) == 1


def test_code_with_whitespace_is_accepted(portal):
    token, secret = _start_login(portal)
    code = portal.code_for(secret)

    response = portal.verify(token, f' {code[:3]} {code[3:]} ')

    assert response.status_code == HTTPStatus.OK


def test_code_from_adjacent_time_step_is_accepted(portal, clock):
    token, secret = _start_login(portal)
    code = portal.code_for(secret)

    clock.advance(seconds=30)
    response = portal.verify(token, code)

    assert response.status_code == HTTPStatus.OK


def test_pending_session_is_rejected_by_protected_routes(portal):
    token, _ = _start_login(portal)

    response = portal.client.get('/api/admin/me', headers=portal.auth(token))

    assert response.status_code == HTTPStatus.UNAUTHORIZED
    assert response.json() == {'error': 'Session expired or invalid'}


def test_wrong_code_keeps_session_pending_for_retry(portal):
    token, secret = _start_login(portal)
    good = portal.code_for(secret)
    bad = '000000' if good != '000000' else '111111'

    rejected = portal.verify(token, bad)
    assert rejected.status_code == HTTPStatus.UNAUTHORIZED
    assert rejected.json() == {'error': 'Invalid verification code'}
    assert len(portal.audit_entries('2fa_failed')) == 1

    accepted = portal.verify(token, good)
    assert accepted.status_code == HTTPStatus.OK


def test_verify_is_single_use(portal):
    token, secret = _start_login(portal)
    assert portal.verify(token, portal.code_for(secret)).status_code == HTTPStatus.OK

    replay = portal.verify(token, portal.code_for(secret))

    assert replay.status_code == HTTPStatus.UNAUTHORIZED
    assert replay.json() == {'error': 'Invalid session'}


def test_verify_requires_token_and_code(portal):
    token, _ = _start_login(portal)

    without_code = portal.client.post('/api/admin/2fa/verify', json={}, headers=portal.auth(token))
    without_token = portal.client.post('/api/admin/2fa/verify', json={'code': '123456'})

    assert without_code.status_code == without_token.status_code == HTTPStatus.BAD_REQUEST
    assert without_code.json() == {'error': 'Verification code required'}


def test_unknown_token_is_invalid_session(portal):
    portal.bootstrap()

    response = portal.verify('f' * 64, '123456')

    assert response.status_code == HTTPStatus.UNAUTHORIZED
    assert response.json() == {'error': 'Invalid session'}


def test_expired_pending_session_is_revoked(make_portal, clock):
    portal = make_portal(ADMIN_SESSION_TTL_HOURS=1)
    token, secret = _start_login(portal)

    clock.advance(hours=1, seconds=1)
    expired = portal.verify(token, portal.code_for(secret))
    again = portal.verify(token, portal.code_for(secret))

    assert expired.status_code == HTTPStatus.UNAUTHORIZED
    assert expired.json() == {'error': 'Session expired'}
    assert again.json() == {'error': 'Invalid session'}
    admin_id = portal.db_user(ROOT_EMAIL).id
    assert [session.status for session in portal.db_sessions(admin_id)] == ['Revoked']


def test_verify_clears_residual_failures(portal):
    token, secret = _start_login(portal)
    portal.login(ROOT_EMAIL, 'wrong-password')
    assert portal.db_user(ROOT_EMAIL).failed_login_count == 1

    portal.verify(token, portal.code_for(secret))

    assert portal.db_user(ROOT_EMAIL).failed_login_count == 0


def test_account_disabled_during_pending_login_cannot_verify(portal):
    portal.bootstrap()
    root = portal.sign_in()
    portal.create_user(root.token, 'analyst@example.com')
    login = portal.login('analyst@example.com', 'User-pass-123').json()
    portal.db_set_active('analyst@example.com', False)

    response = portal.verify(login['session_token'], portal.code_for(login['secret']))

    assert response.status_code == HTTPStatus.FORBIDDEN
    assert response.json() == {'error': 'Account disabled'}
    analyst = portal.db_user('analyst@example.com')
    assert analyst.totp_enabled is False
    assert analyst.last_login_at is None
    assert [session.status for session in portal.db_sessions(analyst.id)] == ['Revoked']
    assert [entry.user_id for entry in portal.audit_entries('2fa_verified')] == [root.user['id']]
    (failure,) = portal.audit_entries('2fa_failed')
    assert failure.user_id == analyst.id
    assert failure.metadata_json == {'reason': 'disabled'}
