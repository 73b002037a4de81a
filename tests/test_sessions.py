from http import HTTPStatus

from conftest import ROOT_EMAIL


def test_protected_route_requires_token(client):
    response = client.get('/api/admin/me')

    assert response.status_code == HTTPStatus.UNAUTHORIZED
    assert response.json() == {'error': 'Authentication required'}


def test_malformed_authorization_header_is_rejected(portal):
    portal.bootstrap()
    signed = portal.sign_in()

    response = portal.client.get('/api/admin/me', headers={'Authorization': f'Token {signed.token}'})

    assert response.status_code == HTTPStatus.UNAUTHORIZED
    assert response.json() == {'error': 'Authentication required'}


def test_expired_session_is_revoked_and_stays_rejected(make_portal, clock):
    portal = make_portal(ADMIN_SESSION_TTL_HOURS=2)
    portal.bootstrap()
    signed = portal.sign_in()

    clock.advance(hours=1, minutes=59)
    assert portal.client.get('/api/admin/me', headers=portal.auth(signed.token)).status_code == HTTPStatus.OK

    clock.advance(minutes=1)
    first = portal.client.get('/api/admin/me', headers=portal.auth(signed.token))
    second = portal.client.get('/api/admin/me', headers=portal.auth(signed.token))

    assert first.status_code == HTTPStatus.UNAUTHORIZED
    assert first.json() == {'error': 'Session expired'}
    assert second.status_code == HTTPStatus.UNAUTHORIZED
    assert second.json() == {'error': 'Session expired or invalid'}
    assert len(portal.audit_entries('session_expired')) == 1

    admin_id = portal.db_user(ROOT_EMAIL).id
    assert {session.status for session in portal.db_sessions(admin_id)} == {'Revoked'}


def test_authenticated_request_touches_session(portal, clock):
    portal.bootstrap()
    signed = portal.sign_in()

    clock.advance(minutes=5)
    portal.client.get('/api/admin/me', headers=portal.auth(signed.token))

    admin_id = portal.db_user(ROOT_EMAIL).id
    (session,) = portal.db_sessions(admin_id)
    assert session.status == 'Active'
    assert session.last_used_at.replace(tzinfo=None) == clock().replace(tzinfo=None)


def test_logout_revokes_session(portal):
    portal.bootstrap()
    signed = portal.sign_in()

    response = portal.client.post('/api/admin/logout', headers=portal.auth(signed.token))

    assert response.status_code == HTTPStatus.NO_CONTENT
    after = portal.client.get('/api/admin/me', headers=portal.auth(signed.token))
    assert after.status_code == HTTPStatus.UNAUTHORIZED
    assert len(portal.audit_entries('logout')) == 1


def test_logout_without_session_requires_authentication(client):
    response = client.post('/api/admin/logout')

    assert response.status_code == HTTPStatus.UNAUTHORIZED


def test_other_sessions_survive_logout(portal):
    portal.bootstrap()
    first = portal.sign_in()
    second = portal.sign_in()

    portal.client.post('/api/admin/logout', headers=portal.auth(first.token))

    assert portal.client.get('/api/admin/me', headers=portal.auth(second.token)).status_code == HTTPStatus.OK


def test_deactivated_account_with_valid_session_is_forbidden(portal):
    portal.bootstrap()
    root = portal.sign_in()
    portal.create_user(root.token, 'analyst@example.com', role='SuperAdmin')
    analyst = portal.sign_in('analyst@example.com', 'User-pass-123')

    portal.db_set_active('analyst@example.com', False)

    response = portal.client.get('/api/admin/me', headers=portal.auth(analyst.token))

    assert response.status_code == HTTPStatus.FORBIDDEN
    assert response.json() == {'error': 'User account disabled'}


def test_options_preflight_skips_authentication(make_client):
    client = make_client(CORS_ORIGIN='https://portal.example.com')

    response = client.options(
        '/api/admin/me',
        headers={
            'Origin': 'https://portal.example.com',
            'Access-Control-Request-Method': 'GET',
            'Access-Control-Request-Headers': 'Authorization',
        },
    )

    assert response.status_code == HTTPStatus.OK
    assert response.headers['access-control-allow-origin'] == 'https://portal.example.com'
