# Overview: Pytest coverage for passkey registration and login ceremonies.

"""
WebAuthn Tests

Ceremonies are driven end to end through the API with a software
authenticator (ES256, "none" attestation), so py_webauthn does the real
verification.

SECURITY TESTS:
- A challenge can be used once
- Counter regression is rejected and audited
- Login options never reveal whether an account exists
- Locked accounts cannot sign in with a passkey
"""

from datetime import timedelta

from tenantgate.extensions import db
from tenantgate.models import LoginAttempt, SecurityEvent, WebAuthnChallenge, WebAuthnCredential
from tenantgate.services import maintenance_service, webauthn_service
from tenantgate.time_utils import utcnow

from conftest import auth_headers, bearer_for


def _register(client, user, authenticator):
    headers = auth_headers(bearer_for(user))
    options = client.post('/api/auth/webauthn/register/options', headers=headers, json={}).get_json()
    resp = client.post(
        '/api/auth/webauthn/register/verify',
        headers=headers,
        json={'credential': authenticator.create(options)},
    )
    return resp


def _login_options(client, email):
    return client.post('/api/auth/webauthn/login/options', json={'email': email}).get_json()


class TestRegistration:

    def test_register_passkey(self, client, make_user, authenticator):
        user = make_user('passkey@example.com')
        resp = _register(client, user, authenticator)

        assert resp.status_code == 200
        credential = resp.get_json()['credential']
        assert credential['credential_id'] == authenticator.credential_id_b64
        assert credential['sign_count'] == 0

        stored = db.session.query(WebAuthnCredential).filter_by(user_id=user.id).one()
        assert stored.transports == 'internal'

    def test_options_shape(self, client, make_user):
        user = make_user('passkey@example.com')
        options = client.post(
            '/api/auth/webauthn/register/options', headers=auth_headers(bearer_for(user)), json={}
        ).get_json()

        assert options['rp']['id'] == 'localhost'
        assert options['user']['name'] == 'passkey@example.com'
        assert options['authenticatorSelection']['userVerification'] == 'required'
        assert options['attestation'] == 'none'
        assert options.get('excludeCredentials', []) == []

    def test_existing_credentials_are_excluded(self, client, make_user, authenticator):
        user = make_user('passkey@example.com')
        _register(client, user, authenticator)

        options = client.post(
            '/api/auth/webauthn/register/options', headers=auth_headers(bearer_for(user)), json={}
        ).get_json()
        assert [c['id'] for c in options['excludeCredentials']] == [authenticator.credential_id_b64]

    def test_challenge_cannot_be_reused(self, client, make_user, authenticator):
        user = make_user('passkey@example.com')
        headers = auth_headers(bearer_for(user))
        options = client.post('/api/auth/webauthn/register/options', headers=headers, json={}).get_json()
        credential = authenticator.create(options)

        first = client.post('/api/auth/webauthn/register/verify', headers=headers, json={'credential': credential})
        second = client.post('/api/auth/webauthn/register/verify', headers=headers, json={'credential': credential})

        assert first.status_code == 200
        assert second.status_code == 400
        assert second.get_json() == {'error': 'webauthn_failed'}

    def test_expired_challenge_rejected(self, client, make_user, authenticator):
        user = make_user('passkey@example.com')
        headers = auth_headers(bearer_for(user))
        options = client.post('/api/auth/webauthn/register/options', headers=headers, json={}).get_json()

        challenge = db.session.query(WebAuthnChallenge).filter_by(user_id=user.id).one()
        challenge.expires_at = utcnow() - timedelta(seconds=1)
        db.session.commit()

        resp = client.post(
            '/api/auth/webauthn/register/verify',
            headers=headers,
            json={'credential': authenticator.create(options)},
        )
        assert resp.status_code == 400

    def test_wrong_origin_rejected(self, client, make_user, authenticator):
        user = make_user('passkey@example.com')
        authenticator.origin = 'https://evil.example'
        resp = _register(client, user, authenticator)
        assert resp.status_code == 400
        assert db.session.query(WebAuthnCredential).count() == 0

    def test_missing_credential(self, client, make_user):
        user = make_user('passkey@example.com')
        resp = client.post(
            '/api/auth/webauthn/register/verify', headers=auth_headers(bearer_for(user)), json={}
        )
        assert resp.status_code == 400
        assert resp.get_json()['error'] == 'invalid_payload'

    def test_garbage_credential(self, client, make_user):
        user = make_user('passkey@example.com')
        resp = client.post(
            '/api/auth/webauthn/register/verify',
            headers=auth_headers(bearer_for(user)),
            json={'credential': {'id': 'x', 'response': {'clientDataJSON': '!!!'}}},
        )
        assert resp.status_code == 400
        assert resp.get_json() == {'error': 'webauthn_failed'}

    def test_requires_auth(self, client):
        assert client.post('/api/auth/webauthn/register/options', json={}).status_code == 401


class TestAuthentication:

    def test_passkey_login(self, client, make_user, authenticator):
        user = make_user('passkey@example.com')
        _register(client, user, authenticator)

        options = _login_options(client, 'passkey@example.com')
        assert [c['id'] for c in options['allowCredentials']] == [authenticator.credential_id_b64]

        resp = client.post('/api/auth/webauthn/login/verify', json={
            'email': 'passkey@example.com',
            'credential': authenticator.get(options),
        })
        assert resp.status_code == 200
        body = resp.get_json()
        assert body['user']['id'] == user.id
        assert client.get('/api/auth/me', headers=auth_headers(body['access_token'])).status_code == 200

        stored = db.session.query(WebAuthnCredential).filter_by(user_id=user.id).one()
        db.session.refresh(stored)
        assert stored.sign_count == 1
        assert stored.last_used_at is not None

    def test_assertion_replay_rejected(self, client, make_user, authenticator):
        user = make_user('passkey@example.com')
        _register(client, user, authenticator)
        options = _login_options(client, 'passkey@example.com')
        assertion = authenticator.get(options)

        assert client.post('/api/auth/webauthn/login/verify', json={'credential': assertion}).status_code == 200
        replay = client.post('/api/auth/webauthn/login/verify', json={'credential': assertion})
        assert replay.status_code == 400
        assert replay.get_json() == {'error': 'webauthn_failed'}

    def test_counter_regression_rejected(self, client, make_user, authenticator):
        user = make_user('passkey@example.com')
        _register(client, user, authenticator)

        options = _login_options(client, 'passkey@example.com')
        assert client.post(
            '/api/auth/webauthn/login/verify', json={'credential': authenticator.get(options, sign_count=5)}
        ).status_code == 200

        # A clone replaying an older counter value
        options = _login_options(client, 'passkey@example.com')
        resp = client.post(
            '/api/auth/webauthn/login/verify', json={'credential': authenticator.get(options, sign_count=5)}
        )
        assert resp.status_code == 400

        event = db.session.query(SecurityEvent).filter_by(event_type='WEBAUTHN_COUNTER_REGRESSION').one()
        assert event.user_id == user.id
        stored = db.session.query(WebAuthnCredential).filter_by(user_id=user.id).one()
        db.session.refresh(stored)
        assert stored.sign_count == 5

    def test_concurrent_assertions_with_same_counter(self, client, make_user, authenticator, monkeypatch):
        user = make_user('passkey@example.com')
        _register(client, user, authenticator)
        stored_id = db.session.query(WebAuthnCredential).filter_by(user_id=user.id).one().id
        real_verify = webauthn_service.verify_authentication_response

        def verify_while_sibling_commits(**kwargs):
            verification = real_verify(**kwargs)
            # Another assertion carrying the same counter lands first
            db.session.query(WebAuthnCredential).filter_by(id=stored_id).update(
                {'sign_count': verification.new_sign_count}, synchronize_session=False
            )
            db.session.commit()
            return verification

        monkeypatch.setattr(webauthn_service, 'verify_authentication_response', verify_while_sibling_commits)
        options = _login_options(client, 'passkey@example.com')
        resp = client.post(
            '/api/auth/webauthn/login/verify', json={'credential': authenticator.get(options, sign_count=5)}
        )
        assert resp.status_code == 400
        assert resp.get_json() == {'error': 'webauthn_failed'}
        assert db.session.query(SecurityEvent).filter_by(event_type='WEBAUTHN_COUNTER_REGRESSION').count() == 1

    def test_zero_counter_authenticators_allowed(self, client, make_user, authenticator):
        user = make_user('passkey@example.com')
        _register(client, user, authenticator)

        for _ in range(2):
            options = _login_options(client, 'passkey@example.com')
            resp = client.post(
                '/api/auth/webauthn/login/verify', json={'credential': authenticator.get(options, sign_count=0)}
            )
            assert resp.status_code == 200

    def test_unknown_email_gets_empty_options(self, client, make_user, authenticator):
        user = make_user('passkey@example.com')
        _register(client, user, authenticator)
        known = _login_options(client, 'passkey@example.com')
        before = db.session.query(WebAuthnChallenge).count()

        unknown = _login_options(client, 'ghost@example.com')
        assert unknown.get('allowCredentials', []) == []
        assert set(unknown) - {'allowCredentials', 'challenge'} == set(known) - {'allowCredentials', 'challenge'}
        assert db.session.query(WebAuthnChallenge).count() == before

    def test_user_without_passkeys_gets_empty_options(self, client, make_user):
        make_user('plain@example.com')
        options = _login_options(client, 'plain@example.com')
        assert options.get('allowCredentials', []) == []
        assert db.session.query(WebAuthnChallenge).count() == 0

    def test_unknown_credential_rejected(self, client, make_user, authenticator):
        user = make_user('passkey@example.com')
        _register(client, user, authenticator)
        options = _login_options(client, 'passkey@example.com')

        stranger = type(authenticator)()
        resp = client.post('/api/auth/webauthn/login/verify', json={
            'email': 'passkey@example.com',
            'credential': stranger.get(options),
        })
        assert resp.status_code == 400
        attempt = db.session.query(LoginAttempt).filter_by(email='passkey@example.com').one()
        assert attempt.outcome == 'webauthn_failed'

    def test_locked_account_cannot_use_passkey(self, client, make_user, authenticator):
        user = make_user('passkey@example.com')
        _register(client, user, authenticator)
        user.is_locked = True
        user.lockout_end = utcnow() + timedelta(minutes=10)
        db.session.commit()

        options = _login_options(client, 'passkey@example.com')
        resp = client.post('/api/auth/webauthn/login/verify', json={'credential': authenticator.get(options)})
        assert resp.status_code == 423

    def test_rp_info(self, client, db_session):
        body = client.get('/api/webauthn/rp').get_json()
        assert body['rp_id'] == 'localhost'
        assert body['origin'] == 'https://localhost:3000'


class TestChallengeCleanup:

    def test_spent_and_expired_challenges_purged(self, client, make_user, authenticator):
        user = make_user('passkey@example.com')
        _register(client, user, authenticator)  # consumes one challenge
        client.post('/api/auth/webauthn/register/options', headers=auth_headers(bearer_for(user)), json={})
        pending = db.session.query(WebAuthnChallenge).filter(WebAuthnChallenge.consumed_at.is_(None)).one()

        result = maintenance_service.cleanup_tokens()
        assert result['webauthn_challenges_deleted'] == 1
        assert db.session.query(WebAuthnChallenge).one().id == pending.id
