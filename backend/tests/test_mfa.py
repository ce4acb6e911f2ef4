# Overview: Pytest coverage for TOTP enrollment and the MFA step of password login.

import time

import pyotp
import pytest

from tenantgate.extensions import db
from tenantgate.models import LoginAttempt
from tenantgate.services import mfa_service

from conftest import auth_headers, bearer_for, login


def _enable_mfa(client, user) -> str:
    headers = auth_headers(bearer_for(user))
    secret = client.post('/api/auth/mfa/enroll', headers=headers).get_json()['secret']
    resp = client.post('/api/auth/mfa/verify', headers=headers, json={'code': pyotp.TOTP(secret).now()})
    assert resp.status_code == 200
    return secret


def _stale_code(secret: str) -> str:
    # Three steps back is outside the one-step skew window
    return pyotp.TOTP(secret).at(int(time.time()) - 90)


class TestEnrollment:

    def test_enroll_returns_secret_and_uri(self, client, make_user):
        user = make_user('mfa@example.com')
        resp = client.post('/api/auth/mfa/enroll', headers=auth_headers(bearer_for(user)))
        assert resp.status_code == 200
        body = resp.get_json()
        assert len(body['secret']) == 32
        assert body['otpauth_uri'].startswith('otpauth://totp/')
        assert 'mfa%40example.com' in body['otpauth_uri'] or 'mfa@example.com' in body['otpauth_uri']

        db.session.refresh(user)
        assert user.mfa_enabled is False
        assert user.mfa_secret == body['secret']

    def test_verify_enables_mfa(self, client, make_user):
        user = make_user('mfa@example.com')
        _enable_mfa(client, user)
        db.session.refresh(user)
        assert user.mfa_enabled is True

    def test_verify_rejects_wrong_code(self, client, make_user):
        user = make_user('mfa@example.com')
        headers = auth_headers(bearer_for(user))
        secret = client.post('/api/auth/mfa/enroll', headers=headers).get_json()['secret']

        resp = client.post('/api/auth/mfa/verify', headers=headers, json={'code': _stale_code(secret)})
        assert resp.status_code == 400
        assert resp.get_json() == {'error': 'mfa_invalid'}
        db.session.refresh(user)
        assert user.mfa_enabled is False

    def test_verify_without_enrollment(self, client, make_user):
        user = make_user('mfa@example.com')
        resp = client.post('/api/auth/mfa/verify', headers=auth_headers(bearer_for(user)), json={'code': '123456'})
        assert resp.status_code == 400
        assert resp.get_json() == {'error': 'mfa_not_enrolled'}

    def test_enroll_twice_when_enabled(self, client, make_user):
        user = make_user('mfa@example.com')
        _enable_mfa(client, user)
        resp = client.post('/api/auth/mfa/enroll', headers=auth_headers(bearer_for(user)))
        assert resp.status_code == 409
        assert resp.get_json() == {'error': 'mfa_already_enabled'}

    def test_enroll_requires_auth(self, client):
        assert client.post('/api/auth/mfa/enroll').status_code == 401


class TestVerifyCode:

    @pytest.mark.parametrize("code", [None, "", "12345", "1234567", "abcdef", 123456])
    def test_malformed_codes(self, code):
        assert mfa_service.verify_code(pyotp.random_base32(), code) is False

    def test_no_secret(self):
        assert mfa_service.verify_code(None, "123456") is False

    def test_adjacent_step_accepted(self):
        secret = mfa_service.generate_secret()
        previous = pyotp.TOTP(secret).at(int(time.time()) - 30)
        assert mfa_service.verify_code(secret, previous) is True


class TestMfaLogin:

    def test_password_alone_is_not_enough(self, client, make_user):
        user = make_user('mfa@example.com')
        _enable_mfa(client, user)

        resp = login(client, 'mfa@example.com')
        assert resp.status_code == 400
        assert resp.get_json() == {'error': 'mfa_required'}
        assert 'access_token' not in resp.get_json()

    def test_valid_code_logs_in(self, client, make_user):
        user = make_user('mfa@example.com')
        secret = _enable_mfa(client, user)

        resp = login(client, 'mfa@example.com', mfa_code=pyotp.TOTP(secret).now())
        assert resp.status_code == 200
        assert resp.get_json()['user']['mfa_enabled'] is True

    def test_stale_code_rejected(self, client, make_user):
        user = make_user('mfa@example.com')
        secret = _enable_mfa(client, user)

        resp = login(client, 'mfa@example.com', mfa_code=_stale_code(secret))
        assert resp.status_code == 400
        assert resp.get_json() == {'error': 'mfa_invalid'}

    def test_wrong_password_hides_mfa_state(self, client, make_user):
        user = make_user('mfa@example.com')
        _enable_mfa(client, user)

        resp = login(client, 'mfa@example.com', password='WrongPass123!')
        assert resp.status_code == 401
        assert resp.get_json() == {'error': 'invalid_credentials'}

    def test_bad_codes_count_toward_lockout(self, client, make_user):
        user = make_user('mfa@example.com')
        secret = _enable_mfa(client, user)

        for _ in range(5):
            resp = login(client, 'mfa@example.com', mfa_code=_stale_code(secret))
            assert resp.status_code == 400

        resp = login(client, 'mfa@example.com', mfa_code=pyotp.TOTP(secret).now())
        assert resp.status_code == 423

    def test_missing_code_does_not_count(self, client, make_user):
        user = make_user('mfa@example.com')
        secret = _enable_mfa(client, user)

        for _ in range(6):
            login(client, 'mfa@example.com')

        resp = login(client, 'mfa@example.com', mfa_code=pyotp.TOTP(secret).now())
        assert resp.status_code == 200
        outcomes = [
            a.outcome for a in db.session.query(LoginAttempt).filter_by(email='mfa@example.com').all()
        ]
        assert outcomes.count('mfa_required') == 6
