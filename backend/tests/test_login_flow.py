# Overview: Pytest coverage for registration, password login, the attempt ledger, and lockout.

"""
Login Flow Tests

SECURITY TESTS:
- Unknown email and wrong password are indistinguishable (401 invalid_credentials)
- Every login request past input validation writes exactly one LoginAttempt
- Five counted failures lock the account; the correct password is then refused (423)
- Captcha fails closed
"""

from datetime import timedelta

import pytest

from tenantgate.extensions import db
from tenantgate.models import LoginAttempt, SecurityEvent, User
from tenantgate.services import login_throttle_service
from tenantgate.time_utils import utcnow

from conftest import CAPTCHA_PASS, PASSWORD, auth_headers, login


def _attempts(email):
    return db.session.query(LoginAttempt).filter_by(email=email).order_by(LoginAttempt.id).all()


class TestRegistration:

    def test_register_returns_tokens(self, client):
        resp = client.post('/api/auth/register', json={
            'email': 'New.User@Example.com ',
            'password': PASSWORD,
            'captcha_token': CAPTCHA_PASS,
        })
        assert resp.status_code == 200
        body = resp.get_json()
        assert body['user']['email'] == 'new.user@example.com'
        assert body['token_type'] == 'Bearer'
        assert 'password_hash' not in body['user']
        assert 'mfa_secret' not in body['user']

        cookies = resp.headers.getlist('Set-Cookie')
        session_cookie = next(c for c in cookies if c.startswith('session='))
        assert 'HttpOnly' in session_cookie
        assert 'SameSite=Lax' in session_cookie
        assert any(c.startswith('XSRF-TOKEN=') for c in cookies)

        me = client.get('/api/auth/me', headers=auth_headers(body['access_token']))
        assert me.status_code == 200
        assert me.get_json()['user']['email'] == 'new.user@example.com'

    def test_duplicate_email_is_case_insensitive(self, client, make_user):
        make_user('taken@example.com')
        resp = client.post('/api/auth/register', json={
            'email': 'TAKEN@example.com',
            'password': PASSWORD,
            'captcha_token': CAPTCHA_PASS,
        })
        assert resp.status_code == 409
        assert resp.get_json() == {'error': 'email_exists'}
        assert db.session.query(User).filter_by(email='taken@example.com').count() == 1
        assert _attempts('taken@example.com')[-1].outcome == 'email_exists'

    @pytest.mark.parametrize("password", ["short1!", "alllowercase1!", "ALLUPPERCASE1!", "NoDigits!!", "NoSpecial123"])
    def test_weak_password_rejected(self, client, password):
        resp = client.post('/api/auth/register', json={
            'email': 'weak@example.com',
            'password': password,
            'captcha_token': CAPTCHA_PASS,
        })
        assert resp.status_code == 400
        assert resp.get_json()['error'] == 'weak_password'
        assert db.session.query(User).count() == 0

    def test_invalid_email_rejected(self, client):
        resp = client.post('/api/auth/register', json={
            'email': 'not-an-email',
            'password': PASSWORD,
            'captcha_token': CAPTCHA_PASS,
        })
        assert resp.status_code == 400
        assert resp.get_json()['error'] == 'invalid_input'

    def test_captcha_failure_creates_nothing(self, client):
        resp = client.post('/api/auth/register', json={
            'email': 'bot@example.com',
            'password': PASSWORD,
            'captcha_token': 'forged',
        })
        assert resp.status_code == 400
        assert resp.get_json() == {'error': 'captcha_failed'}
        assert db.session.query(User).count() == 0
        assert [a.outcome for a in _attempts('bot@example.com')] == ['captcha_failed']


class TestPasswordLogin:

    def test_success(self, client, make_user):
        user = make_user('shopper@example.com')
        resp = login(client, 'Shopper@Example.com')
        assert resp.status_code == 200
        body = resp.get_json()
        assert body['user']['id'] == user.id
        assert body['access_token'] and body['refresh_token']

        attempts = _attempts('shopper@example.com')
        assert [(a.success, a.outcome) for a in attempts] == [(True, 'success')]

    def test_wrong_password(self, client, make_user):
        make_user('shopper@example.com')
        resp = login(client, 'shopper@example.com', password='WrongPass123!')
        assert resp.status_code == 401
        assert resp.get_json() == {'error': 'invalid_credentials'}

    def test_unknown_email_looks_like_wrong_password(self, client, make_user):
        make_user('shopper@example.com')
        unknown = login(client, 'nobody@example.com')
        wrong = login(client, 'shopper@example.com', password='WrongPass123!')

        assert unknown.status_code == wrong.status_code == 401
        assert unknown.get_json() == wrong.get_json()
        assert _attempts('nobody@example.com')[0].outcome == 'invalid_credentials'

    def test_captcha_failure(self, client, make_user):
        make_user('shopper@example.com')
        resp = login(client, 'shopper@example.com', captcha_token=None)
        assert resp.status_code == 400
        assert resp.get_json() == {'error': 'captcha_failed'}
        assert _attempts('shopper@example.com')[0].outcome == 'captcha_failed'

    @pytest.mark.parametrize("body", [{}, {'email': 'a@example.com'}, {'password': PASSWORD}])
    def test_missing_fields(self, client, body):
        body['captcha_token'] = CAPTCHA_PASS
        resp = client.post('/api/auth/login', json=body)
        assert resp.status_code == 400
        assert resp.get_json()['error'] == 'invalid_input'
        assert db.session.query(LoginAttempt).count() == 0

    def test_non_object_body(self, client):
        resp = client.post('/api/auth/login', json=["a", "b"])
        assert resp.status_code == 400
        assert resp.get_json()['error'] == 'invalid_input'


class TestLockout:

    def test_fifth_failure_locks_and_correct_password_is_refused(self, client, make_user):
        user = make_user('target@example.com')

        for _ in range(5):
            resp = login(client, 'target@example.com', password='WrongPass123!')
            assert resp.status_code == 401

        db.session.refresh(user)
        assert user.is_locked is True
        assert user.lockout_end is not None

        resp = login(client, 'target@example.com')
        assert resp.status_code == 423
        assert resp.get_json() == {'error': 'account_locked'}

        outcomes = [a.outcome for a in _attempts('target@example.com')]
        assert outcomes == ['invalid_credentials'] * 5 + ['locked']

        event = db.session.query(SecurityEvent).filter_by(event_type='ACCOUNT_LOCKED').one()
        assert event.user_id == user.id

    def test_fewer_failures_do_not_lock(self, client, make_user):
        make_user('target@example.com')
        for _ in range(4):
            login(client, 'target@example.com', password='WrongPass123!')

        assert login(client, 'target@example.com').status_code == 200

    def test_captcha_failures_do_not_count(self, client, make_user):
        make_user('target@example.com')
        for _ in range(6):
            login(client, 'target@example.com', password='WrongPass123!', captcha_token='forged')

        assert login(client, 'target@example.com').status_code == 200

    def test_lock_expires(self, client, make_user):
        user = make_user('target@example.com')
        for _ in range(5):
            login(client, 'target@example.com', password='WrongPass123!')

        user.lockout_end = utcnow() - timedelta(seconds=1)
        db.session.commit()

        resp = login(client, 'target@example.com')
        assert resp.status_code == 200
        db.session.refresh(user)
        assert user.is_locked is False
        assert user.lockout_end is None

    def test_lockout_status_endpoint(self, client, make_user):
        make_user('target@example.com')
        for _ in range(5):
            login(client, 'target@example.com', password='WrongPass123!')

        status = client.get('/api/auth/lockout-status/Target@Example.com').get_json()
        assert status['locked'] is True
        assert status['failed_attempts'] == 5
        assert status['max_attempts'] == 5
        assert 0 < status['seconds_until_unlock'] <= 15 * 60

    def test_lockout_status_for_unknown_email(self, client):
        status = client.get('/api/auth/lockout-status/ghost@example.com').get_json()
        assert status['locked'] is False
        assert status['seconds_until_unlock'] is None

    def test_count_recent_failures_ignores_old_attempts(self, make_user):
        make_user('target@example.com')
        for _ in range(3):
            login_throttle_service.record_attempt('target@example.com', False, 'invalid_credentials')
        stale = login_throttle_service.record_attempt('target@example.com', False, 'invalid_credentials')
        stale.created_at = utcnow() - timedelta(hours=1)
        db.session.commit()

        assert login_throttle_service.count_recent_failures('target@example.com') == 3


def test_register_login_lockout_recovery_walkthrough(client):
    resp = client.post('/api/auth/register', json={
        'email': 'alice@x.com', 'password': 'Passw0rd!', 'captcha_token': CAPTCHA_PASS,
    })
    assert resp.status_code == 200
    assert resp.get_json()['access_token']

    assert login(client, 'alice@x.com', password='Passw0rd!').status_code == 200

    statuses = [login(client, 'alice@x.com', password='Wr0ngPass!').status_code for _ in range(5)]
    assert statuses == [401] * 5
    assert login(client, 'alice@x.com', password='Passw0rd!').status_code == 423

    alice = db.session.query(User).filter_by(email='alice@x.com').one()
    alice.lockout_end = utcnow() - timedelta(seconds=1)
    db.session.commit()

    assert login(client, 'alice@x.com', password='Passw0rd!').status_code == 200
    db.session.refresh(alice)
    assert alice.is_locked is False
