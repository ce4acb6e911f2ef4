"""
Pytest fixtures for tenantgate backend tests.

Provides the test app, per-test database reset, clients with and without a
cookie jar, user/store factories, and a software WebAuthn authenticator.
"""

import hashlib
import json
import os
import struct

import cbor2
import pytest
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec
from webauthn.helpers import bytes_to_base64url

from tenantgate import create_app
from tenantgate.extensions import db
from tenantgate.models import StoreRole
from tenantgate.services import captcha_service, team_service, token_service
from tenantgate.services.password_service import create_user


PASSWORD = "Password123!"
CAPTCHA_PASS = "captcha-ok"
RP_ID = "localhost"
ORIGIN = "https://localhost:3000"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    # Engines are created in init_app, so test config has to go in up front.
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'BCRYPT_ROUNDS': 4,
        'SESSION_COOKIE_SECURE': False,
        'TURNSTILE_SECRET_KEY': 'test-turnstile-secret',
        'WEBAUTHN_RP_ID': RP_ID,
        'WEBAUTHN_ORIGIN': ORIGIN,
        'TENANCY_ROOT_DOMAIN': 'shops.test',
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def client(app, db_session):
    """Bearer-only API client: no cookie jar, so CSRF checks never apply."""
    return app.test_client(use_cookies=False)


@pytest.fixture(scope='function')
def browser(app, db_session):
    """Client that keeps cookies like a browser would."""
    return app.test_client()


@pytest.fixture(autouse=True)
def fake_captcha(request, monkeypatch):
    """Accept CAPTCHA_PASS and nothing else, without calling Turnstile."""
    if request.node.get_closest_marker("real_captcha"):
        return
    monkeypatch.setattr(
        captcha_service, "verify_token", lambda token, remote_ip=None: token == CAPTCHA_PASS
    )


@pytest.fixture(scope='function')
def make_user(db_session):
    def _make(email="owner@example.com", password=PASSWORD):
        return create_user(email, password)
    return _make


@pytest.fixture(scope='function')
def make_store(db_session):
    def _make(subdomain="acme", name=None, merchant_name=None, primary_domain=None):
        return team_service.create_store(
            merchant_name or f"{subdomain.title()} Inc",
            name or f"{subdomain.title()} Shop",
            subdomain,
            primary_domain,
        )
    return _make


@pytest.fixture(scope='function')
def store_a(make_store):
    return make_store("acme")


@pytest.fixture(scope='function')
def store_b(make_store):
    return make_store("beta")


@pytest.fixture(scope='function')
def owner_a(make_user, store_a):
    """Owner of Store A."""
    user = make_user("owner@acme.com")
    team_service.set_store_role(store_a.id, user.id, StoreRole.OWNER)
    return user


@pytest.fixture(scope='function')
def staff_a(make_user, store_a):
    """Staff member of Store A."""
    user = make_user("staff@acme.com")
    team_service.set_store_role(store_a.id, user.id, StoreRole.STAFF)
    return user


@pytest.fixture(scope='function')
def owner_b(make_user, store_b):
    """Owner of Store B."""
    user = make_user("owner@beta.com")
    team_service.set_store_role(store_b.id, user.id, StoreRole.OWNER)
    return user


def bearer_for(user) -> str:
    """Issue an access token directly, skipping the login flow."""
    return token_service.issue_tokens(user).access_token


def auth_headers(token: str, store_id: int | None = None) -> dict:
    """Helper to create Authorization (and store selection) headers."""
    headers = {'Authorization': f'Bearer {token}'}
    if store_id is not None:
        headers['X-Store-Id'] = str(store_id)
    return headers


def login(client, email: str, password: str = PASSWORD, **extra):
    """POST /api/auth/login with a passing captcha unless overridden."""
    body = {'email': email, 'password': password, 'captcha_token': CAPTCHA_PASS}
    body.update(extra)
    return client.post('/api/auth/login', json=body)


class SoftAuthenticator:
    """
    Minimal platform authenticator: one ES256 key pair, "none" attestation.

    create() and get() take the JSON options returned by the API and return
    the PublicKeyCredential JSON a browser would post back.
    """

    def __init__(self, rp_id: str = RP_ID, origin: str = ORIGIN):
        self.rp_id = rp_id
        self.origin = origin
        self.private_key = ec.generate_private_key(ec.SECP256R1())
        self.credential_id = os.urandom(16)
        self.sign_count = 0

    @property
    def credential_id_b64(self) -> str:
        return bytes_to_base64url(self.credential_id)

    def _rp_id_hash(self) -> bytes:
        return hashlib.sha256(self.rp_id.encode("utf-8")).digest()

    def _cose_public_key(self) -> bytes:
        numbers = self.private_key.public_key().public_numbers()
        return cbor2.dumps({
            1: 2,    # kty: EC2
            3: -7,   # alg: ES256
            -1: 1,   # crv: P-256
            -2: numbers.x.to_bytes(32, "big"),
            -3: numbers.y.to_bytes(32, "big"),
        })

    def _client_data(self, ceremony: str, challenge: str) -> bytes:
        return json.dumps({
            "type": ceremony,
            "challenge": challenge,
            "origin": self.origin,
            "crossOrigin": False,
        }).encode("utf-8")

    def create(self, options: dict) -> dict:
        client_data = self._client_data("webauthn.create", options["challenge"])
        auth_data = (
            self._rp_id_hash()
            + bytes([0x45])  # UP | UV | AT
            + struct.pack(">I", self.sign_count)
            + b"\x00" * 16  # aaguid
            + struct.pack(">H", len(self.credential_id))
            + self.credential_id
            + self._cose_public_key()
        )
        attestation = cbor2.dumps({"fmt": "none", "attStmt": {}, "authData": auth_data})
        return {
            "id": self.credential_id_b64,
            "rawId": self.credential_id_b64,
            "type": "public-key",
            "response": {
                "clientDataJSON": bytes_to_base64url(client_data),
                "attestationObject": bytes_to_base64url(attestation),
                "transports": ["internal"],
            },
            "clientExtensionResults": {},
        }

    def get(self, options: dict, sign_count: int | None = None) -> dict:
        """Sign an assertion. Without sign_count the counter is incremented."""
        if sign_count is None:
            self.sign_count += 1
            sign_count = self.sign_count

        client_data = self._client_data("webauthn.get", options["challenge"])
        auth_data = self._rp_id_hash() + bytes([0x05]) + struct.pack(">I", sign_count)  # UP | UV
        signature = self.private_key.sign(
            auth_data + hashlib.sha256(client_data).digest(),
            ec.ECDSA(hashes.SHA256()),
        )
        return {
            "id": self.credential_id_b64,
            "rawId": self.credential_id_b64,
            "type": "public-key",
            "response": {
                "clientDataJSON": bytes_to_base64url(client_data),
                "authenticatorData": bytes_to_base64url(auth_data),
                "signature": bytes_to_base64url(signature),
            },
            "clientExtensionResults": {},
        }


@pytest.fixture(scope='function')
def authenticator():
    return SoftAuthenticator()
