# Overview: WebAuthn (passkey) registration and authentication ceremonies via py_webauthn.

"""
WebAuthn Service

WHY: Passkeys give phishing-resistant login. The cryptographic verification
(attestation parsing, signature checks, origin and RP id binding) is done by
py_webauthn; this module owns challenge bookkeeping, credential storage, and
the signature counter rule.

SECURITY NOTES:
- Challenges are persisted with a TTL (WEBAUTHN_CHALLENGE_TTL_SECONDS) and
  consumed with a conditional update, so each one is usable exactly once.
- User verification is required for both ceremonies.
- Counter rule: if either the stored or the presented counter is non-zero,
  the presented counter must be strictly greater. Anything else suggests a
  cloned authenticator and is rejected.
- Failures raise WebAuthnVerificationError without detail; the reason is
  logged server-side only.
"""

import json
from datetime import timedelta

from flask import current_app
from webauthn import (
    base64url_to_bytes,
    generate_authentication_options,
    generate_registration_options,
    options_to_json,
    verify_authentication_response,
    verify_registration_response,
)
from webauthn.helpers import bytes_to_base64url, parse_client_data_json
from webauthn.helpers.exceptions import WebAuthnException
from webauthn.helpers.structs import (
    AttestationConveyancePreference,
    AuthenticatorSelectionCriteria,
    PublicKeyCredentialDescriptor,
    ResidentKeyRequirement,
    UserVerificationRequirement,
)

from ..errors import WebAuthnVerificationError
from ..extensions import db
from ..models import User, WebAuthnChallenge, WebAuthnCredential
from ..time_utils import utcnow, is_in_future
from . import audit_service


# Errors raised while decoding or verifying client payloads
_VERIFY_ERRORS = (WebAuthnException, ValueError, KeyError, TypeError)


def rp_info() -> dict:
    config = current_app.config
    return {
        "rp_id": config["WEBAUTHN_RP_ID"],
        "rp_name": config["WEBAUTHN_RP_NAME"],
        "origin": config["WEBAUTHN_ORIGIN"],
    }


def _challenge_ttl() -> timedelta:
    return timedelta(seconds=int(current_app.config.get("WEBAUTHN_CHALLENGE_TTL_SECONDS", 300)))


def _timeout_ms() -> int:
    return int(_challenge_ttl().total_seconds() * 1000)


def _user_handle(user: User) -> bytes:
    return str(user.id).encode("utf-8")


def _store_challenge(user: User, ceremony: str, challenge: bytes) -> WebAuthnChallenge:
    now = utcnow()
    record = WebAuthnChallenge(
        user_id=user.id,
        ceremony=ceremony,
        challenge=bytes_to_base64url(challenge),
        created_at=now,
        expires_at=now + _challenge_ttl(),
    )
    db.session.add(record)
    db.session.commit()
    return record


def _parse_credential(credential) -> dict:
    if isinstance(credential, (str, bytes)):
        try:
            credential = json.loads(credential)
        except ValueError:
            raise WebAuthnVerificationError("credential is not valid JSON")
    if not isinstance(credential, dict) or not isinstance(credential.get("response"), dict):
        raise WebAuthnVerificationError("credential payload missing response")
    return credential


def _consume_challenge(credential: dict, ceremony: str, user_id: int) -> bytes:
    """
    Find the challenge named in clientDataJSON and burn it.

    Raises unless the challenge exists for this user and ceremony, is unexpired,
    and this call is the one that consumed it.
    """
    try:
        client_data = parse_client_data_json(
            base64url_to_bytes(credential["response"]["clientDataJSON"])
        )
    except _VERIFY_ERRORS as exc:
        raise WebAuthnVerificationError(f"unreadable clientDataJSON: {exc}")

    challenge_b64 = bytes_to_base64url(client_data.challenge)
    record = db.session.query(WebAuthnChallenge).filter_by(
        challenge=challenge_b64,
        ceremony=ceremony,
        user_id=user_id,
    ).first()
    if record is None:
        raise WebAuthnVerificationError("unknown challenge")
    if record.consumed_at is not None or not is_in_future(record.expires_at):
        raise WebAuthnVerificationError("challenge expired or already used")

    consumed = db.session.query(WebAuthnChallenge).filter(
        WebAuthnChallenge.id == record.id,
        WebAuthnChallenge.consumed_at.is_(None),
    ).update({"consumed_at": utcnow()}, synchronize_session=False)
    db.session.commit()
    if consumed != 1:
        raise WebAuthnVerificationError("challenge already used")
    return client_data.challenge


def list_credentials(user_id: int) -> list[WebAuthnCredential]:
    return db.session.query(WebAuthnCredential).filter_by(user_id=user_id).order_by(
        WebAuthnCredential.id
    ).all()


def _descriptors(credentials: list[WebAuthnCredential]) -> list[PublicKeyCredentialDescriptor]:
    return [PublicKeyCredentialDescriptor(id=base64url_to_bytes(c.credential_id)) for c in credentials]


def start_registration(user: User, display_name: str | None = None) -> dict:
    """Registration options for navigator.credentials.create(), JSON-ready."""
    config = current_app.config
    options = generate_registration_options(
        rp_id=config["WEBAUTHN_RP_ID"],
        rp_name=config["WEBAUTHN_RP_NAME"],
        user_id=_user_handle(user),
        user_name=user.email,
        user_display_name=display_name or user.email,
        timeout=_timeout_ms(),
        attestation=AttestationConveyancePreference.NONE,
        authenticator_selection=AuthenticatorSelectionCriteria(
            resident_key=ResidentKeyRequirement.PREFERRED,
            user_verification=UserVerificationRequirement.REQUIRED,
        ),
        exclude_credentials=_descriptors(list_credentials(user.id)),
    )
    _store_challenge(user, WebAuthnChallenge.REGISTRATION, options.challenge)
    return json.loads(options_to_json(options))


def finish_registration(user: User, credential) -> WebAuthnCredential:
    credential = _parse_credential(credential)
    try:
        expected_challenge = _consume_challenge(credential, WebAuthnChallenge.REGISTRATION, user.id)
        config = current_app.config
        verification = verify_registration_response(
            credential=credential,
            expected_challenge=expected_challenge,
            expected_rp_id=config["WEBAUTHN_RP_ID"],
            expected_origin=config["WEBAUTHN_ORIGIN"],
            require_user_verification=True,
        )
    except WebAuthnVerificationError as exc:
        current_app.logger.warning("webauthn registration rejected user_id=%s: %s", user.id, exc)
        raise
    except _VERIFY_ERRORS as exc:
        current_app.logger.warning("webauthn registration rejected user_id=%s: %s", user.id, exc)
        raise WebAuthnVerificationError()

    credential_id = bytes_to_base64url(verification.credential_id)
    if db.session.query(WebAuthnCredential).filter_by(credential_id=credential_id).first() is not None:
        current_app.logger.warning("webauthn registration rejected user_id=%s: duplicate credential", user.id)
        raise WebAuthnVerificationError()

    transports = credential["response"].get("transports") or []
    record = WebAuthnCredential(
        user_id=user.id,
        credential_id=credential_id,
        public_key=verification.credential_public_key,
        sign_count=verification.sign_count,
        aaguid=str(verification.aaguid) if verification.aaguid else None,
        cred_type=credential.get("type") or "public-key",
        transports=",".join(str(t) for t in transports) or None,
        created_at=utcnow(),
    )
    db.session.add(record)
    db.session.commit()
    current_app.logger.info("webauthn credential registered user_id=%s credential=%s", user.id, record.id)
    return record


def start_authentication(user: User | None) -> dict:
    """
    Assertion options for navigator.credentials.get(), JSON-ready.

    Unknown users and users without passkeys get well-formed options with an
    empty allow list and nothing is stored, so the response does not reveal
    whether the account exists. Such a ceremony can never be completed.
    """
    config = current_app.config
    credentials = list_credentials(user.id) if user is not None else []
    options = generate_authentication_options(
        rp_id=config["WEBAUTHN_RP_ID"],
        timeout=_timeout_ms(),
        allow_credentials=_descriptors(credentials),
        user_verification=UserVerificationRequirement.REQUIRED,
    )
    if credentials:
        _store_challenge(user, WebAuthnChallenge.AUTHENTICATION, options.challenge)
    return json.loads(options_to_json(options))


def _lookup_credential(credential: dict) -> WebAuthnCredential:
    raw_id = credential.get("rawId") or credential.get("id")
    if not isinstance(raw_id, str) or not raw_id:
        raise WebAuthnVerificationError("credential id missing")
    record = db.session.query(WebAuthnCredential).filter_by(credential_id=raw_id.rstrip("=")).first()
    if record is None:
        raise WebAuthnVerificationError("unknown credential")
    return record


def _advance_sign_count(stored: WebAuthnCredential, old_count: int, new_count: int) -> bool:
    """
    Compare-and-set the stored counter.

    Conditional UPDATE ... WHERE sign_count = old_count: of two assertions
    read against the same counter, only one moves it.
    """
    updated = db.session.query(WebAuthnCredential).filter(
        WebAuthnCredential.id == stored.id,
        WebAuthnCredential.sign_count == old_count,
    ).update({"sign_count": new_count, "last_used_at": utcnow()}, synchronize_session=False)
    db.session.commit()
    return updated == 1


def finish_authentication(credential) -> User:
    """
    Verify an assertion and return the authenticated user.

    On success the stored counter and last_used_at are updated.
    """
    credential = _parse_credential(credential)
    stored = None
    try:
        stored = _lookup_credential(credential)
        expected_challenge = _consume_challenge(credential, WebAuthnChallenge.AUTHENTICATION, stored.user_id)
        old_count = int(stored.sign_count or 0)
        config = current_app.config
        # Counter comparison happens below; the library check is disabled with 0.
        verification = verify_authentication_response(
            credential=credential,
            expected_challenge=expected_challenge,
            expected_rp_id=config["WEBAUTHN_RP_ID"],
            expected_origin=config["WEBAUTHN_ORIGIN"],
            credential_public_key=stored.public_key,
            credential_current_sign_count=0,
            require_user_verification=True,
        )
    except WebAuthnVerificationError as exc:
        current_app.logger.warning("webauthn assertion rejected credential=%s: %s", stored.id if stored else None, exc)
        raise
    except _VERIFY_ERRORS as exc:
        current_app.logger.warning("webauthn assertion rejected credential=%s: %s", stored.id if stored else None, exc)
        raise WebAuthnVerificationError()

    new_count = int(verification.new_sign_count)
    counter_ok = not (new_count > 0 or old_count > 0) or new_count > old_count
    if not counter_ok or not _advance_sign_count(stored, old_count, new_count):
        audit_service.log_security_event(
            user_id=stored.user_id,
            event_type="WEBAUTHN_COUNTER_REGRESSION",
            success=False,
            reason=f"credential {stored.id}: counter {new_count} after {old_count}",
        )
        raise WebAuthnVerificationError()

    user = db.session.get(User, stored.user_id)
    if user is None:
        raise WebAuthnVerificationError()
    return user


def purge_expired_challenges() -> int:
    """Delete challenges that are consumed or past their TTL."""
    deleted = db.session.query(WebAuthnChallenge).filter(
        db.or_(
            WebAuthnChallenge.consumed_at.isnot(None),
            WebAuthnChallenge.expires_at < utcnow(),
        )
    ).delete(synchronize_session=False)
    db.session.commit()
    return deleted
