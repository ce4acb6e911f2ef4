# Overview: Exception taxonomy for the credential path; each error maps to one HTTP status and reason code.

"""
Auth flow errors.

Every failure a client can observe is one of these. The `code` is the only
detail that leaves the server: it tells the client what to do next (prompt
for an MFA code, show a lockout message) without narrowing down why a
credential was rejected.
"""


class AuthFlowError(Exception):
    """Base class. Subclasses set status_code and code."""
    status_code = 400
    code = "bad_request"

    def __init__(self, message: str | None = None, *, code: str | None = None):
        super().__init__(message or self.code)
        if code is not None:
            self.code = code

    def to_dict(self) -> dict:
        return {"error": self.code}


class ValidationError(AuthFlowError):
    """Structurally invalid request body. No side effects have happened."""
    status_code = 400
    code = "invalid_input"

    def to_dict(self) -> dict:
        return {"error": self.code, "message": str(self)}


class CaptchaFailed(AuthFlowError):
    status_code = 400
    code = "captcha_failed"


class MfaRequired(AuthFlowError):
    """Password was correct but the account needs a TOTP code in the same request."""
    status_code = 400
    code = "mfa_required"


class MfaInvalid(AuthFlowError):
    status_code = 400
    code = "mfa_invalid"


class MfaNotEnrolled(AuthFlowError):
    status_code = 400
    code = "mfa_not_enrolled"


class WebAuthnVerificationError(AuthFlowError):
    """Any structural or cryptographic ceremony failure. Reason is logged, never returned."""
    status_code = 400
    code = "webauthn_failed"


class CsrfInvalid(AuthFlowError):
    status_code = 400
    code = "csrf_invalid"


class AuthenticationFailed(AuthFlowError):
    """Bad credentials, or a token that is unknown, expired, or revoked (indistinguishable)."""
    status_code = 401
    code = "invalid_credentials"


class AuthenticationRequired(AuthFlowError):
    status_code = 401
    code = "unauthenticated"


class PermissionDenied(AuthFlowError):
    status_code = 403
    code = "forbidden"


class NotFound(AuthFlowError):
    status_code = 404
    code = "not_found"


class ConflictError(AuthFlowError):
    status_code = 409
    code = "conflict"


class AccountLocked(AuthFlowError):
    status_code = 423
    code = "account_locked"
