from .auth import User, AccessToken, RefreshToken, LoginAttempt, WebAuthnCredential, WebAuthnChallenge
from .tenancy import (
    StoreRole,
    PlatformRole,
    Merchant,
    Store,
    StoreUserRole,
    StoreUserPermission,
    PlatformUserRole,
    TeamInviteToken,
    StoreRoleTemplate,
)
from .security import SecurityEvent

__all__ = [
    'User', 'AccessToken', 'RefreshToken', 'LoginAttempt', 'WebAuthnCredential', 'WebAuthnChallenge',
    'StoreRole', 'PlatformRole', 'Merchant', 'Store',
    'StoreUserRole', 'StoreUserPermission', 'PlatformUserRole', 'TeamInviteToken', 'StoreRoleTemplate',
    'SecurityEvent',
]
