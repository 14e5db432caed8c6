from __future__ import annotations


class BridgeError(RuntimeError):
    pass


class CredentialRejectedError(BridgeError):
    """The backend refused the credential (expired, revoked or malformed)."""


class AuthorizationPendingError(BridgeError):
    """An interactive login was started and has not completed yet."""


class PlayerNotAvailableError(ValueError):
    pass
