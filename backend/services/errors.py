"""Authentication error types.

User-facing rejections carry fixed, generic messages so a caller cannot tell
an unknown username from a wrong password, or a malformed code from a wrong one.
"""


class AuthError(Exception):
    """Base class for authentication failures."""

    message = "Authentication failed"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.message)


class ConfigurationError(AuthError):
    """The secure random source is unavailable. Fatal; do not retry."""

    message = "Secure random source unavailable"


class InvalidCredentials(AuthError):
    message = "Invalid credentials"


class InvalidSecondFactor(AuthError):
    message = "Invalid authentication code"
