"""Two-step admin login: password, then an optional TOTP token or backup code.

The machine keeps no state between requests. Step 2 resubmits the username and
password together with the code, so both are checked again on every call.

    AWAITING_PASSWORD --password ok, 2FA off--> AUTHENTICATED
    AWAITING_PASSWORD --password ok, 2FA on---> AWAITING_SECOND_FACTOR
    AWAITING_SECOND_FACTOR --code ok----------> AUTHENTICATED
    any step --failure------------------------> REJECTED (retry from the start)
"""

import enum
import logging
from dataclasses import dataclass
from typing import Any, Callable

from backend.config import settings
from backend.services.auth import verify_password
from backend.services.errors import AuthError, InvalidCredentials, InvalidSecondFactor
from backend.services.two_factor import (
    classify_code_format,
    consume_backup_code,
    verify_backup_code,
    verify_totp,
)

logger = logging.getLogger(__name__)


class LoginState(str, enum.Enum):
    AWAITING_PASSWORD = "awaiting_password"
    AWAITING_SECOND_FACTOR = "awaiting_second_factor"
    AUTHENTICATED = "authenticated"
    REJECTED = "rejected"


@dataclass
class LoginResult:
    state: LoginState
    username: str | None = None
    reason: str | None = None
    # Set only when a backup code was spent; the caller must persist it
    backup_codes: list[str] | None = None

    @property
    def authenticated(self) -> bool:
        return self.state is LoginState.AUTHENTICATED

    @property
    def backup_code_used(self) -> bool:
        return self.backup_codes is not None


class LoginStateMachine:
    """Decide accept/reject for a login attempt against an account record.

    ``account`` is any object with ``username``, ``hashed_password``,
    ``two_factor_enabled``, ``two_factor_secret`` and ``backup_codes``
    (``is_active`` is honoured when present). ``None`` means no such user.
    """

    def __init__(
        self,
        password_verifier: Callable[[str, str], bool] = verify_password,
        valid_window: int | None = None,
    ):
        self._verify_password = password_verifier
        self._valid_window = settings.totp_valid_window if valid_window is None else valid_window

    def attempt(self, account: Any, password: str, second_factor: str | None = None) -> LoginResult:
        """Run step 1 when no code is given (a blank code counts as none), else step 2."""
        second_factor = (second_factor or "").strip() or None
        if second_factor is None:
            return self.submit_password(account, password)
        return self.submit_second_factor(account, password, second_factor)

    def submit_password(self, account: Any, password: str) -> LoginResult:
        try:
            self._check_password(account, password)
        except AuthError as e:
            return self._reject(account, e)

        if not account.two_factor_enabled:
            return LoginResult(state=LoginState.AUTHENTICATED, username=account.username)
        return LoginResult(state=LoginState.AWAITING_SECOND_FACTOR, username=account.username)

    def submit_second_factor(self, account: Any, password: str, code: str) -> LoginResult:
        try:
            self._check_password(account, password)
            if not account.two_factor_enabled:
                return LoginResult(state=LoginState.AUTHENTICATED, username=account.username)
            updated_codes = self._check_second_factor(account, code)
        except AuthError as e:
            return self._reject(account, e)

        if updated_codes is not None:
            logger.info(
                f"Backup code used by {account.username}; {len(updated_codes)} remaining"
            )
        return LoginResult(
            state=LoginState.AUTHENTICATED,
            username=account.username,
            backup_codes=updated_codes,
        )

    def _check_password(self, account: Any, password: str) -> None:
        if account is None or not getattr(account, "is_active", True):
            raise InvalidCredentials()
        if not self._verify_password(password, account.hashed_password):
            raise InvalidCredentials()

    def _check_second_factor(self, account: Any, code: str) -> list[str] | None:
        """Return the updated backup-code list if one was spent, else None."""
        if not account.two_factor_secret:
            # Enabled flag without a secret: refuse every code, backup codes included
            logger.error(f"Account {account.username} has 2FA enabled but no secret")
            raise InvalidSecondFactor()

        fmt = classify_code_format(code)

        if fmt.is_totp:
            if verify_totp(code, account.two_factor_secret, valid_window=self._valid_window):
                return None
            raise InvalidSecondFactor()

        if fmt.is_backup:
            if verify_backup_code(code, account.backup_codes):
                return consume_backup_code(code, account.backup_codes)
            raise InvalidSecondFactor()

        raise InvalidSecondFactor()

    @staticmethod
    def _reject(account: Any, error: AuthError) -> LoginResult:
        username = getattr(account, "username", None)
        logger.info(f"Login rejected for {username or '<unknown>'}: {error}")
        return LoginResult(state=LoginState.REJECTED, reason=str(error))
