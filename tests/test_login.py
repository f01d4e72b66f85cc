"""Tests for the two-step login state machine."""

import logging
import time
from types import SimpleNamespace
from unittest.mock import patch

import pyotp
import pytest

from backend.services.login import LoginResult, LoginState, LoginStateMachine

PASSWORD = "hunter2hunter2"
BACKUP_CODES = ["AAAA1111", "BBBB2222", "CCCC3333"]


def _plain_verifier(plain: str, hashed: str) -> bool:
    return plain == hashed


def _account(two_factor=False, secret=None, backup_codes=None, **overrides) -> SimpleNamespace:
    fields = dict(
        username="admin",
        hashed_password=PASSWORD,
        is_active=True,
        two_factor_enabled=two_factor,
        two_factor_secret=secret,
        backup_codes=backup_codes,
    )
    fields.update(overrides)
    return SimpleNamespace(**fields)


@pytest.fixture
def machine():
    return LoginStateMachine(password_verifier=_plain_verifier, valid_window=1)


@pytest.fixture
def tfa_account(secret):
    return _account(two_factor=True, secret=secret, backup_codes=list(BACKUP_CODES))


# ---------------------------------------------------------------------------
# 1. Step 1: password
# ---------------------------------------------------------------------------

class TestPasswordStep:
    def test_no_2fa_authenticates_directly(self, machine):
        result = machine.submit_password(_account(), PASSWORD)
        assert result.state is LoginState.AUTHENTICATED
        assert result.authenticated
        assert result.username == "admin"
        assert result.backup_codes is None

    def test_2fa_requires_second_factor(self, machine, tfa_account):
        result = machine.submit_password(tfa_account, PASSWORD)
        assert result.state is LoginState.AWAITING_SECOND_FACTOR
        assert result.username == "admin"
        assert not result.authenticated

    def test_wrong_password_rejected(self, machine):
        result = machine.submit_password(_account(), "wrong")
        assert result.state is LoginState.REJECTED
        assert result.reason == "Invalid credentials"
        assert result.username is None

    def test_unknown_user_same_reason_as_wrong_password(self, machine):
        unknown = machine.submit_password(None, PASSWORD)
        wrong = machine.submit_password(_account(), "wrong")
        assert unknown.state is LoginState.REJECTED
        assert unknown.reason == wrong.reason

    def test_inactive_user_rejected(self, machine):
        result = machine.submit_password(_account(is_active=False), PASSWORD)
        assert result.state is LoginState.REJECTED
        assert result.reason == "Invalid credentials"

    def test_account_without_is_active_treated_as_active(self, machine):
        account = _account()
        del account.is_active
        assert machine.submit_password(account, PASSWORD).authenticated

    def test_rejection_is_logged_without_password(self, machine, caplog):
        with caplog.at_level(logging.INFO):
            machine.submit_password(_account(), "s3cret-guess")
        assert "Login rejected for admin" in caplog.text
        assert "s3cret-guess" not in caplog.text

    def test_rejected_attempt_can_be_retried(self, machine):
        assert machine.submit_password(_account(), "wrong").state is LoginState.REJECTED
        assert machine.submit_password(_account(), PASSWORD).authenticated


# ---------------------------------------------------------------------------
# 2. Step 2: TOTP or backup code
# ---------------------------------------------------------------------------

class TestSecondFactorStep:
    def test_current_totp_authenticates(self, machine, tfa_account, secret):
        token = pyotp.TOTP(secret).now()
        result = machine.submit_second_factor(tfa_account, PASSWORD, token)
        assert result.state is LoginState.AUTHENTICATED
        assert not result.backup_code_used

    def test_stale_totp_rejected(self, machine, tfa_account, secret):
        totp = pyotp.TOTP(secret)
        now = time.time()
        stale = totp.at(now - 300)
        if stale in {totp.at(now, offset) for offset in (-2, -1, 0, 1, 2)}:
            pytest.skip("stale token collided with an accepted one")
        result = machine.submit_second_factor(tfa_account, PASSWORD, stale)
        assert result.state is LoginState.REJECTED
        assert result.reason == "Invalid authentication code"

    def test_backup_code_authenticates_and_is_consumed(self, machine, tfa_account):
        result = machine.submit_second_factor(tfa_account, PASSWORD, "AAAA1111")
        assert result.state is LoginState.AUTHENTICATED
        assert result.backup_code_used
        assert result.backup_codes == ["BBBB2222", "CCCC3333"]
        # The machine never mutates the account itself
        assert tfa_account.backup_codes == BACKUP_CODES

    def test_lowercase_backup_code_accepted(self, machine, tfa_account):
        result = machine.submit_second_factor(tfa_account, PASSWORD, "bbbb2222")
        assert result.authenticated
        assert "BBBB2222" not in result.backup_codes

    def test_spent_backup_code_rejected_after_persist(self, machine, tfa_account):
        first = machine.submit_second_factor(tfa_account, PASSWORD, "AAAA1111")
        tfa_account.backup_codes = first.backup_codes

        second = machine.submit_second_factor(tfa_account, PASSWORD, "AAAA1111")
        assert second.state is LoginState.REJECTED
        assert second.reason == "Invalid authentication code"

    def test_unknown_backup_code_rejected(self, machine, tfa_account):
        result = machine.submit_second_factor(tfa_account, PASSWORD, "DDDD4444")
        assert result.state is LoginState.REJECTED

    def test_malformed_code_skips_verifiers(self, machine, tfa_account):
        with patch("backend.services.login.verify_totp") as totp_mock, \
                patch("backend.services.login.verify_backup_code") as backup_mock:
            result = machine.submit_second_factor(tfa_account, PASSWORD, "abc")
        assert result.state is LoginState.REJECTED
        assert result.reason == "Invalid authentication code"
        totp_mock.assert_not_called()
        backup_mock.assert_not_called()

    def test_malformed_and_wrong_codes_look_the_same(self, machine, tfa_account):
        malformed = machine.submit_second_factor(tfa_account, PASSWORD, "xyz")
        wrong = machine.submit_second_factor(tfa_account, PASSWORD, "DDDD4444")
        assert malformed.reason == wrong.reason

    def test_password_rechecked_on_second_step(self, machine, tfa_account, secret):
        token = pyotp.TOTP(secret).now()
        result = machine.submit_second_factor(tfa_account, "wrong", token)
        assert result.state is LoginState.REJECTED
        assert result.reason == "Invalid credentials"

    @pytest.mark.parametrize("code", ["123456", "AAAA1111"])
    def test_enabled_without_secret_fails_closed(self, machine, code):
        account = _account(two_factor=True, secret=None, backup_codes=list(BACKUP_CODES))
        result = machine.submit_second_factor(account, PASSWORD, code)
        assert result.state is LoginState.REJECTED
        assert result.reason == "Invalid authentication code"
        assert result.backup_codes is None

    def test_no_backup_codes_left(self, machine, secret):
        account = _account(two_factor=True, secret=secret, backup_codes=None)
        result = machine.submit_second_factor(account, PASSWORD, "AAAA1111")
        assert result.state is LoginState.REJECTED

    def test_second_factor_ignored_when_2fa_disabled(self, machine):
        result = machine.submit_second_factor(_account(), PASSWORD, "000000")
        assert result.authenticated


# ---------------------------------------------------------------------------
# 3. attempt() dispatch and end-to-end scenario
# ---------------------------------------------------------------------------

def test_attempt_without_code_is_password_step(machine, tfa_account):
    assert machine.attempt(tfa_account, PASSWORD).state is LoginState.AWAITING_SECOND_FACTOR


def test_attempt_with_code_is_second_factor_step(machine, tfa_account):
    assert machine.attempt(tfa_account, PASSWORD, "AAAA1111").authenticated


@pytest.mark.parametrize("code", ["", "   ", "\t"])
def test_attempt_with_blank_code_is_password_step(machine, tfa_account, code):
    assert machine.attempt(tfa_account, PASSWORD, code).state is LoginState.AWAITING_SECOND_FACTOR


def test_attempt_trims_code(machine, tfa_account):
    assert machine.attempt(tfa_account, PASSWORD, " AAAA1111 ").authenticated


def test_full_scenario(machine, tfa_account, secret):
    assert machine.attempt(tfa_account, PASSWORD).state is LoginState.AWAITING_SECOND_FACTOR

    assert machine.attempt(tfa_account, PASSWORD, pyotp.TOTP(secret).now()).authenticated

    used = machine.attempt(tfa_account, PASSWORD, "AAAA1111")
    assert used.authenticated
    assert "AAAA1111" not in used.backup_codes
    tfa_account.backup_codes = used.backup_codes

    assert machine.attempt(tfa_account, PASSWORD, "AAAA1111").state is LoginState.REJECTED


def test_default_machine_uses_bcrypt_verifier():
    import bcrypt

    hashed = bcrypt.hashpw(PASSWORD.encode(), bcrypt.gensalt(rounds=4)).decode()
    account = _account(hashed_password=hashed)
    assert LoginStateMachine().submit_password(account, PASSWORD).authenticated
    assert LoginStateMachine().submit_password(account, "nope").state is LoginState.REJECTED


def test_login_result_defaults():
    result = LoginResult(state=LoginState.REJECTED, reason="x")
    assert not result.authenticated
    assert not result.backup_code_used
