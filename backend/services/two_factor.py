"""TOTP two-factor provisioning and verification.

Secrets are Base32 (pyotp default, 160 bits). Tokens are 6 digits on a 30s step.
Backup codes are 8 uppercase hex characters and single-use; consuming one is the
caller's job (see ``consume_backup_code`` and the account store).
"""

import base64
import io
import logging
import re
import secrets
from dataclasses import dataclass, field
from typing import NamedTuple

import pyotp
import qrcode

from backend.config import settings
from backend.services.errors import ConfigurationError

logger = logging.getLogger(__name__)

TOTP_DIGITS = 6
BACKUP_CODE_BYTES = 4

_TOTP_RE = re.compile(r"^[0-9]{6}$")
_BACKUP_RE = re.compile(r"^[A-Fa-f0-9]{8}$")


@dataclass
class TwoFactorSetup:
    secret: str
    enrollment_uri: str
    qr_code_url: str  # data:image/png;base64,...
    backup_codes: list[str] = field(default_factory=list)


class CodeFormat(NamedTuple):
    is_totp: bool
    is_backup: bool


# ---------------------------------------------------------------------------
# Provisioning
# ---------------------------------------------------------------------------

def generate_secret() -> str:
    try:
        return pyotp.random_base32()
    except (NotImplementedError, OSError) as e:
        raise ConfigurationError(f"Cannot generate TOTP secret: {e}") from e


def get_enrollment_uri(secret: str, username: str, issuer: str | None = None) -> str:
    """otpauth://totp/{issuer}:{username}?secret={secret}&issuer={issuer}"""
    return pyotp.TOTP(secret).provisioning_uri(
        name=username,
        issuer_name=issuer or settings.totp_issuer,
    )


def generate_qr_code_data_uri(uri: str) -> str:
    """Render ``uri`` as a PNG QR code, returned as a data URI for direct display."""
    qr = qrcode.QRCode(
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        box_size=8,
        border=4,
    )
    qr.add_data(uri)
    qr.make(fit=True)
    img = qr.make_image(fill_color="black", back_color="white")

    buffer = io.BytesIO()
    img.save(buffer, format="PNG")
    b64 = base64.b64encode(buffer.getvalue()).decode("ascii")
    return f"data:image/png;base64,{b64}"


def generate_backup_codes(count: int | None = None) -> list[str]:
    """Fresh batch of single-use backup codes from the OS CSPRNG.

    No uniqueness check within a batch; a collision is a 1 in 2^32 event per pair.
    """
    if count is None:
        count = settings.backup_code_count
    try:
        return [secrets.token_hex(BACKUP_CODE_BYTES).upper() for _ in range(count)]
    except (NotImplementedError, OSError) as e:
        raise ConfigurationError(f"Cannot generate backup codes: {e}") from e


def generate_setup(username: str, issuer: str | None = None) -> TwoFactorSetup:
    """Build a complete enrollment package for ``username``.

    Nothing is persisted here. The caller shows the QR code and backup codes
    once, then stores ``secret`` and ``backup_codes`` on the account.
    """
    secret = generate_secret()
    uri = get_enrollment_uri(secret, username, issuer)
    return TwoFactorSetup(
        secret=secret,
        enrollment_uri=uri,
        qr_code_url=generate_qr_code_data_uri(uri),
        backup_codes=generate_backup_codes(),
    )


# ---------------------------------------------------------------------------
# Verification
# ---------------------------------------------------------------------------

def classify_code_format(code: str | None) -> CodeFormat:
    if not code:
        return CodeFormat(is_totp=False, is_backup=False)
    return CodeFormat(
        is_totp=bool(_TOTP_RE.fullmatch(code)),
        is_backup=bool(_BACKUP_RE.fullmatch(code)),
    )


def verify_totp(
    token: str | None,
    secret: str | None,
    valid_window: int | None = None,
    for_time: int | None = None,
) -> bool:
    """Check ``token`` against ``secret``. Never raises; any failure is a mismatch.

    ``for_time`` is a unix timestamp, defaulting to now.
    """
    if not token or not secret:
        return False
    if not _TOTP_RE.fullmatch(token):
        return False
    if valid_window is None:
        valid_window = settings.totp_valid_window
    try:
        return pyotp.TOTP(secret).verify(token, for_time=for_time, valid_window=valid_window)
    except Exception as e:
        logger.warning(f"TOTP verification failed internally: {type(e).__name__}: {e}")
        return False


def verify_backup_code(code: str | None, backup_codes: list[str] | None) -> bool:
    if not code or not backup_codes:
        return False
    return code.upper() in backup_codes


def consume_backup_code(code: str, backup_codes: list[str] | None) -> list[str]:
    """Return a copy of ``backup_codes`` without the first entry matching ``code``."""
    remaining = list(backup_codes or [])
    normalized = code.upper()
    if normalized in remaining:
        remaining.remove(normalized)
    return remaining
