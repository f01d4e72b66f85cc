"""2FA management API: setup, enable, disable, backup-code regeneration."""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlmodel import Session

from backend.database import get_session
from backend.models.user import User
from backend.schemas.two_factor import (
    BackupCodesResponse,
    TwoFactorDisableRequest,
    TwoFactorEnableRequest,
    TwoFactorSetupResponse,
)
from backend.services.accounts import disable_two_factor, enable_two_factor, replace_backup_codes
from backend.services.auth import verify_password
from backend.services.errors import ConfigurationError
from backend.services.two_factor import generate_backup_codes, generate_setup, verify_totp
from backend.api.deps import get_current_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin/2fa", tags=["two-factor"])


@router.post("/setup", response_model=TwoFactorSetupResponse)
def setup(user: User = Depends(get_current_user)):
    """Issue a fresh secret, QR code and backup codes. Nothing is stored yet."""
    if user.two_factor_enabled:
        raise HTTPException(status_code=400, detail="2FA already enabled")

    try:
        result = generate_setup(user.username)
    except ConfigurationError:
        logger.exception("2FA setup failed")
        raise HTTPException(status_code=500, detail="Failed to setup 2FA")

    return TwoFactorSetupResponse(
        secret=result.secret,
        enrollment_uri=result.enrollment_uri,
        qr_code_url=result.qr_code_url,
        backup_codes=result.backup_codes,
    )


@router.post("/enable")
def enable(
    body: TwoFactorEnableRequest,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    """Confirm the authenticator works, then persist the secret and backup codes."""
    if user.two_factor_enabled:
        raise HTTPException(status_code=400, detail="2FA already enabled")

    if not verify_totp(body.token, body.secret):
        raise HTTPException(status_code=400, detail="Invalid verification code")

    enable_two_factor(session, user, body.secret, body.backup_codes)
    return {"success": True, "message": "Two-factor authentication enabled"}


@router.post("/disable")
def disable(
    body: TwoFactorDisableRequest,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    if not verify_password(body.password, user.hashed_password):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")

    if not user.two_factor_enabled:
        raise HTTPException(status_code=400, detail="2FA is not enabled")

    disable_two_factor(session, user)
    return {"success": True, "message": "Two-factor authentication disabled"}


@router.post("/backup-codes", response_model=BackupCodesResponse)
def regenerate_backup_codes(
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    """Replace every remaining backup code with a new batch."""
    if not user.two_factor_enabled:
        raise HTTPException(status_code=400, detail="2FA is not enabled")

    try:
        codes = generate_backup_codes()
    except ConfigurationError:
        logger.exception("Backup code generation failed")
        raise HTTPException(status_code=500, detail="Failed to generate backup codes")

    replace_backup_codes(session, user, codes)
    return BackupCodesResponse(backup_codes=codes)
