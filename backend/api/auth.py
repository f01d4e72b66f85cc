"""Authentication API: two-step admin login."""

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel
from sqlmodel import Session

from backend.database import get_session
from backend.models.user import User
from backend.schemas.two_factor import AdminUserRead
from backend.services.accounts import consume_backup_code_atomic, get_user_by_username
from backend.services.auth import create_access_token
from backend.services.errors import InvalidSecondFactor
from backend.services.login import LoginState, LoginStateMachine
from backend.api.deps import get_current_user, get_login_machine

router = APIRouter(prefix="/api/admin", tags=["auth"])


class LoginRequest(BaseModel):
    username: str
    password: str
    code: str | None = None  # TOTP token or backup code, step 2 only


class LoginResponse(BaseModel):
    status: str  # "authenticated" or "second_factor_required"
    requires_2fa: bool = False
    access_token: str | None = None
    token_type: str = "bearer"
    backup_codes_remaining: int | None = None


@router.post("/login", response_model=LoginResponse)
def login(
    body: LoginRequest,
    session: Session = Depends(get_session),
    machine: LoginStateMachine = Depends(get_login_machine),
):
    user = get_user_by_username(session, body.username)
    expected_version = user.backup_codes_version if user else 0
    result = machine.attempt(user, body.password, body.code)

    if result.state is LoginState.REJECTED:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=result.reason,
        )

    if result.state is LoginState.AWAITING_SECOND_FACTOR:
        return LoginResponse(status="second_factor_required", requires_2fa=True)

    remaining = None
    if result.backup_code_used:
        # The spent code must be gone from storage before a session is granted
        if not consume_backup_code_atomic(session, user, expected_version, result.backup_codes):
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail=InvalidSecondFactor.message,
            )
        remaining = len(result.backup_codes)

    token = create_access_token(subject=user.username)
    return LoginResponse(
        status="authenticated",
        access_token=token,
        backup_codes_remaining=remaining,
    )


@router.get("/me", response_model=AdminUserRead)
def me(user: User = Depends(get_current_user)):
    return AdminUserRead(
        id=user.id,
        username=user.username,
        two_factor_enabled=user.two_factor_enabled,
        backup_codes_remaining=len(user.backup_codes or []),
    )
