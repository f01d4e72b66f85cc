"""Pydantic schemas for the 2FA management API."""

import re

from pydantic import BaseModel, Field, field_validator

from backend.config import settings

_BASE32_RE = re.compile(r"^[A-Z2-7]+=*$")
_BACKUP_CODE_RE = re.compile(r"^[A-F0-9]{8}$")


class TwoFactorSetupResponse(BaseModel):
    secret: str
    enrollment_uri: str
    qr_code_url: str
    backup_codes: list[str]


class TwoFactorEnableRequest(BaseModel):
    token: str = Field(min_length=6, max_length=6)
    secret: str = Field(min_length=16, max_length=128)  # 16 Base32 chars = 80 bits
    # Exactly the batch handed out by /setup
    backup_codes: list[str] = Field(
        min_length=settings.backup_code_count,
        max_length=settings.backup_code_count,
    )

    @field_validator("token")
    @classmethod
    def _validate_token(cls, value: str) -> str:
        token = value.strip()
        if not (token.isascii() and token.isdigit()):
            raise ValueError("must be 6 digits")
        return token

    @field_validator("secret")
    @classmethod
    def _validate_secret(cls, value: str) -> str:
        secret = value.strip().upper()
        if not _BASE32_RE.fullmatch(secret):
            raise ValueError("must be a Base32 string")
        return secret

    @field_validator("backup_codes")
    @classmethod
    def _validate_backup_codes(cls, value: list[str]) -> list[str]:
        codes = [code.strip().upper() for code in value]
        for code in codes:
            if not _BACKUP_CODE_RE.fullmatch(code):
                raise ValueError("each backup code must be 8 hexadecimal characters")
        return codes


class TwoFactorDisableRequest(BaseModel):
    password: str = Field(min_length=1)


class BackupCodesResponse(BaseModel):
    backup_codes: list[str]


class AdminUserRead(BaseModel):
    id: int
    username: str
    two_factor_enabled: bool
    backup_codes_remaining: int = 0
