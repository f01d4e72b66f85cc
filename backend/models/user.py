"""User model for admin authentication."""

from datetime import datetime, timezone

from sqlalchemy import JSON, Column
from sqlmodel import SQLModel, Field


class User(SQLModel, table=True):
    id: int | None = Field(default=None, primary_key=True)
    username: str = Field(unique=True, index=True)
    hashed_password: str
    is_active: bool = Field(default=True)

    # two_factor_secret is set if and only if two_factor_enabled is true
    two_factor_enabled: bool = Field(default=False)
    two_factor_secret: str | None = Field(default=None)
    backup_codes: list[str] | None = Field(default=None, sa_column=Column(JSON, nullable=True))
    # Bumped on every backup_codes write; guards consume-and-persist
    backup_codes_version: int = Field(default=0)

    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
