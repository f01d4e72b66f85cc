"""Admin account store: lookup, creation and 2FA field updates."""

import logging

from sqlalchemy import update
from sqlmodel import Session, select

from backend.models.user import User
from backend.services.auth import hash_password

logger = logging.getLogger(__name__)


def get_user_by_username(session: Session, username: str) -> User | None:
    return session.exec(select(User).where(User.username == username)).first()


def create_user(session: Session, username: str, password: str) -> User:
    user = User(username=username, hashed_password=hash_password(password))
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


def enable_two_factor(session: Session, user: User, secret: str, backup_codes: list[str]) -> User:
    user.two_factor_secret = secret
    user.two_factor_enabled = True
    user.backup_codes = list(backup_codes)
    user.backup_codes_version += 1
    session.add(user)
    session.commit()
    session.refresh(user)
    logger.info(f"2FA enabled for {user.username}")
    return user


def disable_two_factor(session: Session, user: User) -> User:
    user.two_factor_secret = None
    user.two_factor_enabled = False
    user.backup_codes = None
    user.backup_codes_version += 1
    session.add(user)
    session.commit()
    session.refresh(user)
    logger.info(f"2FA disabled for {user.username}")
    return user


def replace_backup_codes(session: Session, user: User, backup_codes: list[str]) -> User:
    user.backup_codes = list(backup_codes)
    user.backup_codes_version += 1
    session.add(user)
    session.commit()
    session.refresh(user)
    logger.info(f"Backup codes regenerated for {user.username}")
    return user


def consume_backup_code_atomic(
    session: Session,
    user: User,
    expected_version: int,
    backup_codes: list[str],
) -> bool:
    """Store ``backup_codes`` only if nobody else changed them since ``expected_version``.

    Compare-and-swap on ``backup_codes_version``: of two concurrent logins that
    spend the same code, exactly one update matches a row. Returns False for the
    loser, which must reject its login.
    """
    stmt = (
        update(User)
        .where(User.id == user.id, User.backup_codes_version == expected_version)
        .values(backup_codes=list(backup_codes), backup_codes_version=expected_version + 1)
        .execution_options(synchronize_session=False)
    )
    result = session.exec(stmt)
    session.commit()

    if result.rowcount != 1:
        logger.warning(f"Backup code update for {user.username} lost a concurrent race")
        return False

    session.refresh(user)
    return True
