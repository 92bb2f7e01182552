import logging
import secrets
from datetime import datetime, timedelta
from typing import Iterable, Optional, Tuple

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import ADMIN_EMAIL, ADMIN_PASSWORD, PASSWORD_RESET_EXPIRE_HOURS
from app.database.connection import get_db
from app.database.models import AuthSession, Institution, Librarian, PasswordReset, Student
from app.models.user import (
    AdminPrincipal,
    InstitutionPrincipal,
    LibrarianPrincipal,
    PrivateLibraryPrincipal,
    Session,
    StudentPrincipal,
)
from app.utils.security import (
    create_access_token,
    decode_access_token,
    hash_password,
    new_reset_token,
    new_session_id,
    verify_password,
)

logger = logging.getLogger(__name__)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login", auto_error=False)


def _principal_for(account) -> Tuple[object, Optional[int]]:
    """Return (principal, institution_id) for an authenticated ORM account."""
    if isinstance(account, Institution):
        if account.kind == "private_library":
            return PrivateLibraryPrincipal.model_validate(account), account.id
        return InstitutionPrincipal.model_validate(account), account.id
    if isinstance(account, Student):
        return StudentPrincipal.model_validate(account), account.institution_id
    if isinstance(account, Librarian):
        return LibrarianPrincipal.model_validate(account), account.institution_id
    raise TypeError(f"Unsupported account type: {type(account).__name__}")


async def _find_account(db: AsyncSession, email: str, password: str):
    # Institutions and private libraries share a table; then students, then librarians.
    for model in (Institution, Student, Librarian):
        stmt = select(model).where(model.email == email, model.is_active == True)
        result = await db.execute(stmt)
        account = result.scalars().first()
        if account is not None and verify_password(password, account.password):
            return account
    return None


def _is_admin(email: str, password: str) -> bool:
    if not ADMIN_PASSWORD:
        return False
    return secrets.compare_digest(email, ADMIN_EMAIL) and secrets.compare_digest(password, ADMIN_PASSWORD)


async def login(db: AsyncSession, email: str, password: str) -> Tuple[str, Session]:
    """Authenticate against every role and open a server-side session."""
    email = email.strip().lower()
    if _is_admin(email, password):
        principal, institution_id, user_id = AdminPrincipal(email=email), None, None
    else:
        account = await _find_account(db, email, password)
        if account is None:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid credentials",
                headers={"WWW-Authenticate": "Bearer"},
            )
        principal, institution_id = _principal_for(account)
        user_id = account.id

    record = AuthSession(
        id=new_session_id(),
        role=principal.role,
        user_id=user_id,
        institution_id=institution_id,
        email=email,
        created_at=datetime.now(),
    )
    db.add(record)
    try:
        await db.commit()
    except Exception:
        await db.rollback()
        logger.exception("Could not persist session for %s", email)
        raise HTTPException(status_code=500, detail="Login failed due to database error")

    token = create_access_token(data={"sub": email, "sid": record.id, "role": principal.role})
    logger.info("Opened %s session %s", principal.role, record.id)
    session = Session(
        session_id=record.id,
        principal=principal,
        institution_id=institution_id,
        created_at=record.created_at,
    )
    return token, session


async def logout(db: AsyncSession, session: Session) -> None:
    record = await db.get(AuthSession, session.session_id)
    if record is not None:
        await db.delete(record)
        await db.commit()
        logger.info("Closed session %s", session.session_id)


async def close_account_sessions(db: AsyncSession, role: str, user_id: int) -> None:
    """Delete every open session of one account; the caller commits."""
    await db.execute(delete(AuthSession).where(AuthSession.role == role, AuthSession.user_id == user_id))


async def _find_by_email(db: AsyncSession, email: str):
    for model in (Institution, Student, Librarian):
        result = await db.execute(select(model).where(model.email == email, model.is_active == True))
        account = result.scalars().first()
        if account is not None:
            return account
    return None


async def request_password_reset(db: AsyncSession, email: str, now: datetime) -> Optional[str]:
    """
    Store a one-time reset token for the account behind `email` and return it.
    Returns None when no active account uses that email.
    """
    email = email.strip().lower()
    if await _find_by_email(db, email) is None:
        logger.info("Password reset requested for unknown email %s", email)
        return None

    token = new_reset_token()
    db.add(PasswordReset(
        email=email,
        token_hash=hash_password(token),
        expires_at=now + timedelta(hours=PASSWORD_RESET_EXPIRE_HOURS),
        created_at=now,
    ))
    await db.commit()
    return token


async def reset_password(db: AsyncSession, email: str, token: str, new_password: str, now: datetime) -> bool:
    """Consume a valid reset token, set the new password and close the account's sessions."""
    email = email.strip().lower()
    stmt = select(PasswordReset).where(
        PasswordReset.email == email,
        PasswordReset.used == False,
        PasswordReset.expires_at >= now,
    )
    candidates = (await db.execute(stmt)).scalars().all()
    reset = next((r for r in candidates if verify_password(token, r.token_hash)), None)
    account = await _find_by_email(db, email)
    if reset is None or account is None:
        return False

    account.password = hash_password(new_password)
    reset.used = True
    principal, _ = _principal_for(account)
    await close_account_sessions(db, principal.role, account.id)
    await db.commit()
    logger.info("Password reset for %s %s", principal.role, account.id)
    return True


async def restore_session(db: AsyncSession, token: str) -> Optional[Session]:
    """Rebuild the session behind a stored token, or None if it was closed or is invalid."""
    try:
        payload = decode_access_token(token)
    except jwt.InvalidTokenError:
        return None

    result = await db.execute(select(AuthSession).where(AuthSession.id == payload.get("sid")))
    record = result.scalars().first()
    if record is None:
        return None

    if record.role == "admin":
        principal = AdminPrincipal(email=record.email)
    else:
        model = {"institution": Institution, "private_library": Institution,
                 "student": Student, "librarian": Librarian}[record.role]
        account = await db.get(model, record.user_id)
        if account is None or not account.is_active:
            return None
        principal, _ = _principal_for(account)

    return Session(
        session_id=record.id,
        principal=principal,
        institution_id=record.institution_id,
        created_at=record.created_at,
    )


async def get_current_session(
        token: Optional[str] = Depends(oauth2_scheme),
        db: AsyncSession = Depends(get_db),
) -> Session:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    if not token:
        raise credentials_exception
    session = await restore_session(db, token)
    if session is None:
        raise credentials_exception
    return session


def require_roles(*roles: str):
    """Dependency factory: the current session must hold one of `roles`."""
    allowed: Iterable[str] = set(roles)

    async def dependency(session: Session = Depends(get_current_session)) -> Session:
        if session.role not in allowed:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not allowed for this role")
        return session

    return dependency


# Roles that manage a library's catalogue and circulation.
LIBRARY_STAFF = ("institution", "private_library", "librarian")
