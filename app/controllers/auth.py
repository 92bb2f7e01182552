import logging
import random
import string
import time

from fastapi import APIRouter, Depends, status, HTTPException
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from app.database.connection import get_db
from app.database.models import Institution
from app.models.user import (
    InstitutionCreate,
    InstitutionResponse,
    PasswordResetConfirm,
    PasswordResetRequest,
    PrivateLibraryCreate,
    Session,
    Token,
)
from app.services import auth as auth_service
from app.services.auth import get_current_session
from app.services.stores import Clock, get_clock
from app.utils.security import hash_password

logger = logging.getLogger(__name__)

router = APIRouter()


def generate_library_code() -> str:
    timestamp = str(int(time.time() * 1000))[-6:]
    suffix = "".join(random.choices(string.ascii_uppercase + string.digits, k=3))
    return f"LIB{timestamp}{suffix}"


@router.post("/login", response_model=Token)
async def login(form_data: OAuth2PasswordRequestForm = Depends(), db: AsyncSession = Depends(get_db)):
    token, session = await auth_service.login(db, form_data.username, form_data.password)
    return Token(access_token=token, token_type="bearer", session=session)


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout(session: Session = Depends(get_current_session), db: AsyncSession = Depends(get_db)):
    await auth_service.logout(db, session)
    return


@router.get("/me", response_model=Session)
async def get_me(session: Session = Depends(get_current_session)):
    """
    Restores the session behind a previously issued token.
    """
    return session


async def _register(db: AsyncSession, payload: InstitutionCreate, kind: str) -> Institution:
    email = payload.email.lower()
    result = await db.execute(select(Institution).where(Institution.email == email))
    if result.scalars().first():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Email already registered")

    library_code = None
    if kind == "private_library":
        library_code = generate_library_code()
        while (await db.execute(select(Institution.id).where(Institution.library_code == library_code))).first():
            library_code = generate_library_code()

    institution = Institution(
        kind=kind,
        name=payload.name,
        email=email,
        password=hash_password(payload.password),
        phone=payload.phone,
        address=payload.address,
        website=payload.website,
        college_code=payload.college_code,
        library_code=library_code,
    )
    db.add(institution)
    try:
        await db.commit()
    except Exception:
        await db.rollback()
        logger.exception("Registration of %s failed", email)
        raise HTTPException(status_code=500, detail="Registration failed due to database error")
    await db.refresh(institution)
    logger.info("Registered %s %s (id=%s)", kind, institution.name, institution.id)
    return institution


@router.post("/register/institution", response_model=InstitutionResponse, status_code=status.HTTP_201_CREATED)
async def register_institution(payload: InstitutionCreate, db: AsyncSession = Depends(get_db)):
    return await _register(db, payload, "institution")


@router.post("/register/private-library", response_model=InstitutionResponse, status_code=status.HTTP_201_CREATED)
async def register_private_library(payload: PrivateLibraryCreate, db: AsyncSession = Depends(get_db)):
    return await _register(db, payload, "private_library")


def send_reset_link(email: str, token: str) -> None:
    # No mailer is configured; the link goes to the application log for an operator to forward.
    logger.info("Password reset link for %s: /reset-password?token=%s&email=%s", email, token, email)


@router.post("/password-reset/request", status_code=status.HTTP_202_ACCEPTED)
async def request_password_reset(
        payload: PasswordResetRequest,
        db: AsyncSession = Depends(get_db),
        clock: Clock = Depends(get_clock),
):
    """
    Issues a one-time reset token. The response is the same whether or not the
    email belongs to an account.
    """
    token = await auth_service.request_password_reset(db, payload.email, clock())
    if token is not None:
        send_reset_link(payload.email.lower(), token)
    return {"message": "If the email is registered, a reset link has been sent."}


@router.post("/password-reset/confirm")
async def confirm_password_reset(
        payload: PasswordResetConfirm,
        db: AsyncSession = Depends(get_db),
        clock: Clock = Depends(get_clock),
):
    ok = await auth_service.reset_password(db, payload.email, payload.token, payload.new_password, clock())
    if not ok:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid or expired reset token")
    return {"message": "Password has been reset."}
