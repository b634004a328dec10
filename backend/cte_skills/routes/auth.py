from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, status
from psycopg import errors

from ..auth import CurrentUser, create_access_token, hash_password, verify_password
from ..config import settings
from ..repositories import users as users_repo
from ..schemas import AuthLoginRequest, AuthRegisterRequest, Me, Token

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


def _token_for(user_id: str) -> Token:
    return Token(
        access_token=create_access_token(user_id),
        expires_in=settings.jwt_expires_minutes * 60,
    )


@router.post("/register", response_model=Token, status_code=status.HTTP_201_CREATED)
async def register(payload: AuthRegisterRequest) -> Token:
    try:
        user = await users_repo.create_user(
            email=payload.email,
            password_hash=hash_password(payload.password),
            full_name=payload.full_name,
        )
    except errors.UniqueViolation as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email already registered") from exc
    logger.info("User registered", extra={"new_user_id": user["id"]})
    return _token_for(user["id"])


@router.post("/login", response_model=Token)
async def login(payload: AuthLoginRequest) -> Token:
    credentials = await users_repo.get_credentials_by_email(payload.email)
    if not credentials or not verify_password(payload.password, credentials.get("encrypted_password")):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
        )
    return _token_for(credentials["id"])


@router.get("/me", response_model=Me)
async def me(current: CurrentUser) -> Me:
    return Me(
        user_id=current["id"],
        email=current.get("email"),
        full_name=current.get("full_name"),
        is_admin=bool(current.get("is_admin")),
        stripe_customer_id=current.get("stripe_customer_id"),
    )
