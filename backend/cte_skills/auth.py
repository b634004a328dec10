from datetime import datetime, timedelta, timezone
from typing import Annotated, Any

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from passlib.context import CryptContext

from .config import settings
from .errors import AuthenticationError
from .logging_context import set_user_context
from .repositories import users as users_repo
from .utils.supabase_jwt import SupabaseJwtError, verify_supabase_access_token

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")
oauth2_optional_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login", auto_error=False)


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, hashed: str | None) -> bool:
    if not hashed:
        return False
    try:
        return pwd_context.verify(password, hashed)
    except ValueError:
        # Unknown hash format (e.g. a row created by another auth provider).
        return False


def decode_jwt(token: str) -> dict[str, Any]:
    return jwt.decode(
        token,
        settings.jwt_secret,
        algorithms=[settings.jwt_algorithm],
    )


def decode_access_token(token: str) -> dict[str, Any]:
    """Accept locally issued tokens first, then Supabase-issued ones."""
    try:
        payload = decode_jwt(token)
    except JWTError as exc:
        jwks_url = settings.supabase_jwks_endpoint
        if not jwks_url and not settings.supabase_jwt_secret:
            raise exc
        try:
            return verify_supabase_access_token(
                token,
                jwks_url=jwks_url,
                issuer=settings.supabase_token_issuer,
                audience=settings.supabase_jwt_audience,
                hs256_secret=settings.supabase_jwt_secret,
            )
        except SupabaseJwtError as sup_exc:
            raise JWTError("Supabase JWT verification failed") from sup_exc
    if payload.get("token_type", "access") != "access":
        raise JWTError("Not an access token")
    return payload


def create_access_token(
    sub: str,
    expires_minutes: int | None = None,
    *,
    claims: dict[str, Any] | None = None,
) -> str:
    expire = datetime.now(timezone.utc) + timedelta(
        minutes=expires_minutes or settings.jwt_expires_minutes
    )
    to_encode: dict[str, Any] = {"sub": sub, "exp": expire, "token_type": "access"}
    if claims:
        to_encode.update(claims)
    return jwt.encode(to_encode, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def bearer_token_from_header(authorization: str | None) -> str:
    if not authorization:
        raise AuthenticationError("No authorization header provided")
    token = authorization.strip()
    if token.lower().startswith("bearer "):
        token = token[7:].strip()
    if not token:
        raise AuthenticationError("No authorization header provided")
    return token


async def authenticate_bearer(authorization: str | None) -> dict[str, Any]:
    """Resolve the caller of a backend function from its Authorization header."""
    token = bearer_token_from_header(authorization)
    try:
        payload = decode_access_token(token)
    except JWTError as exc:
        raise AuthenticationError(f"Authentication error: {exc}") from exc
    user_id = payload.get("sub")
    if not user_id:
        raise AuthenticationError("User not authenticated")
    user = await users_repo.get_user(str(user_id))
    if not user:
        raise AuthenticationError("User not authenticated")
    set_user_context(user["id"])
    return user


async def get_current_user(token: Annotated[str, Depends(oauth2_scheme)]):
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = decode_access_token(token)
    except JWTError as exc:
        raise credentials_exception from exc
    user_id: str | None = payload.get("sub")
    if user_id is None:
        raise credentials_exception

    user = await users_repo.get_user(str(user_id))
    if not user:
        raise credentials_exception
    set_user_context(user["id"])
    return user


async def get_optional_user(
    token: Annotated[str | None, Depends(oauth2_optional_scheme)],
):
    if not token:
        return None
    try:
        payload = decode_access_token(token)
    except JWTError:
        return None
    user_id: str | None = payload.get("sub")
    if user_id is None:
        return None
    user = await users_repo.get_user(str(user_id))
    if user:
        set_user_context(user["id"])
    return user


CurrentUser = Annotated[dict, Depends(get_current_user)]
OptionalCurrentUser = Annotated[dict | None, Depends(get_optional_user)]
