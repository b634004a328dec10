from __future__ import annotations

import time
from typing import Any

import httpx
from jose import JWTError, jwk, jwt

_DEFAULT_JWKS_CACHE_SECONDS = 300
_ASYMMETRIC_ALGORITHMS = ("RS256", "ES256")
_JWKS_CACHE: dict[str, Any] = {
    "url": None,
    "expires_at": 0.0,
    "keys": {},
}


class SupabaseJwtError(Exception):
    pass


def _fetch_jwks(url: str) -> dict[str, Any]:
    try:
        resp = httpx.get(url, timeout=5)
        resp.raise_for_status()
        data = resp.json()
    except (httpx.HTTPError, ValueError) as exc:
        raise SupabaseJwtError(f"Failed to fetch JWKS: {exc}") from exc
    if not isinstance(data, dict) or "keys" not in data:
        raise SupabaseJwtError("JWKS response missing keys")
    return data


def _keys_by_kid(data: dict[str, Any]) -> dict[str, dict[str, Any]]:
    keys: dict[str, dict[str, Any]] = {}
    for entry in data.get("keys", []):
        if isinstance(entry, dict) and entry.get("kid"):
            keys[entry["kid"]] = entry
    return keys


def _signing_keys(url: str, *, force_refresh: bool = False) -> dict[str, dict[str, Any]]:
    now = time.monotonic()
    if (
        not force_refresh
        and _JWKS_CACHE["url"] == url
        and now < _JWKS_CACHE["expires_at"]
    ):
        return _JWKS_CACHE["keys"]

    keys = _keys_by_kid(_fetch_jwks(url))
    _JWKS_CACHE.update(url=url, keys=keys, expires_at=now + _DEFAULT_JWKS_CACHE_SECONDS)
    return keys


def verify_supabase_access_token(
    token: str,
    *,
    jwks_url: str | None,
    issuer: str | None = None,
    audience: str | None = None,
    hs256_secret: str | None = None,
) -> dict[str, Any]:
    """Verify a Supabase-issued access token.

    Asymmetric tokens (RS256/ES256) are checked against the project JWKS;
    HS256 tokens are accepted only when the legacy project secret is set.
    """
    try:
        header = jwt.get_unverified_header(token)
    except JWTError as exc:
        raise SupabaseJwtError("Invalid token header") from exc

    alg = header.get("alg")
    options = {"verify_aud": audience is not None}

    if alg == "HS256":
        if not hs256_secret:
            raise SupabaseJwtError("HS256 token but no Supabase JWT secret configured")
        key: Any = hs256_secret
    elif alg in _ASYMMETRIC_ALGORITHMS:
        if not jwks_url:
            raise SupabaseJwtError("Supabase JWKS url is not configured")
        kid = header.get("kid")
        if not kid:
            raise SupabaseJwtError("JWT header missing kid")
        key_data = _signing_keys(jwks_url).get(kid)
        if not key_data:
            key_data = _signing_keys(jwks_url, force_refresh=True).get(kid)
        if not key_data:
            raise SupabaseJwtError("JWT kid not found in JWKS")
        key = jwk.construct(key_data, alg)
    else:
        raise SupabaseJwtError(f"Unsupported JWT alg: {alg}")

    try:
        return jwt.decode(
            token,
            key,
            algorithms=[alg],
            issuer=issuer,
            audience=audience,
            options=options,
        )
    except JWTError as exc:
        raise SupabaseJwtError("JWT verification failed") from exc


__all__ = ["SupabaseJwtError", "verify_supabase_access_token"]
