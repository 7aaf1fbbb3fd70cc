"""OpenID Connect token validation helpers for Keycloak-backed auth."""

from __future__ import annotations

import json
import os
import time
from dataclasses import dataclass
from typing import Any, cast

import httpx
import jwt
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPublicKey

from ihfiction.adapters.settings import csv_env, env_str, int_env

DEFAULT_AUDIENCE = "fiction-api"
DEFAULT_RESOURCE = "fiction-api"


@dataclass(frozen=True)
class OidcClaims:
    """Verified OIDC claims used by API auth."""

    subject: str | None
    issuer: str
    email: str | None
    preferred_username: str | None
    name: str | None
    audience: str | None
    roles: frozenset[str] = frozenset()

    def has_role(self, role: str) -> bool:
        return role in self.roles


@dataclass
class _CachedDocument:
    payload: dict[str, Any]
    expires_at: float


_DOCUMENTS: dict[str, _CachedDocument] = {}


def reset_oidc_caches() -> None:
    """Drop cached discovery and key documents."""
    _DOCUMENTS.clear()


def _load_document(url: str, *, ttl_env: str, label: str) -> dict[str, Any]:
    """GET a JSON object, reusing it for the configured TTL."""
    now = time.monotonic()
    cached = _DOCUMENTS.get(url)
    if cached is not None and cached.expires_at > now:
        return cached.payload
    with httpx.Client(timeout=10.0, follow_redirects=True) as client:
        response = client.get(url)
    response.raise_for_status()
    payload = response.json()
    if not isinstance(payload, dict):
        raise RuntimeError(f"OIDC {label} response was not an object.")
    ttl_seconds = int_env(ttl_env, 300, minimum=30, maximum=3600)
    _DOCUMENTS[url] = _CachedDocument(payload=payload, expires_at=now + ttl_seconds)
    return payload


def _jwks_url(issuer: str) -> str:
    explicit = env_str("IHFICTION_OIDC_JWKS_URL")
    if explicit:
        return explicit
    discovery = _load_document(
        issuer.rstrip("/") + "/.well-known/openid-configuration",
        ttl_env="IHFICTION_OIDC_WELL_KNOWN_TTL_SECONDS",
        label="discovery",
    )
    jwks_uri = discovery.get("jwks_uri")
    if not isinstance(jwks_uri, str) or not jwks_uri:
        raise RuntimeError("OIDC discovery document has no jwks_uri.")
    return jwks_uri


def _signing_keys(issuer: str) -> list[dict[str, Any]]:
    """Keys from inline `IHFICTION_OIDC_JWKS_JSON` or the issuer's JWKS endpoint."""
    inline = env_str("IHFICTION_OIDC_JWKS_JSON")
    if inline:
        jwks = json.loads(inline)
        if not isinstance(jwks, dict):
            raise RuntimeError("OIDC JWKS JSON must be an object.")
    else:
        jwks = _load_document(
            _jwks_url(issuer), ttl_env="IHFICTION_OIDC_JWKS_TTL_SECONDS", label="JWKS"
        )
    keys = jwks.get("keys")
    if not isinstance(keys, list):
        raise RuntimeError("OIDC JWKS payload missing keys list.")
    return [key for key in keys if isinstance(key, dict)]


def _key_for(keys: list[dict[str, Any]], kid: str | None) -> dict[str, Any]:
    if kid is None:
        if len(keys) == 1:
            return keys[0]
        raise RuntimeError("Token has no kid and the key set is ambiguous.")
    match = next((key for key in keys if key.get("kid") == kid), None)
    if match is None:
        raise RuntimeError(f"No signing key for kid {kid}.")
    return match


def _string_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, str) and item]


def _extract_roles(payload: dict[str, Any], resource: str) -> frozenset[str]:
    """Realm roles plus client roles granted on `resource`."""
    roles: set[str] = set()
    realm_access = payload.get("realm_access")
    if isinstance(realm_access, dict):
        roles.update(_string_list(realm_access.get("roles")))
    resource_access = payload.get("resource_access")
    if isinstance(resource_access, dict):
        client_access = resource_access.get(resource)
        if isinstance(client_access, dict):
            roles.update(_string_list(client_access.get("roles")))
    return frozenset(roles)


def _optional_claim(payload: dict[str, Any], name: str) -> str | None:
    value = payload.get(name)
    return value if isinstance(value, str) and value.strip() else None


def _audience() -> str:
    """Configured audience; an explicitly empty value disables the check."""
    raw = os.environ.get("IHFICTION_OIDC_AUDIENCE")
    return DEFAULT_AUDIENCE if raw is None else raw.strip()


def validate_oidc_token(token: str) -> OidcClaims:
    """Validate a bearer token against OIDC settings."""
    issuer = env_str("IHFICTION_OIDC_ISSUER")
    if not issuer:
        raise RuntimeError("IHFICTION_OIDC_ISSUER is required for keycloak auth.")
    audience = _audience()
    algorithms = csv_env("IHFICTION_OIDC_ALGORITHMS", ["RS256"])
    leeway = int_env("IHFICTION_OIDC_LEEWAY_SECONDS", 120, minimum=0, maximum=3600)

    header = jwt.get_unverified_header(token)
    kid = header.get("kid") if isinstance(header, dict) else None
    jwk = _key_for(_signing_keys(issuer), kid)
    public_key = cast(RSAPublicKey, jwt.algorithms.RSAAlgorithm.from_jwk(json.dumps(jwk)))
    options: dict[str, bool] = {"verify_aud": bool(audience)}
    payload = jwt.decode(
        token,
        key=public_key,
        algorithms=algorithms,
        audience=audience or None,
        issuer=issuer,
        leeway=leeway,
        options=cast(Any, options),
    )
    if not isinstance(payload, dict):
        raise RuntimeError("OIDC token payload was not an object.")
    return OidcClaims(
        subject=_optional_claim(payload, "sub"),
        issuer=issuer,
        email=_optional_claim(payload, "email"),
        preferred_username=_optional_claim(payload, "preferred_username"),
        name=_optional_claim(payload, "name"),
        audience=audience or None,
        roles=_extract_roles(payload, env_str("IHFICTION_OIDC_RESOURCE", DEFAULT_RESOURCE)),
    )
