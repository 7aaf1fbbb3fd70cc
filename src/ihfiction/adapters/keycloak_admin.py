"""Keycloak admin REST client used to grant roles to newly registered authors."""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

import httpx

from ihfiction.adapters.settings import env_str, int_env
from ihfiction.domain.errors import DomainError, Result

logger = logging.getLogger(__name__)


class KeycloakErrors:
    TOKEN_FETCH = DomainError("Keycloak.TokenFetch", "Failed to fetch token from Keycloak.")
    SET_REALM_ROLE = DomainError("Keycloak.SetRealmRole", "Failed to set realm role for user.")
    GET_REALM_ROLE = DomainError("Keycloak.GetRealmRole", "Failed to get realm role from Keycloak.")
    SET_RESOURCE_ROLE = DomainError("Keycloak.SetResourceRole", "Failed to set role for user.")
    GET_RESOURCE_ROLE = DomainError("Keycloak.GetResourceRole", "Failed to get role from Keycloak.")
    GET_RESOURCE = DomainError("Keycloak.GetResource", "Failed to get resource from Keycloak.")


@dataclass(frozen=True)
class KeycloakSettings:
    """Connection settings for the admin API service account."""

    base_url: str
    realm: str
    client_id: str
    client_secret: str
    token_refresh_seconds: int = 30
    timeout_seconds: float = 10.0

    @classmethod
    def from_env(cls) -> KeycloakSettings | None:
        """Return settings when the admin client is configured, else `None`."""
        base_url = env_str("IHFICTION_KEYCLOAK_URL")
        client_id = env_str("IHFICTION_KEYCLOAK_CLIENT_ID")
        client_secret = env_str("IHFICTION_KEYCLOAK_CLIENT_SECRET")
        if not base_url or not client_id or not client_secret:
            return None
        return cls(
            base_url=base_url.rstrip("/") + "/",
            realm=env_str("IHFICTION_KEYCLOAK_REALM", "master"),
            client_id=client_id,
            client_secret=client_secret,
            token_refresh_seconds=int_env(
                "IHFICTION_KEYCLOAK_TOKEN_REFRESH_SECONDS", 30, minimum=0, maximum=3600
            ),
        )


@dataclass
class AdminTokenCache:
    """Service-account token plus memoized role and client representations.

    A token is reused while it stays valid for longer than `refresh_threshold_seconds`.
    """

    refresh_threshold_seconds: float = 30.0
    clock: Callable[[], float] = time.monotonic
    _token: str | None = None
    _expires_at: float = 0.0
    _roles: dict[tuple[str, str | None], dict[str, Any]] = field(default_factory=dict)
    _clients: dict[str, dict[str, Any]] = field(default_factory=dict)
    _lock: threading.Lock = field(default_factory=threading.Lock)

    def current_token(self) -> str | None:
        with self._lock:
            if self._token is None:
                return None
            if self._expires_at - self.refresh_threshold_seconds <= self.clock():
                return None
            return self._token

    def store_token(self, token: str, *, expires_in: float) -> None:
        with self._lock:
            self._token = token
            self._expires_at = self.clock() + expires_in

    def get_role(self, name: str, client_uuid: str | None) -> dict[str, Any] | None:
        with self._lock:
            return self._roles.get((name, client_uuid))

    def remember_role(self, name: str, client_uuid: str | None, role: dict[str, Any]) -> None:
        with self._lock:
            self._roles.setdefault((name, client_uuid), role)

    def get_client(self, client_id: str) -> dict[str, Any] | None:
        with self._lock:
            return self._clients.get(client_id)

    def remember_client(self, client_id: str, client: dict[str, Any]) -> None:
        with self._lock:
            self._clients.setdefault(client_id, client)


class KeycloakAdminClient:
    """Assign realm and client roles through the Keycloak admin REST API."""

    def __init__(
        self,
        settings: KeycloakSettings,
        *,
        cache: AdminTokenCache,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._settings = settings
        self._cache = cache
        self._transport = transport

    def _client(self) -> httpx.Client:
        return httpx.Client(
            base_url=self._settings.base_url,
            timeout=self._settings.timeout_seconds,
            transport=self._transport,
        )

    @property
    def _admin_prefix(self) -> str:
        return f"admin/realms/{self._settings.realm}"

    def access_token(self) -> Result[str]:
        cached = self._cache.current_token()
        if cached is not None:
            return Result.success(cached)
        try:
            with self._client() as client:
                response = client.post(
                    f"realms/{self._settings.realm}/protocol/openid-connect/token",
                    data={
                        "grant_type": "client_credentials",
                        "client_id": self._settings.client_id,
                        "client_secret": self._settings.client_secret,
                    },
                )
            if response.is_error:
                logger.warning("keycloak.token_fetch_failed status=%s", response.status_code)
                return Result.failure(KeycloakErrors.TOKEN_FETCH)
            payload = response.json()
        except (httpx.HTTPError, ValueError):
            logger.warning("keycloak.token_fetch_failed", exc_info=True)
            return Result.failure(KeycloakErrors.TOKEN_FETCH)
        token = payload.get("access_token") if isinstance(payload, dict) else None
        expires_in = payload.get("expires_in") if isinstance(payload, dict) else None
        if not isinstance(token, str) or not isinstance(expires_in, int | float):
            return Result.failure(KeycloakErrors.TOKEN_FETCH)
        self._cache.store_token(token, expires_in=float(expires_in))
        return Result.success(token)

    def _authorized_get(self, path: str, error: DomainError, **params: str) -> Result[Any]:
        token = self.access_token()
        if token.is_failure:
            return Result.failure(token.unwrap_error())
        try:
            with self._client() as client:
                response = client.get(
                    path,
                    params=params or None,
                    headers={"Authorization": f"Bearer {token.unwrap()}"},
                )
            if response.is_error:
                logger.warning("keycloak.get_failed path=%s status=%s", path, response.status_code)
                return Result.failure(error)
            return Result.success(response.json())
        except (httpx.HTTPError, ValueError):
            logger.warning("keycloak.get_failed path=%s", path, exc_info=True)
            return Result.failure(error)

    def _authorized_post(self, path: str, body: Any, error: DomainError) -> Result[None]:
        token = self.access_token()
        if token.is_failure:
            return Result.failure(token.unwrap_error())
        try:
            with self._client() as client:
                response = client.post(
                    path, json=body, headers={"Authorization": f"Bearer {token.unwrap()}"}
                )
        except httpx.HTTPError:
            logger.warning("keycloak.post_failed path=%s", path, exc_info=True)
            return Result.failure(error)
        if response.is_error:
            logger.warning("keycloak.post_failed path=%s status=%s", path, response.status_code)
            return Result.failure(error)
        return Result.success(None)

    def get_client(self, client_id: str) -> Result[dict[str, Any]]:
        cached = self._cache.get_client(client_id)
        if cached is not None:
            return Result.success(cached)
        result = self._authorized_get(
            f"{self._admin_prefix}/clients", KeycloakErrors.GET_RESOURCE, clientId=client_id
        )
        if result.is_failure:
            return Result.failure(result.unwrap_error())
        clients = result.unwrap()
        if not isinstance(clients, list) or not clients or not isinstance(clients[0], dict):
            return Result.failure(KeycloakErrors.GET_RESOURCE)
        self._cache.remember_client(client_id, clients[0])
        return Result.success(clients[0])

    def get_realm_role(self, name: str) -> Result[dict[str, Any]]:
        return self._get_role(
            name, None, f"{self._admin_prefix}/roles/{name}", KeycloakErrors.GET_REALM_ROLE
        )

    def get_client_role(self, client_uuid: str, name: str) -> Result[dict[str, Any]]:
        return self._get_role(
            name,
            client_uuid,
            f"{self._admin_prefix}/clients/{client_uuid}/roles/{name}",
            KeycloakErrors.GET_RESOURCE_ROLE,
        )

    def _get_role(
        self, name: str, client_uuid: str | None, path: str, error: DomainError
    ) -> Result[dict[str, Any]]:
        cached = self._cache.get_role(name, client_uuid)
        if cached is not None:
            return Result.success(cached)
        result = self._authorized_get(path, error)
        if result.is_failure:
            return Result.failure(result.unwrap_error())
        role = result.unwrap()
        if not isinstance(role, dict):
            return Result.failure(error)
        self._cache.remember_role(name, client_uuid, role)
        return Result.success(role)

    def assign_realm_role(self, *, user_id: str, role_name: str) -> Result[None]:
        role = self.get_realm_role(role_name)
        if role.is_failure:
            return Result.failure(role.unwrap_error())
        result = self._authorized_post(
            f"{self._admin_prefix}/users/{user_id}/role-mappings/realm",
            [role.unwrap()],
            KeycloakErrors.SET_REALM_ROLE,
        )
        if result.is_success:
            logger.info("keycloak.realm_role_assigned user_id=%s role=%s", user_id, role_name)
        return result

    def assign_client_role(self, *, user_id: str, client_id: str, role_name: str) -> Result[None]:
        client = self.get_client(client_id)
        if client.is_failure:
            return Result.failure(client.unwrap_error())
        client_uuid = str(client.unwrap().get("id", ""))
        role = self.get_client_role(client_uuid, role_name)
        if role.is_failure:
            return Result.failure(role.unwrap_error())
        result = self._authorized_post(
            f"{self._admin_prefix}/users/{user_id}/role-mappings/clients/{client_uuid}",
            [role.unwrap()],
            KeycloakErrors.SET_RESOURCE_ROLE,
        )
        if result.is_success:
            logger.info(
                "keycloak.client_role_assigned user_id=%s client_id=%s role=%s",
                user_id,
                client_id,
                role_name,
            )
        return result


def create_identity_admin() -> KeycloakAdminClient | None:
    """Build the admin client from environment, or `None` when it is not configured."""
    settings = KeycloakSettings.from_env()
    if settings is None:
        return None
    return KeycloakAdminClient(
        settings, cache=AdminTokenCache(refresh_threshold_seconds=settings.token_refresh_seconds)
    )
