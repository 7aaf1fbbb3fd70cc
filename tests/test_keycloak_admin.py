from __future__ import annotations

import json

import httpx
import pytest

from ihfiction.adapters.keycloak_admin import (
    AdminTokenCache,
    KeycloakAdminClient,
    KeycloakSettings,
    create_identity_admin,
)

SETTINGS = KeycloakSettings(
    base_url="http://keycloak.test/",
    realm="fiction",
    client_id="fiction-admin",
    client_secret="secret",
)


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


class FakeKeycloak:
    """Minimal admin REST surface recording every request."""

    def __init__(self, *, token_status: int = 200, expires_in: int = 300) -> None:
        self.token_status = token_status
        self.expires_in = expires_in
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if path == "/realms/fiction/protocol/openid-connect/token":
            if self.token_status != 200:
                return httpx.Response(self.token_status, json={"error": "unauthorized_client"})
            return httpx.Response(
                200, json={"access_token": "admin-token", "expires_in": self.expires_in}
            )
        if request.headers.get("Authorization") != "Bearer admin-token":
            return httpx.Response(401)
        if path == "/admin/realms/fiction/clients":
            return httpx.Response(
                200, json=[{"id": "client-uuid", "clientId": request.url.params["clientId"]}]
            )
        if path == "/admin/realms/fiction/clients/client-uuid/roles/author":
            return httpx.Response(200, json={"id": "role-uuid", "name": "author"})
        if path == "/admin/realms/fiction/roles/reader":
            return httpx.Response(200, json={"id": "realm-role-uuid", "name": "reader"})
        if path.startswith("/admin/realms/fiction/users/") and request.method == "POST":
            return httpx.Response(204)
        return httpx.Response(404)

    def paths(self) -> list[str]:
        return [request.url.path for request in self.requests]


def _client(
    server: FakeKeycloak, *, clock: FakeClock | None = None
) -> KeycloakAdminClient:
    cache = AdminTokenCache(refresh_threshold_seconds=30, clock=clock or FakeClock())
    return KeycloakAdminClient(SETTINGS, cache=cache, transport=httpx.MockTransport(server))


def test_client_role_assignment_posts_role_representation() -> None:
    server = FakeKeycloak()
    client = _client(server)

    result = client.assign_client_role(user_id="user-1", client_id="fiction-api", role_name="author")

    assert result.is_success
    post = server.requests[-1]
    assert post.url.path == "/admin/realms/fiction/users/user-1/role-mappings/clients/client-uuid"
    assert json.loads(post.content) == [{"id": "role-uuid", "name": "author"}]


def test_realm_role_assignment_uses_realm_mapping() -> None:
    server = FakeKeycloak()

    result = _client(server).assign_realm_role(user_id="user-1", role_name="reader")

    assert result.is_success
    assert server.paths()[-1] == "/admin/realms/fiction/users/user-1/role-mappings/realm"


def test_token_and_representations_are_cached() -> None:
    server = FakeKeycloak()
    client = _client(server)

    client.assign_client_role(user_id="user-1", client_id="fiction-api", role_name="author")
    client.assign_client_role(user_id="user-2", client_id="fiction-api", role_name="author")

    paths = server.paths()
    assert paths.count("/realms/fiction/protocol/openid-connect/token") == 1
    assert paths.count("/admin/realms/fiction/clients") == 1
    assert paths.count("/admin/realms/fiction/clients/client-uuid/roles/author") == 1


def test_token_is_refreshed_inside_the_threshold() -> None:
    server = FakeKeycloak(expires_in=60)
    clock = FakeClock()
    client = _client(server, clock=clock)

    assert client.access_token().unwrap() == "admin-token"
    clock.now += 20
    client.access_token()
    clock.now += 15
    client.access_token()

    assert server.paths().count("/realms/fiction/protocol/openid-connect/token") == 2


def test_token_fetch_failure_is_reported() -> None:
    server = FakeKeycloak(token_status=401)

    result = _client(server).assign_client_role(
        user_id="user-1", client_id="fiction-api", role_name="author"
    )

    assert result.unwrap_error().code == "Keycloak.TokenFetch"


def test_missing_role_maps_to_resource_role_error() -> None:
    server = FakeKeycloak()

    result = _client(server).assign_client_role(
        user_id="user-1", client_id="fiction-api", role_name="editor"
    )

    assert result.unwrap_error().code == "Keycloak.GetResourceRole"


def test_identity_admin_needs_url_and_credentials(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("IHFICTION_KEYCLOAK_URL", raising=False)
    monkeypatch.setenv("IHFICTION_KEYCLOAK_CLIENT_ID", "fiction-admin")
    monkeypatch.setenv("IHFICTION_KEYCLOAK_CLIENT_SECRET", "secret")
    assert create_identity_admin() is None

    monkeypatch.setenv("IHFICTION_KEYCLOAK_URL", "http://keycloak.test")
    monkeypatch.setenv("IHFICTION_KEYCLOAK_REALM", "fiction")
    settings = KeycloakSettings.from_env()

    assert isinstance(create_identity_admin(), KeycloakAdminClient)
    assert settings is not None
    assert settings.base_url == "http://keycloak.test/"
    assert settings.realm == "fiction"
