from __future__ import annotations

import asyncio

import httpx
import pytest

from dailytracker import auth


@pytest.mark.parametrize(
    "header, expected",
    [
        ("Bearer abc123", "abc123"),
        ("bearer   abc123 ", "abc123"),
        ("Basic abc123", None),
        ("Bearer ", None),
        (None, None),
    ],
)
def test_bearer_token(header, expected) -> None:
    assert auth.bearer_token(header) == expected


@pytest.fixture()
def auth_service(monkeypatch: pytest.MonkeyPatch):
    """Route the auth client through an in-process handler."""

    monkeypatch.setattr(auth, "AUTH_SERVICE_URL", "https://auth.example.com")
    monkeypatch.setattr(auth, "AUTH_SERVICE_KEY", "anon-key")
    seen = []
    real_client = httpx.AsyncClient

    def _install(handler):
        def _handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return handler(request)

        monkeypatch.setattr(
            auth.httpx,
            "AsyncClient",
            lambda **kwargs: real_client(transport=httpx.MockTransport(_handler), **kwargs),
        )
        return seen

    return _install


def test_fetch_user_returns_the_token_owner(auth_service) -> None:
    seen = auth_service(
        lambda request: httpx.Response(200, json={"id": "abc", "email": "a@b.c"})
    )

    user = asyncio.run(auth.fetch_user("token-1"))

    assert user == auth.AuthenticatedUser(id="abc", email="a@b.c")
    assert seen[0].url == "https://auth.example.com/auth/v1/user"
    assert seen[0].headers["Authorization"] == "Bearer token-1"
    assert seen[0].headers["apikey"] == "anon-key"


def test_rejected_token_yields_none(auth_service) -> None:
    auth_service(lambda request: httpx.Response(401, json={"message": "invalid"}))

    assert asyncio.run(auth.fetch_user("expired")) is None


def test_transport_failure_yields_none(auth_service) -> None:
    def _fail(request):
        raise httpx.ConnectError("unreachable", request=request)

    auth_service(_fail)

    assert asyncio.run(auth.fetch_user("token")) is None


def test_missing_settings_raise(monkeypatch) -> None:
    monkeypatch.setattr(auth, "AUTH_SERVICE_KEY", "")

    with pytest.raises(auth.ConfigurationError):
        asyncio.run(auth.fetch_user("token"))
