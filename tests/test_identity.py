import asyncio

import httpx
import pytest

from relay.identity import (
    Identity, IdentityResolver, IdentityVerifier, MockIdentityVerifier,
    SupabaseIdentityVerifier, extract_bearer_token,
)


class CountingVerifier(IdentityVerifier):
    def __init__(self, result=None, error=None):
        self.result = result
        self.error = error
        self.calls = 0

    async def verify(self, token):
        self.calls += 1
        if self.error:
            raise self.error
        return self.result


@pytest.mark.parametrize("header,expected", [
    ("Bearer abc.def", "abc.def"),
    ("Bearer ", None),
    ("bearer abc", None),
    ("Basic dXNlcjpwdw==", None),
    ("abc", None),
    ("", None),
    (None, None),
])
def test_extract_bearer_token(header, expected):
    assert extract_bearer_token(header) == expected


def test_missing_credential_does_not_contact_verifier():
    verifier = CountingVerifier(result=Identity(id="u1"))
    resolver = IdentityResolver(verifier)
    assert asyncio.run(resolver.resolve(None)) is None
    assert asyncio.run(resolver.resolve("Token xyz")) is None
    assert verifier.calls == 0


def test_valid_credential_resolves_identity():
    resolver = IdentityResolver(CountingVerifier(result=Identity(id="u1")))
    assert asyncio.run(resolver.resolve("Bearer good")) == Identity(id="u1")


def test_verifier_errors_become_none():
    verifier = CountingVerifier(error=RuntimeError("identity service down"))
    resolver = IdentityResolver(verifier)
    assert asyncio.run(resolver.resolve("Bearer good")) is None
    assert verifier.calls == 1


def test_mock_verifier_uses_token_as_identity():
    assert asyncio.run(MockIdentityVerifier().verify("dev-user")) == Identity(id="dev-user")


def test_supabase_verifier_accepts_known_user():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={"id": "user-42", "email": "a@b.c"})

    verifier = SupabaseIdentityVerifier("https://proj.supabase.co/", "anon-key",
                                        transport=httpx.MockTransport(handler))
    identity = asyncio.run(verifier.verify("jwt-token"))

    assert identity == Identity(id="user-42", email="a@b.c")
    assert str(seen[0].url) == "https://proj.supabase.co/auth/v1/user"
    assert seen[0].headers["apikey"] == "anon-key"
    assert seen[0].headers["authorization"] == "Bearer jwt-token"


@pytest.mark.parametrize("response", [
    httpx.Response(401, json={"msg": "invalid JWT"}),
    httpx.Response(200, json={"email": "no-id@b.c"}),
])
def test_supabase_verifier_rejects_bad_tokens(response):
    verifier = SupabaseIdentityVerifier("https://proj.supabase.co", "anon-key",
                                        transport=httpx.MockTransport(lambda request: response))
    assert asyncio.run(verifier.verify("expired")) is None


def test_resolver_swallows_identity_service_outage():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    verifier = SupabaseIdentityVerifier("https://proj.supabase.co", "anon-key",
                                        transport=httpx.MockTransport(handler))
    assert asyncio.run(IdentityResolver(verifier).resolve("Bearer t")) is None
