# relay/identity.py
"""
Bearer credential → caller identity.

The resolver never raises: a missing or malformed Authorization header yields
None without contacting the identity service, and any verification failure is
logged and folded into None.
"""

import logging
from dataclasses import dataclass
from typing import Optional

import httpx

logger = logging.getLogger(__name__)

BEARER_PREFIX = "Bearer "


@dataclass(frozen=True)
class Identity:
    id: str
    email: Optional[str] = None


def extract_bearer_token(header: Optional[str]) -> Optional[str]:
    if not header or not header.startswith(BEARER_PREFIX):
        return None
    token = header[len(BEARER_PREFIX):]
    return token or None


class IdentityVerifier:
    """Verifies a bearer token with the identity service."""

    async def verify(self, token: str) -> Optional[Identity]:
        raise NotImplementedError


class MockIdentityVerifier(IdentityVerifier):
    """Dev-only verifier: every non-empty token is its own identity."""

    async def verify(self, token: str) -> Optional[Identity]:
        return Identity(id=token)


class SupabaseIdentityVerifier(IdentityVerifier):
    """Asks Supabase Auth (`GET /auth/v1/user`) who the token belongs to."""

    def __init__(self, supabase_url: str, api_key: str, timeout: float = 10.0,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.user_url = supabase_url.rstrip("/") + "/auth/v1/user"
        self.api_key = api_key
        self.timeout = timeout
        self._transport = transport

    async def verify(self, token: str) -> Optional[Identity]:
        headers = {"apikey": self.api_key, "Authorization": f"{BEARER_PREFIX}{token}"}
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            resp = await client.get(self.user_url, headers=headers)
        if resp.status_code != 200:
            logger.warning("Token verification rejected", extra={"status": resp.status_code})
            return None
        data = resp.json()
        user_id = data.get("id") if isinstance(data, dict) else None
        if not user_id:
            logger.warning("Token verification returned no user id")
            return None
        return Identity(id=str(user_id), email=data.get("email"))


class IdentityResolver:
    def __init__(self, verifier: IdentityVerifier):
        self.verifier = verifier

    async def resolve(self, authorization: Optional[str]) -> Optional[Identity]:
        token = extract_bearer_token(authorization)
        if token is None:
            return None
        try:
            return await self.verifier.verify(token)
        except Exception:
            logger.exception("Auth error while verifying bearer token")
            return None
