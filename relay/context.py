# relay/context.py
from dataclasses import dataclass
from typing import Optional

import httpx

from relay.config import Settings
from relay.engine import RequestRelayEngine
from relay.gateway import RecordStoreGateway
from relay.identity import (
    IdentityResolver, IdentityVerifier, MockIdentityVerifier, SupabaseIdentityVerifier,
)
from relay.store import RecordStore, SqlRecordStore, SupabaseRecordStore


@dataclass
class AppContext:
    """Everything a request handler needs, built once per app."""

    settings: Settings
    identity_resolver: IdentityResolver
    gateway: RecordStoreGateway
    engine: RequestRelayEngine

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        store: Optional[RecordStore] = None,
        verifier: Optional[IdentityVerifier] = None,
        relay_transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "AppContext":
        store = store or build_store(settings)
        verifier = verifier or build_verifier(settings)
        gateway = RecordStoreGateway(store, history_limit=settings.history_limit)
        return cls(
            settings=settings,
            identity_resolver=IdentityResolver(verifier),
            gateway=gateway,
            engine=RequestRelayEngine(settings, gateway, transport=relay_transport),
        )


def build_store(settings: Settings) -> RecordStore:
    if settings.store_backend == "supabase":
        if not (settings.supabase_url and settings.supabase_service_role_key):
            raise ValueError("STORE_BACKEND=supabase needs SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY")
        return SupabaseRecordStore(
            settings.supabase_url,
            settings.supabase_service_role_key,
            timeout=settings.store_timeout_seconds,
        )
    return SqlRecordStore(settings.database_url)


def build_verifier(settings: Settings) -> IdentityVerifier:
    if settings.mock_auth:
        return MockIdentityVerifier()
    if not settings.supabase_url:
        raise ValueError("SUPABASE_URL is required unless MOCK_AUTH=true")
    return SupabaseIdentityVerifier(
        settings.supabase_url,
        settings.supabase_anon_key or settings.supabase_service_role_key or "",
        timeout=settings.store_timeout_seconds,
    )
