# relay/config.py
"""
Runtime configuration for the relay service.

Values are read once from the environment (after .env is loaded) and passed
explicitly to the components that need them.

Env vars:
- PORT (default: 5000)
- RELAY_TIMEOUT_SECONDS (default: 20)
- RELAY_MAX_RESPONSE_BYTES (default: 5 MiB)
- RELAY_MAX_REDIRECTS (default: 5)
- RELAY_ALLOWED_SCHEMES (default: http,https)
- MAX_REQUEST_BODY_BYTES (default: 2 MiB)
- STORE_BACKEND — "sql" (default) or "supabase"
- DATABASE_URL (default: sqlite:///./relay.db)
- SUPABASE_URL, SUPABASE_ANON_KEY, SUPABASE_SERVICE_ROLE_KEY
- STORE_TIMEOUT_SECONDS (default: 10)
- HISTORY_LIMIT (default: 25)
- MOCK_AUTH (default: false) — accept any bearer token in dev
- CORS_ORIGINS (default: *)
"""

import os
from typing import List, Optional, Tuple

from pydantic import BaseModel, Field, field_validator

MIB = 1024 * 1024


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


def _env_list(name: str, default: str) -> List[str]:
    return [p.strip() for p in os.getenv(name, default).split(",") if p.strip()]


class Settings(BaseModel):
    port: int = 5000

    relay_timeout_seconds: float = 20.0
    max_response_bytes: int = 5 * MIB
    max_redirects: int = 5
    allowed_schemes: Tuple[str, ...] = ("http", "https")
    max_request_body_bytes: int = 2 * MIB

    store_backend: str = "sql"
    database_url: str = "sqlite:///./relay.db"
    supabase_url: Optional[str] = None
    supabase_anon_key: Optional[str] = None
    supabase_service_role_key: Optional[str] = None
    store_timeout_seconds: float = 10.0
    history_limit: int = 25

    mock_auth: bool = False
    cors_origins: List[str] = Field(default_factory=lambda: ["*"])

    @field_validator("store_backend")
    @classmethod
    def backend_must_be_known(cls, v):
        v = v.strip().lower()
        if v not in ("sql", "supabase"):
            raise ValueError("store_backend must be 'sql' or 'supabase'")
        return v

    @field_validator("allowed_schemes")
    @classmethod
    def schemes_lowercase(cls, v):
        return tuple(s.lower() for s in v)

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            port=int(os.getenv("PORT", "5000")),
            relay_timeout_seconds=float(os.getenv("RELAY_TIMEOUT_SECONDS", "20")),
            max_response_bytes=int(os.getenv("RELAY_MAX_RESPONSE_BYTES", str(5 * MIB))),
            max_redirects=int(os.getenv("RELAY_MAX_REDIRECTS", "5")),
            allowed_schemes=tuple(_env_list("RELAY_ALLOWED_SCHEMES", "http,https")),
            max_request_body_bytes=int(os.getenv("MAX_REQUEST_BODY_BYTES", str(2 * MIB))),
            store_backend=os.getenv("STORE_BACKEND", "sql"),
            database_url=os.getenv("DATABASE_URL", "sqlite:///./relay.db"),
            supabase_url=os.getenv("SUPABASE_URL") or None,
            supabase_anon_key=os.getenv("SUPABASE_ANON_KEY") or None,
            supabase_service_role_key=os.getenv("SUPABASE_SERVICE_ROLE_KEY") or None,
            store_timeout_seconds=float(os.getenv("STORE_TIMEOUT_SECONDS", "10")),
            history_limit=int(os.getenv("HISTORY_LIMIT", "25")),
            mock_auth=_env_flag("MOCK_AUTH", "false"),
            cors_origins=_env_list("CORS_ORIGINS", "*"),
        )
