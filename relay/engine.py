# relay/engine.py
"""
Request relay engine.

relay(identity, description) performs exactly one outbound HTTP call for an
authenticated caller and returns the target's response as a RelayOutcome.

Guarantees:
- The URL is checked before anything touches the network (InvalidTarget).
- One wall-clock bound covers connect, send and the full body read
  (RelayTimeout); the body is capped while streaming (ResponseTooLarge).
- Every HTTP status the target returns, 4xx/5xx included, is a successful
  relay. Only transport-level problems raise RelayTransportFailure.
- The History Record write happens after the outcome is final and can never
  change it: failures there are logged and counted only.
- No retries.
"""

import asyncio
import json
import logging
import time
from typing import Any, Dict, Optional

import httpx

from relay import monitoring
from relay.config import Settings
from relay.errors import (
    InvalidRequest, InvalidTarget, RelayTimeout, RelayTransportFailure, ResponseTooLarge,
)
from relay.gateway import RecordStoreGateway
from relay.identity import Identity
from relay.schemas import RelayOutcome, RequestDescription
from relay.url_safety import is_safe_url

logger = logging.getLogger(__name__)

# computed by the HTTP client from the actual target and body
DROPPED_REQUEST_HEADERS = frozenset({"host", "content-length"})


def _outbound_headers(headers: Dict[str, str]) -> Dict[str, str]:
    return {k: v for k, v in headers.items() if k.lower() not in DROPPED_REQUEST_HEADERS}


def _body_kwargs(body: Any) -> Dict[str, Any]:
    if body is None:
        return {}
    if isinstance(body, str):
        return {"content": body.encode("utf-8")}
    return {"json": body}


def _decode_body(raw: bytes, encoding: Optional[str]) -> Any:
    """JSON when the payload parses as JSON, text otherwise."""
    if not raw:
        return ""
    try:
        text = raw.decode(encoding or "utf-8", errors="replace")
    except LookupError:
        text = raw.decode("utf-8", errors="replace")
    try:
        return json.loads(text)
    except ValueError:
        return text


class RequestRelayEngine:
    def __init__(self, settings: Settings, gateway: RecordStoreGateway,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.timeout_seconds = settings.relay_timeout_seconds
        self.max_response_bytes = settings.max_response_bytes
        self.max_redirects = settings.max_redirects
        self.allowed_schemes = settings.allowed_schemes
        self.store_timeout_seconds = settings.store_timeout_seconds
        self.gateway = gateway
        self._transport = transport

    async def relay(self, identity: Identity, description: RequestDescription) -> RelayOutcome:
        url = description.url
        if not is_safe_url(url, self.allowed_schemes):
            monitoring.observe_relay("invalid_target")
            raise InvalidTarget()

        log_extra = {"user_id": identity.id, "method": description.method, "url": url}
        try:
            outcome = await asyncio.wait_for(self._execute(url.strip(), description),
                                             timeout=self.timeout_seconds)
        except httpx.InvalidURL as e:
            monitoring.observe_relay("invalid_target")
            logger.info("Target URL rejected by HTTP client", extra={**log_extra, "error": str(e)})
            raise InvalidTarget() from e
        except InvalidRequest as e:
            monitoring.observe_relay("invalid_request")
            logger.info("Request description rejected by HTTP client",
                        extra={**log_extra, "error": repr(e.__cause__)})
            raise
        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            monitoring.observe_relay("timeout")
            logger.warning("Relay timed out", extra={**log_extra, "timeout_seconds": self.timeout_seconds})
            raise RelayTimeout() from e
        except ResponseTooLarge:
            monitoring.observe_relay("too_large")
            logger.warning("Relay response exceeded size limit",
                           extra={**log_extra, "max_bytes": self.max_response_bytes})
            raise
        except httpx.HTTPError as e:
            monitoring.observe_relay("transport_error")
            logger.error("Relay transport failure", extra={**log_extra, "error": repr(e)})
            raise RelayTransportFailure() from e

        monitoring.observe_relay("ok", outcome.time / 1000.0)
        logger.info("Relay completed", extra={**log_extra, "status": outcome.status, "time_ms": outcome.time})
        await self._record(identity, description, outcome)
        return outcome

    async def _execute(self, url: str, description: RequestDescription) -> RelayOutcome:
        async with httpx.AsyncClient(
            transport=self._transport,
            timeout=self.timeout_seconds,
            follow_redirects=True,
            max_redirects=self.max_redirects,
        ) as client:
            target = httpx.URL(url)
            if description.params:
                target = target.copy_merge_params(description.params)
            try:
                request = client.build_request(
                    description.method,
                    target,
                    headers=_outbound_headers(description.headers),
                    **_body_kwargs(description.body),
                )
            except (UnicodeEncodeError, TypeError, ValueError) as e:
                raise InvalidRequest() from e
            started = time.perf_counter()
            response = await client.send(request, stream=True)
            try:
                raw = await self._read_capped(response)
            finally:
                await response.aclose()
            elapsed_ms = int(round((time.perf_counter() - started) * 1000))

        return RelayOutcome(
            status=response.status_code,
            status_text=response.reason_phrase,
            headers=dict(response.headers.items()),
            body=_decode_body(raw, response.charset_encoding),
            time=elapsed_ms,
        )

    async def _read_capped(self, response: httpx.Response) -> bytes:
        declared = response.headers.get("content-length", "")
        if declared.isdigit() and int(declared) > self.max_response_bytes:
            raise ResponseTooLarge()
        chunks = []
        total = 0
        async for chunk in response.aiter_bytes():
            total += len(chunk)
            if total > self.max_response_bytes:
                raise ResponseTooLarge()
            chunks.append(chunk)
        return b"".join(chunks)

    async def _record(self, identity: Identity, description: RequestDescription, outcome: RelayOutcome):
        try:
            await asyncio.wait_for(
                self.gateway.log_history(identity, description, outcome),
                timeout=self.store_timeout_seconds,
            )
        except Exception:
            # the caller already has its outcome; a lost history row is only reported
            monitoring.inc_history_write_failure()
            logger.exception("Failed to persist history record",
                             extra={"user_id": identity.id, "url": description.url})
