# relay/monitoring.py
"""
Centralized monitoring: Prometheus metrics, structured JSON logging, optional Sentry.

Env vars:
- PROMETHEUS_ENABLED (default: true)
- SENTRY_DSN (optional)
- LOG_AS_JSON (default: true)
- LOG_LEVEL (default: INFO)
- ENVIRONMENT (default: development)
"""

import os
import logging
import time
from typing import Tuple

import sentry_sdk
from prometheus_client import (
    Counter, Histogram,
    generate_latest, CONTENT_TYPE_LATEST, REGISTRY,
)
from pythonjsonlogger.json import JsonFormatter

# --- ENV flags
PROMETHEUS_ENABLED = os.getenv("PROMETHEUS_ENABLED", "true").lower() in ("1", "true", "yes")
SENTRY_DSN = os.getenv("SENTRY_DSN", None)
LOG_AS_JSON = os.getenv("LOG_AS_JSON", "true").lower() in ("1", "true", "yes")
ENVIRONMENT = os.getenv("ENVIRONMENT", "development")


# --- Logger setup
def setup_logger(name: str = "relay", level: int = None) -> logging.Logger:
    """Configure the package logger; modules log through `relay.*` children."""
    level = logging.getLevelName(os.getenv("LOG_LEVEL", "INFO")) if level is None else level
    logger = logging.getLogger(name)
    logger.setLevel(level)
    if not logger.handlers:
        handler = logging.StreamHandler()
        if LOG_AS_JSON:
            handler.setFormatter(JsonFormatter("%(asctime)s %(levelname)s %(name)s %(message)s"))
        logger.addHandler(handler)
    return logger


logger = setup_logger()

# --- Sentry (optional)
if SENTRY_DSN:
    sentry_sdk.init(dsn=SENTRY_DSN, environment=ENVIRONMENT)
    logger.info("Sentry initialized")


# --- Prometheus metrics
REQUEST_COUNT = Counter(
    "relay_http_requests_total",
    "Total inbound HTTP requests",
    ["method", "endpoint", "status"],
)

REQUEST_LATENCY = Histogram(
    "relay_http_request_latency_seconds",
    "Inbound request latency in seconds",
    ["endpoint"],
)

AUTH_FAILURES = Counter(
    "relay_auth_failures_total",
    "Requests rejected by the auth gate",
)

RELAY_OUTCOMES = Counter(
    "relay_outbound_total",
    "Outbound relay attempts by outcome",
    ["outcome"],
)

RELAY_LATENCY = Histogram(
    "relay_outbound_latency_seconds",
    "Outbound relay latency (dispatch to full body read)",
)

HISTORY_WRITE_FAILURES = Counter(
    "relay_history_write_failures_total",
    "History records that could not be persisted",
)


# --- Helper wrappers (never crash the app)
def observe_request(start_ts: float, endpoint: str, method: str, status: str):
    try:
        REQUEST_LATENCY.labels(endpoint=endpoint).observe(time.time() - start_ts)
        REQUEST_COUNT.labels(method=method, endpoint=endpoint, status=status).inc()
    except Exception:
        pass


def inc_auth_failure():
    try:
        AUTH_FAILURES.inc()
    except Exception:
        pass


def observe_relay(outcome: str, elapsed_seconds: float = None):
    try:
        RELAY_OUTCOMES.labels(outcome=outcome).inc()
        if elapsed_seconds is not None:
            RELAY_LATENCY.observe(elapsed_seconds)
    except Exception:
        pass


def inc_history_write_failure():
    try:
        HISTORY_WRITE_FAILURES.inc()
    except Exception:
        pass


def prometheus_metrics_response() -> Tuple[bytes, str]:
    """Return (body_bytes, content_type) for Prometheus scrape."""
    try:
        return generate_latest(REGISTRY), CONTENT_TYPE_LATEST
    except Exception:
        return b"", CONTENT_TYPE_LATEST
