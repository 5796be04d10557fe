# api/index.py
"""
Vercel Serverless Function adapter.

Vercel's Python runtime looks for a variable named `app` (ASGI) or `handler` (WSGI).
FastAPI is ASGI, so we just re-export it as `app`.
"""
import sys
import os

# Ensure project root is on the Python path so `relay.*` imports resolve.
# On Vercel the layout is /vercel/path0/ (project root).
ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

# Serverless instances are short-lived; keep metrics off by default
os.environ.setdefault("PROMETHEUS_ENABLED", "false")

# Use /tmp for the local SQL store on Vercel (filesystem is read-only except /tmp).
# Production deployments set STORE_BACKEND=supabase instead.
if not os.environ.get("DATABASE_URL"):
    os.environ["DATABASE_URL"] = "sqlite:////tmp/relay.db"

# Load .env if present (Vercel injects env vars natively, but this helps local testing)
from dotenv import load_dotenv
load_dotenv(os.path.join(ROOT, ".env"))

# Import the FastAPI app — Vercel looks for the `app` variable
from relay.app import app  # noqa: F401, E402
