# relay/app.py
import time
from typing import Optional

# Load .env BEFORE building settings (they are read from the environment)
from dotenv import load_dotenv
load_dotenv()

from fastapi import APIRouter, Depends, FastAPI, Path, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse, Response

from relay import monitoring
from relay.config import Settings
from relay.context import AppContext
from relay.errors import InvalidRequest, RelayServiceError, Unauthorized
from relay.identity import Identity
from relay.schemas import (
    CollectionCreate, CollectionItemCreate, EnvironmentCreate, RequestDescription,
)

logger = monitoring.logger

# Reachable without a bearer token
PUBLIC_PATHS = frozenset({"/health", "/metrics", "/docs", "/redoc", "/openapi.json"})

# Metrics label for requests that never reached a route (401s, 404s)
UNMATCHED_ROUTE = "unmatched"

SUCCESS = {"success": True}

router = APIRouter()


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------
def get_context(request: Request) -> AppContext:
    return request.app.state.context


def current_identity(request: Request) -> Identity:
    """Identity attached by the auth gate; protected routes depend on this."""
    identity = getattr(request.state, "identity", None)
    if identity is None:
        raise Unauthorized()
    return identity


# ---------------------------------------------------------------------------
# Middleware
# ---------------------------------------------------------------------------
def _route_label(request: Request) -> str:
    """Route template for metrics labels; ids never become label values."""
    route = request.scope.get("route")
    return getattr(route, "path", None) or UNMATCHED_ROUTE


def _install_middleware(app: FastAPI, context: AppContext):
    settings = context.settings

    # Registered innermost first: auth gate runs after CORS/metrics, before
    # any body is read or handler invoked.
    @app.middleware("http")
    async def request_body_limit_middleware(request: Request, call_next):
        declared = request.headers.get("content-length", "")
        if declared.isdigit() and int(declared) > settings.max_request_body_bytes:
            return JSONResponse(status_code=413, content={"error": "Request body too large"})
        return await call_next(request)

    @app.middleware("http")
    async def auth_gate_middleware(request: Request, call_next):
        if request.method == "OPTIONS" or request.url.path in PUBLIC_PATHS:
            return await call_next(request)

        identity = await context.identity_resolver.resolve(request.headers.get("authorization"))
        if identity is None:
            monitoring.inc_auth_failure()
            return JSONResponse(status_code=401, content={"error": Unauthorized.public_message})

        request.state.identity = identity
        return await call_next(request)

    @app.middleware("http")
    async def metrics_middleware(request: Request, call_next):
        start = time.time()
        method = request.method
        status = "500"
        try:
            response = await call_next(request)
            status = str(response.status_code)
            return response
        except Exception:
            logger.exception("Unhandled exception in request", extra={"path": request.url.path})
            raise
        finally:
            monitoring.observe_request(start, _route_label(request), method, status)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )


def _install_error_handlers(app: FastAPI):
    async def service_error_handler(request: Request, exc: RelayServiceError):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.public_message})

    async def validation_error_handler(request: Request, exc: RequestValidationError):
        logger.info("Rejected malformed request body", extra={"path": request.url.path, "errors": str(exc.errors())})
        return JSONResponse(status_code=400, content={"error": InvalidRequest.public_message})

    async def unexpected_error_handler(request: Request, exc: Exception):
        logger.exception("Unexpected error", extra={"path": request.url.path})
        return JSONResponse(status_code=500, content={"error": "Internal server error"})

    app.add_exception_handler(RelayServiceError, service_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unexpected_error_handler)


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------
@router.get("/health")
async def health():
    return {"status": "ok", "message": "Backend is running"}


@router.get("/metrics")
async def metrics():
    if not monitoring.PROMETHEUS_ENABLED:
        return PlainTextResponse("Prometheus disabled", status_code=404)
    payload, content_type = monitoring.prometheus_metrics_response()
    return Response(content=payload, media_type=content_type)


@router.post("/proxy")
async def proxy(description: RequestDescription,
                identity: Identity = Depends(current_identity),
                ctx: AppContext = Depends(get_context)):
    """
    POST /proxy
    Body: { "url": "...", "method": "GET", "headers": {}, "body": ..., "params": {} }
    Any status returned by the target is relayed as-is.
    """
    outcome = await ctx.engine.relay(identity, description)
    return JSONResponse(status_code=200, content=outcome.to_response())


@router.get("/history")
async def list_history(identity: Identity = Depends(current_identity),
                       ctx: AppContext = Depends(get_context)):
    return await ctx.gateway.list_history(identity)


@router.delete("/history/{record_id}")
async def delete_history(record_id: str = Path(..., description="History record id"),
                         identity: Identity = Depends(current_identity),
                         ctx: AppContext = Depends(get_context)):
    await ctx.gateway.delete_history(identity, record_id)
    return SUCCESS


@router.post("/collections")
async def create_collection(req: CollectionCreate,
                            identity: Identity = Depends(current_identity),
                            ctx: AppContext = Depends(get_context)):
    return await ctx.gateway.create_collection(identity, req.name)


@router.get("/collections")
async def list_collections(identity: Identity = Depends(current_identity),
                           ctx: AppContext = Depends(get_context)):
    return await ctx.gateway.list_collections(identity)


@router.delete("/collections/items/{item_id}")
async def delete_collection_item(item_id: str,
                                 identity: Identity = Depends(current_identity),
                                 ctx: AppContext = Depends(get_context)):
    await ctx.gateway.delete_collection_item(identity, item_id)
    return SUCCESS


@router.delete("/collections/{collection_id}")
async def delete_collection(collection_id: str,
                            identity: Identity = Depends(current_identity),
                            ctx: AppContext = Depends(get_context)):
    """Removes the collection's items, then the collection (not atomic)."""
    await ctx.gateway.delete_collection(identity, collection_id)
    return SUCCESS


@router.post("/collections/{collection_id}/items")
async def add_collection_item(collection_id: str, req: CollectionItemCreate,
                              identity: Identity = Depends(current_identity),
                              ctx: AppContext = Depends(get_context)):
    logger.info("Saving collection item", extra={"collection_id": collection_id, "user_id": identity.id})
    return await ctx.gateway.add_collection_item(identity, collection_id, req.request)


@router.get("/collections/{collection_id}/items")
async def list_collection_items(collection_id: str,
                                identity: Identity = Depends(current_identity),
                                ctx: AppContext = Depends(get_context)):
    return await ctx.gateway.list_collection_items(identity, collection_id)


@router.post("/env")
async def create_environment(req: EnvironmentCreate,
                             identity: Identity = Depends(current_identity),
                             ctx: AppContext = Depends(get_context)):
    return await ctx.gateway.create_environment(identity, req.name, req.variables)


@router.get("/env")
async def list_environments(identity: Identity = Depends(current_identity),
                            ctx: AppContext = Depends(get_context)):
    return await ctx.gateway.list_environments(identity)


# ---------------------------------------------------------------------------
# App factory
# ---------------------------------------------------------------------------
def create_app(context: Optional[AppContext] = None) -> FastAPI:
    context = context or AppContext.from_settings(Settings.from_env())
    app = FastAPI(title="Request Relay API")
    app.state.context = context
    _install_middleware(app, context)
    _install_error_handlers(app)
    app.include_router(router)
    return app


app = create_app()
