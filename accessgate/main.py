from fastapi import FastAPI
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from timing_asgi import TimingMiddleware, TimingClient  # type: ignore
from timing_asgi.integrations import StarletteScopeToName  # type: ignore

from accessgate.core import config, request_context
from accessgate.core.database.engine import init_db
from accessgate.core.exceptions import AccessGateError, PolicyDenied
from accessgate.core.request_context import RequestContextMiddleware
from accessgate.features.catalog.routes import router as feature_router
from accessgate.features.permissions.routes import router as permission_router
from accessgate.features.roles.routes import router as role_router
from accessgate.features.users.routes import router as user_router
from accessgate.features.users.dependencies import get_authorization_header
from accessgate.utils import get_logger, get_request_logs


log = get_logger(__name__)
log.info("Initializing server")
app = FastAPI(
    title="accessgate",
    description="Feature-scoped authorization engine",
    version="0.1.0",
    docs_url="/docs" if config.ENABLE_DOCS else None,
    redoc_url="/redoc" if config.ENABLE_DOCS else None,
    openapi_url="/openapi.json" if config.ENABLE_DOCS else None
)
limiter = Limiter(key_func=get_authorization_header)
app.state.limiter = limiter


class PrintTimings(TimingClient):
    def timing(self, metric_name, timing, tags):
        log.debug(dict(route=metric_name.removeprefix("main.accessgate.features."), timing=timing, tags=tags))


app.add_middleware(TimingMiddleware, client=PrintTimings(), metric_namer=StarletteScopeToName("main", app))

if not config.JWT_SECRET:
    log.error("JWT_SECRET is not set; every authenticated request will be rejected")
if config.ENABLE_DOCS:
    log.warning("Docs enabled")
if config.ALLOW_ORIGIN:
    log.warning("Setting allow origin to %s", config.ALLOW_ORIGIN)
    origins = [config.ALLOW_ORIGIN]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

# Outermost middleware
app.add_middleware(RequestContextMiddleware)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(_request: Request, exc: RequestValidationError):
    errors = dict()
    for error in exc.errors():
        if "loc" not in error or "msg" not in error:
            continue
        key = error["loc"][-1]
        if key == "__root__":
            key = "root"
        errors[key] = error["msg"]
    log.info("Request validation error %s", errors)
    return JSONResponse(status_code=400, content=jsonable_encoder(errors))


@app.exception_handler(AccessGateError)
async def accessgate_exception_handler(request: Request, exc: AccessGateError):
    if isinstance(exc, PolicyDenied):
        log.info("Forbidden %s %s: %s", request.method, request.url.path, exc.message)
    elif exc.status_code >= 500:
        steps = get_request_logs()
        log.error(
            "%s on %s %s: %s; request steps: %s",
            type(exc).__name__, request.method, request.url.path, exc.message, steps,
        )
    content = {"detail": exc.message, "code": exc.code}
    request_id = request_context.get_correlation_id()
    if request_id:
        content["request_id"] = request_id
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return JSONResponse(status_code=exc.status_code, content=content, headers=headers)


@app.exception_handler(RateLimitExceeded)
def rate_limit_exceeded_handler(_request: Request, _exc: RateLimitExceeded) -> Response:
    return JSONResponse({"error": "You are going too fast"}, status_code=429)


@app.on_event("startup")
async def startup():
    """Initialize database on application startup."""
    log.info("Initializing database...")
    await init_db()
    log.info("Database initialized successfully")


@app.get("/")
async def root():
    """Root endpoint - API health check."""
    return {
        "message": "accessgate API",
        "version": "0.1.0",
        "status": "online",
        "docs": "/docs" if config.ENABLE_DOCS else None,
        "authentication": {
            "info": "Protected endpoints require Bearer token in Authorization header",
            "protected_endpoints": ["/features/*", "/roles/*", "/users/*", "/permissions/*"],
        },
    }


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy"}


app.include_router(feature_router, prefix="/features", tags=["features"])
app.include_router(role_router, prefix="/roles", tags=["roles"])
app.include_router(user_router, prefix="/users", tags=["users"])
app.include_router(permission_router, prefix="/permissions", tags=["permissions"])
