from fastapi import FastAPI
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from slowapi.errors import RateLimitExceeded
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from timing_asgi import TimingMiddleware, TimingClient  # type: ignore
from timing_asgi.integrations import StarletteScopeToName  # type: ignore

from app.core import config
from app.core.database.engine import init_db
from app.core.errors import AppError, UnauthorizedError
from app.core.rate_limit import limiter
from app.features.users.routes import router as user_router, auth_router
from app.features.organizations.routes import router as organization_router, members_router
from app.features.permissions.routes import router as permission_router, roles_router
from app.features.projects.routes import router as project_router
from app.utils import get_logger


log = get_logger(__name__)
log.info("Initializing server")
app = FastAPI(
    title="Back-office API",
    description="Multi-tenant back-office API with organization-scoped roles and permissions",
    version="0.1.0",
    docs_url="/docs" if config.ENABLE_DOCS else None,
    redoc_url="/redoc" if config.ENABLE_DOCS else None,
    openapi_url="/openapi.json" if config.ENABLE_DOCS else None
)
app.state.limiter = limiter


class LogTimings(TimingClient):
    """Send per-route request timings to the debug log."""

    def timing(self, metric_name, timing, tags):
        route = metric_name.removeprefix("backoffice.app.features.")
        log.debug("timing route=%s seconds=%.4f tags=%s", route, timing, tags)


app.add_middleware(TimingMiddleware, client=LogTimings(), metric_namer=StarletteScopeToName("backoffice", app))

if config.ENABLE_DOCS:
    log.warning("Docs enabled")
if config.ALLOW_ORIGIN:
    origins = [origin.strip() for origin in config.ALLOW_ORIGIN.split(",") if origin.strip()]
    log.warning("Allowing CORS origins %s", origins)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


@app.exception_handler(AppError)
async def app_error_handler(_request: Request, exc: AppError):
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, UnauthorizedError) else None
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail}, headers=headers)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(_request: Request, exc: RequestValidationError):
    # {"permission_configs.0.action": "Input should be 'manage', ..."}
    errors = dict()
    for error in exc.errors():
        if "loc" not in error or "msg" not in error:
            continue
        loc = [str(part) for part in error["loc"] if part not in ("body", "query", "path")]
        errors[".".join(loc) or "root"] = error["msg"]
    log.info("Request validation error %s", errors)
    return JSONResponse(status_code=400, content=jsonable_encoder(errors))


@app.exception_handler(RateLimitExceeded)
def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> Response:
    log.warning("Rate limit hit on %s: %s", request.url.path, exc.detail)
    return JSONResponse({"detail": f"Rate limit exceeded: {exc.detail}"}, status_code=429)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    log.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


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
        "message": "Back-office API",
        "version": "0.1.0",
        "status": "online",
        "docs": "/docs" if config.ENABLE_DOCS else None,
        "authentication": {
            "info": "Protected endpoints require Bearer token in Authorization header",
            "public_endpoints": ["/auth/register", "/auth/login", "/auth/login-appwrite"],
        },
    }


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy"}


# Include routers
app.include_router(auth_router, prefix="/auth", tags=["auth"])
app.include_router(user_router, prefix="/users", tags=["users"])

# Permission catalog
app.include_router(permission_router, prefix="/permissions", tags=["permissions"])

# Organization routes
app.include_router(organization_router, prefix="/organizations", tags=["organizations"])

# Organization-scoped routes
app.include_router(roles_router, prefix="/organizations/{organization_id}/roles", tags=["organization roles"])
app.include_router(members_router, prefix="/organizations/{organization_id}/users", tags=["organization users"])
app.include_router(project_router, prefix="/organizations/{organization_id}/projects", tags=["projects"])
