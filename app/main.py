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
from app.core.errors import AppError
from app.core.limiter import limiter
from app.features.auth.routes import router as auth_router
from app.features.profile.routes import router as profile_router
from app.features.users.routes import router as user_router
from app.features.organizations.routes import router as organization_router
from app.features.catalog.routes import router as feature_router
from app.features.invitations.routes import router as invitation_router
from app.features.permissions.routes import router as permission_router
from app.features.audit.routes import router as audit_router
from app.utils import get_logger


log = get_logger(__name__)
log.info("Initializing server")
app = FastAPI(
    title="Access Control Backend",
    description="Multi-tenant role and permission service with invitation onboarding",
    version="0.1.0",
    docs_url="/docs" if config.ENABLE_DOCS else None,
    redoc_url="/redoc" if config.ENABLE_DOCS else None,
    openapi_url="/openapi.json" if config.ENABLE_DOCS else None
)
app.state.limiter = limiter


class PrintTimings(TimingClient):
    def timing(self, metric_name, timing, tags):
        log.debug(dict(route=metric_name.removeprefix("main.app.features."), timing=timing, tags=tags))


app.add_middleware(TimingMiddleware, client=PrintTimings(), metric_namer=StarletteScopeToName("main", app))

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


@app.exception_handler(AppError)
async def app_error_handler(_request: Request, exc: AppError) -> Response:
    return JSONResponse(exc.to_dict(), status_code=exc.status_code, headers=exc.headers)


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
        "message": "Access Control API",
        "version": "0.1.0",
        "status": "online",
        "docs": "/docs" if config.ENABLE_DOCS else None,
        "authentication": {
            "info": "Protected endpoints require Bearer token in Authorization header",
            "public_endpoints": ["/auth/register", "/auth/login", "/invitations/accept/{token}"]
        },
        "features": {
            "auth": "Email/password login issuing bearer tokens",
            "users": "User management bounded by the role hierarchy",
            "organizations": "Tenants with per-organization feature toggles",
            "features": "System-wide feature catalog",
            "invitations": "Single-use, time-boxed onboarding links",
            "permissions": "Feature/sub-feature/action grants and access checks",
            "audit-logs": "Record of access-control changes"
        }
    }


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy"}


# Include routers
app.include_router(auth_router, prefix="/auth", tags=["auth"])
app.include_router(profile_router, prefix="/profile", tags=["profile"])
app.include_router(user_router, prefix="/users", tags=["users"])

# Organization routes
app.include_router(organization_router, prefix="/organizations", tags=["organizations"])

# Feature catalog routes
app.include_router(feature_router, prefix="/features", tags=["features"])

# Invitation routes
app.include_router(invitation_router, prefix="/invitations", tags=["invitations"])

# Permission routes
app.include_router(permission_router, prefix="/permissions", tags=["permissions"])

# Audit log routes
app.include_router(audit_router, prefix="/audit-logs", tags=["audit"])
