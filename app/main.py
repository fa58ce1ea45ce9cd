"""FastAPI application entry point for CreatorFlow."""

import logging
from pathlib import Path
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from fastapi.responses import FileResponse, JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.config import Settings, get_settings
from app.errors import ProviderRequestError
from app.routers import (
    auth_router,
    generate_router,
    integrations_router,
    research_router,
)
from app.services.model_cache import ModelListService
from app.services.oauth_providers import build_providers
from app.services.openai_client import OpenAIClient
from app.services.perplexity import PerplexityClient
from app.sessions import MemorySessionStore, SessionMiddleware

# Get the project root directory
PROJECT_ROOT = Path(__file__).parent.parent
STATIC_DIR = PROJECT_ROOT / "static"

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager.

    Handles startup and shutdown events.
    """
    # Startup
    settings = app.state.settings
    logger.info("Starting CreatorFlow API...")
    if not app.state.openai_client.is_configured:
        logger.warning("OpenAI API key not set; generation endpoints will return 503")
    if not app.state.perplexity_client.is_configured:
        logger.warning("Perplexity API key not set; research endpoints will return 503")
    for name, provider in app.state.oauth_providers.items():
        if not provider.is_configured:
            logger.warning(f"{name} OAuth credentials not set; {name} sign-in disabled")
    logger.info(f"CreatorFlow API started ({settings.environment})")

    yield

    # Shutdown
    logger.info("Shutting down CreatorFlow API...")
    await app.state.openai_client.close()
    await app.state.perplexity_client.close()
    logger.info("CreatorFlow API shutdown complete")


def _validation_message(exc: RequestValidationError) -> str:
    """First validation problem, phrased for the browser."""
    errors = exc.errors()
    if not errors:
        return "Invalid request."
    first = errors[0]
    ctx_error = (first.get("ctx") or {}).get("error")
    if first.get("type") == "value_error" and ctx_error:
        return str(ctx_error)
    field = next((str(part) for part in reversed(first.get("loc", ())) if isinstance(part, str)), None)
    if field and field != "body":
        return f"Invalid {field}."
    return "Invalid request body."


def register_exception_handlers(app: FastAPI) -> None:
    """Convert errors into the ``{ok: false, error}`` response shape."""

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"ok": False, "error": exc.detail},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=400,
            content={"ok": False, "error": _validation_message(exc)},
        )

    @app.exception_handler(ProviderRequestError)
    async def provider_exception_handler(request: Request, exc: ProviderRequestError):
        logger.error(f"{request.url.path} provider error: {exc!r}")
        return JSONResponse(
            status_code=exc.http_status,
            content={"ok": False, "error": exc.public_message},
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.url.path}")
        return JSONResponse(
            status_code=500,
            content={"ok": False, "error": "Internal server error."},
        )


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = settings or get_settings()
    session_secret = settings.resolve_session_secret()

    app = FastAPI(
        title="CreatorFlow API",
        description="AI content generation, research and OAuth sign-in for CreatorFlow Studio",
        version="1.0.0",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    app.state.settings = settings
    app.state.openai_client = OpenAIClient(
        api_key=settings.openai_api_key,
        base_url=settings.openai_base_url,
        model=settings.openai_model,
        timeout_ms=settings.http_timeout_ms,
        retries=settings.http_max_retries,
        models_timeout_ms=settings.models_timeout_ms,
    )
    app.state.model_service = ModelListService(
        app.state.openai_client.fetch_model_entries,
        ttl_seconds=settings.models_cache_ttl_seconds,
    )
    app.state.perplexity_client = PerplexityClient(
        api_key=settings.perplexity_api_key,
        base_url=settings.perplexity_base_url,
        timeout_ms=settings.http_timeout_ms,
        retries=settings.http_max_retries,
    )
    app.state.oauth_providers = build_providers(settings)
    app.state.session_store = MemorySessionStore(settings.session_max_age_seconds)

    # Configure sessions
    app.add_middleware(
        SessionMiddleware,
        store=app.state.session_store,
        secret=session_secret,
        cookie_name=settings.session_cookie_name,
        max_age_seconds=settings.session_max_age_seconds,
        secure=settings.cookie_secure,
    )

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    # Include routers
    app.include_router(auth_router)
    app.include_router(generate_router, prefix="/api")
    app.include_router(integrations_router, prefix="/api")
    app.include_router(research_router, prefix="/api")

    # Mount static files
    app.mount("/static", StaticFiles(directory=STATIC_DIR, check_dir=False), name="static")

    @app.get("/")
    async def root():
        """Serve the main web application."""
        return FileResponse(STATIC_DIR / "index.html")

    @app.get("/login.html")
    async def login_page():
        """Serve the sign-in page."""
        return FileResponse(STATIC_DIR / "login.html")

    @app.get("/dashboard.html")
    async def dashboard_page():
        """Serve the dashboard."""
        return FileResponse(STATIC_DIR / "dashboard.html")

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {
            "status": "healthy",
            "openai": "configured" if app.state.openai_client.is_configured else "missing",
            "perplexity": "configured" if app.state.perplexity_client.is_configured else "missing",
        }

    return app


# Create app instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host="0.0.0.0",
        port=3000,
        reload=True,
    )
