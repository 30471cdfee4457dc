import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

# Rate limiting (slowapi)
from slowapi.errors import RateLimitExceeded

from db.database import Database
from routers.forms import router as forms_router
from routers.health import router as health_router
from routers.submissions import router as submissions_router
from services.errors import FormsAPIError, ValidationFailure
from services.file_storage import build_file_storage
from services.identity import build_identity_provider
from utils.config import Settings
from utils.limiter import configure_limiter
from utils.logger import RequestContextLogMiddleware, setup_logging

logger = logging.getLogger("backend")


def _safe_message(status_code: int) -> str:
    mapping = {
        400: "Invalid request.",
        401: "Unauthorized.",
        403: "Action not allowed.",
        404: "Not found.",
        405: "Method not allowed.",
        409: "Conflict.",
        413: "Request too large.",
        415: "Unsupported request.",
        422: "Invalid request.",
        429: "Too many requests.",
        500: "Something went wrong. Please try again.",
        503: "Service unavailable. Please try again.",
    }
    return mapping.get(int(status_code or 500), "Something went wrong. Please try again.")


def _register_exception_handlers(app: FastAPI, settings: Settings) -> None:
    @app.exception_handler(FormsAPIError)
    async def forms_api_error_handler(request: Request, exc: FormsAPIError):
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(HTTPException)
    async def http_exception_sanitizer(request: Request, exc: HTTPException):
        if settings.is_production or not exc.detail:
            # Preserve status code; sanitize message
            return JSONResponse(status_code=exc.status_code, content={"detail": _safe_message(exc.status_code)})
        return JSONResponse(status_code=exc.status_code, content={"detail": str(exc.detail)})

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        error = ValidationFailure()
        content = error.to_dict()
        if not settings.is_production:
            content["errors"] = [
                {"loc": list(item.get("loc", ())), "msg": item.get("msg", "")} for item in exc.errors()
            ]
        return JSONResponse(status_code=error.status_code, content=content)

    @app.exception_handler(RateLimitExceeded)
    async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
        return JSONResponse(status_code=429, content={"detail": "Rate limit exceeded"})

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error")
        return JSONResponse(status_code=500, content={"detail": _safe_message(500)})


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build the API; the database is opened in the lifespan and closed on shutdown."""
    settings = settings or Settings.from_env()
    setup_logging()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        database = Database(settings.database_url, settings.db_pool_size, settings.db_max_overflow)
        await database.connect()
        app.state.db = database
        try:
            yield
        finally:
            await database.close()

    app = FastAPI(title="FlexiForms API", lifespan=lifespan)
    app.state.settings = settings
    app.state.identity_provider = build_identity_provider(settings)
    app.state.file_storage = build_file_storage(settings)
    app.state.limiter = configure_limiter(settings)

    _register_exception_handlers(app, settings)

    # allow_credentials must stay False when every origin is allowed
    allow_all = "*" in settings.cors_allowed_origins
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if allow_all else settings.cors_allowed_origins,
        allow_credentials=not allow_all,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Request/response logging middleware
    app.add_middleware(RequestContextLogMiddleware)

    # Submissions first: its fixed paths (/user/submissions, /submissions/{id})
    # must win over the forms router's /{id_or_custom_link}
    app.include_router(submissions_router)
    app.include_router(forms_router)
    app.include_router(health_router)

    logger.info("FlexiForms API configured (auth=%s, storage=%s)", settings.auth_provider, settings.storage_backend)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)
