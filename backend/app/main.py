# app/main.py
import logging
import time

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from tortoise.exceptions import BaseORMException

from app.config import Settings, load_settings
from app.core.db import init_db, close_db
from app.core.errors import AppError, InternalError, ValidationError
from app.api.v1.routers import users, conversations
from app.services.chat_service import ChatService
from app.services.llm_base import LLMProvider
from app.services.llm_factory import get_llm_provider
from app.services.user_service import UserService

logger = logging.getLogger("uvicorn.error")


def _error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def _validation_message(exc: RequestValidationError) -> str:
    """First validation problem as "field: reason"."""
    errors = exc.errors()
    if not errors:
        return ValidationError.default_message
    first = errors[0]
    loc = ".".join(str(p) for p in first.get("loc", ()) if p not in ("body", "query", "path"))
    msg = first.get("msg", "invalid value")
    return f"{loc}: {msg}" if loc else msg


def _register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        return _error_response(exc.status_code, exc.message)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return _error_response(ValidationError.status_code, _validation_message(exc))

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return _error_response(exc.status_code, str(exc.detail))

    @app.exception_handler(BaseORMException)
    async def orm_error_handler(request: Request, exc: BaseORMException):
        logger.error("[db] %s %s failed: %r", request.method, request.url.path, exc, exc_info=exc)
        return _error_response(InternalError.status_code, InternalError.default_message)


def create_app(settings: Settings | None = None, provider: LLMProvider | None = None) -> FastAPI:
    """
    Build the FastAPI application.

    settings is loaded once here (or injected by tests) and shared with every
    component through app.state; provider defaults to the configured LLM client.
    """
    settings = settings or load_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = FastAPI(title=settings.APP_NAME)
    app.state.settings = settings
    app.state.user_service = UserService(settings)
    app.state.chat_service = ChatService(
        provider or get_llm_provider(settings),
        history_limit=settings.chat_history_limit,
    )

    # CORS (credentials only make sense with explicit origins)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials="*" not in settings.CORS_ORIGINS,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
        max_age=86400,
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        latency_ms = (time.perf_counter() - start) * 1000
        logger.info("%s %s %d %.1fms", request.method, request.url.path, response.status_code, latency_ms)
        return response

    _register_error_handlers(app)

    @app.on_event("startup")
    async def on_startup():
        await init_db(settings)

    @app.on_event("shutdown")
    async def on_shutdown():
        await close_db()

    # REST
    app.include_router(users.router, prefix="/api/v1")
    app.include_router(conversations.router, prefix="/api/v1")

    @app.get("/health")
    def health():
        return {"status": "ok"}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=app.state.settings.host, port=app.state.settings.port)
