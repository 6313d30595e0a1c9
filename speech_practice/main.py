import logging
import uuid
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError

from speech_practice import __version__
from speech_practice.api.routes import (
    credential, events, health, history, session, text
)
from speech_practice.core.lifespan import lifespan
from speech_practice.core.config import Settings, settings
from speech_practice.core.logging_config import request_id_var, setup_logging
from speech_practice.core.exceptions import (
    SpeechPracticeException,
    AnalysisServiceError,
    MissingCredentialError,
)

setup_logging(
    log_level=settings.log_level,
    log_file=settings.log_file,
    max_file_size=settings.log_max_size_mb * 1024 * 1024,
    backup_count=settings.log_backup_count,
)

logger = logging.getLogger(__name__)


def get_request_id() -> str:
    """Получить текущий Request ID"""
    return request_id_var.get()


def _error_body(exc: Exception, detail) -> dict:
    return {"detail": detail, "error_type": exc.__class__.__name__}


def register_exception_handlers(app: FastAPI) -> None:
    """Ошибки приложения -> JSON {detail, error_type} с кодом из исключения"""

    @app.exception_handler(MissingCredentialError)
    async def missing_credential_handler(request: Request, exc: MissingCredentialError):
        logger.warning(f"Missing credential on {request.url.path}")
        body = _error_body(exc, "Please set your Gemini API key first")
        body["internal_error"] = exc.detail
        return JSONResponse(status_code=exc.status_code, content=body)

    @app.exception_handler(AnalysisServiceError)
    async def analysis_service_handler(request: Request, exc: AnalysisServiceError):
        logger.error(f"Analysis service error: {exc.detail}")
        return JSONResponse(status_code=exc.status_code, content=_error_body(exc, exc.detail))

    @app.exception_handler(SpeechPracticeException)
    async def speech_practice_handler(request: Request, exc: SpeechPracticeException):
        logger.warning(f"{exc.__class__.__name__}: {exc.detail}")
        return JSONResponse(status_code=exc.status_code, content=_error_body(exc, exc.detail))

    @app.exception_handler(RequestValidationError)
    async def validation_handler(request: Request, exc: RequestValidationError):
        logger.warning(f"Validation error: {exc.errors()}")
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={"detail": exc.errors(), "error_type": "ValidationError"},
        )

    @app.exception_handler(Exception)
    async def unhandled_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled exception: {exc}", exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=_error_body(exc, "Internal server error"),
        )


def register_middleware(app: FastAPI, config: Settings) -> None:
    origins = ["http://localhost:3000", "http://localhost:8000", "http://127.0.0.1:8000"]
    if config.log_level.upper() == "DEBUG":
        origins.append("*")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )

    # Request ID (после CORS): попадает в логи и в заголовок ответа
    @app.middleware("http")
    async def request_id_middleware(request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        token = request_id_var.set(request_id)
        try:
            response = await call_next(request)
        finally:
            request_id_var.reset(token)
        response.headers["X-Request-ID"] = request_id
        return response


def create_app(config: Settings = settings) -> FastAPI:
    app = FastAPI(
        title="Speech Practice API",
        description="Практика устной речи: метрики в реальном времени и разбор сессий через Gemini",
        version=__version__,
        lifespan=lifespan,
    )
    register_exception_handlers(app)
    register_middleware(app, config)

    for module in (health, session, history, text, credential, events):
        app.include_router(module.router)

    @app.get("/")
    async def root():
        return {
            "name": "Speech Practice API",
            "version": __version__,
            "status": "running",
            "docs": "/docs",
        }

    return app


app = create_app()
