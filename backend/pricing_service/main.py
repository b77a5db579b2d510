"""FastAPI application main file"""
import logging
import os
from datetime import datetime
from http import HTTPStatus
from logging.handlers import RotatingFileHandler

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from pricing_service.config import config


def setup_logging():
    """Configure logging to both a rotating file and the console"""
    formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(config.LOG_LEVEL)
    root_logger.handlers.clear()

    log_file = None
    if config.LOG_TO_FILE:
        os.makedirs(config.LOG_DIR, exist_ok=True)
        log_file = os.path.join(config.LOG_DIR, 'pricing.log')
        # 10MB per file, 5 backups
        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=10 * 1024 * 1024,
            backupCount=5,
            encoding='utf-8'
        )
        file_handler.setLevel(config.LOG_LEVEL)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(config.LOG_LEVEL)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    logging.getLogger('uvicorn').setLevel(logging.WARNING)
    logging.getLogger('uvicorn.access').setLevel(logging.WARNING)
    logging.getLogger('urllib3').setLevel(logging.WARNING)

    logging.info(f"Logging initialised - log file: {log_file}")


setup_logging()

from pricing_service.routers import pricing
from pricing_service.services.exceptions import (
    InactiveEntityError,
    InvalidInputError,
    NotFoundError,
    UpstreamError,
    UpstreamUnavailableError,
)

logger = logging.getLogger(__name__)

app = FastAPI(
    title="Pricing Service",
    description="Marketplace pricing calculation engine",
    version="1.0.0"
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(pricing.router)


def _error_response(status: HTTPStatus, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status.value,
        content={
            "timestamp": datetime.now().isoformat(),
            "status": status.value,
            "error": status.phrase,
            "message": message,
        },
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = ", ".join(
        f"{'.'.join(str(part) for part in error['loc'][1:])}: {error['msg']}"
        for error in exc.errors()
    )
    return _error_response(HTTPStatus.BAD_REQUEST, f"Validation failed: {errors}")


@app.exception_handler(InvalidInputError)
async def invalid_input_handler(request: Request, exc: InvalidInputError):
    return _error_response(HTTPStatus.BAD_REQUEST, str(exc))


@app.exception_handler(InactiveEntityError)
async def inactive_entity_handler(request: Request, exc: InactiveEntityError):
    return _error_response(HTTPStatus.BAD_REQUEST, str(exc))


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return _error_response(HTTPStatus.NOT_FOUND, str(exc))


@app.exception_handler(UpstreamUnavailableError)
async def upstream_unavailable_handler(request: Request, exc: UpstreamUnavailableError):
    return _error_response(HTTPStatus.SERVICE_UNAVAILABLE, str(exc))


@app.exception_handler(UpstreamError)
async def upstream_error_handler(request: Request, exc: UpstreamError):
    if exc.status_code == HTTPStatus.UNAUTHORIZED:
        return _error_response(HTTPStatus.UNAUTHORIZED, str(exc))
    return _error_response(HTTPStatus.BAD_GATEWAY, str(exc))


@app.get("/")
async def root():
    """Root endpoint"""
    return {"message": "Pricing Service API", "version": "1.0.0"}


@app.get("/health")
async def health():
    """Health check endpoint"""
    return {"status": "healthy"}
