import logging

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .dependencies import get_app_settings
from .errors import NotFoundError, StoreUnavailableError, ValidationError
from .logging_setup import configure_logging
from .routers import board as board_router
from .routers import tasks as tasks_router

logger = logging.getLogger(__name__)

openapi_tags = [
    {"name": "health", "description": "Service health and status endpoints."},
    {
        "name": "tasks",
        "description": "Task lifecycle: create, toggle, complete with evidence, skip and delete.",
    },
    {"name": "board", "description": "Per-member contribution statistics."},
]

_settings = get_app_settings()
configure_logging(_settings.log_level, _settings.log_file)

app = FastAPI(
    title="TeamBalance Board",
    description="Shared task-accountability board with weighted tasks, completion evidence and contribution statistics.",
    version="0.1.0",
    openapi_tags=openapi_tags,
)

# Configure CORS based on settings (CORS_ALLOW_ORIGINS), with '*' fallback
allow_all = (_settings.cors_allow_origins == ["*"]) or (len(_settings.cors_allow_origins) == 0)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if allow_all else _settings.cors_allow_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Global exception handlers for consistent JSON on validation errors
@app.exception_handler(RequestValidationError)
async def request_validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """
    Return a consistent JSON structure for request validation errors.

    Response format:
        {
            "error": "ValidationError",
            "detail": [... pydantic/fastapi error details ...],
            "message": "Request validation failed"
        }
    """
    return JSONResponse(
        status_code=422,
        content=jsonable_encoder(
            {
                "error": "ValidationError",
                "message": "Request validation failed",
                "detail": exc.errors(),
            }
        ),
    )


@app.exception_handler(ValidationError)
async def validation_exception_handler(request: Request, exc: ValidationError) -> JSONResponse:
    """Domain validation failures use the same shape as request validation errors."""
    return JSONResponse(
        status_code=422,
        content=jsonable_encoder(
            {
                "error": "ValidationError",
                "message": exc.message,
                "detail": exc.errors,
            }
        ),
    )


@app.exception_handler(NotFoundError)
async def not_found_exception_handler(request: Request, exc: NotFoundError) -> JSONResponse:
    return JSONResponse(status_code=404, content={"detail": f"{exc.what} not found"})


@app.exception_handler(StoreUnavailableError)
async def store_unavailable_exception_handler(request: Request, exc: StoreUnavailableError) -> JSONResponse:
    logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=503,
        content={"error": "StoreUnavailable", "detail": str(exc)},
    )


# PUBLIC_INTERFACE
@app.get("/", summary="Health Check", tags=["health"])
def health_check():
    """
    Health check endpoint.

    Returns:
        A JSON object indicating service health.
    """
    return {
        "message": "Healthy",
        "backend": _settings.persistence_backend,
        "evidence_backend": _settings.evidence_backend,
    }


# Include routers
app.include_router(tasks_router.router)
app.include_router(board_router.router)
