from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger

from ..logging_setup import setup_logging
from ..settings import get_settings
from .routers import logs as logs_router
from .routers import tasks as tasks_router
from .routers import user as user_router

openapi_tags = [
    {"name": "health", "description": "Service health and status endpoints."},
    {
        "name": "tasks",
        "description": "Task CRUD and checklist toggles with derived progress and threaded logs.",
    },
    {
        "name": "logs",
        "description": "Durable per-user activity audit store; outlives deleted tasks.",
    },
    {"name": "user", "description": "Display profile of the authenticated user."},
]

_settings = get_settings()
setup_logging(_settings.log_level, _settings.log_file)

app = FastAPI(
    title="Study Tracker",
    description="Remote store for study tasks: checklist progress, threaded activity logs and audit history.",
    version="0.1.0",
    openapi_tags=openapi_tags,
)

# Configure CORS based on settings (.env -> CORS_ALLOW_ORIGINS), with '*' fallback
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
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """
    Return a consistent JSON structure for request validation errors.

    Response format:
        {
            "error": "ValidationError",
            "detail": [... pydantic/fastapi error details ...],
            "message": "Request validation failed"
        }
    """
    logger.debug("Validation failed for {} {}", request.method, request.url.path)
    return JSONResponse(
        status_code=422,
        content={
            "error": "ValidationError",
            "message": "Request validation failed",
            "detail": _jsonable_errors(exc),
        },
    )


def _jsonable_errors(exc: RequestValidationError) -> list:
    # ctx may carry the raw ValueError raised by a field validator
    return [{k: v for k, v in err.items() if k != "ctx"} for err in exc.errors()]


# PUBLIC_INTERFACE
@app.get("/", summary="Health Check", tags=["health"])
def health_check():
    """
    Health check endpoint.

    Returns:
        A JSON object indicating service health.
    """
    return {"message": "Healthy", "backend": _settings.persistence_backend}


# Include routers
app.include_router(tasks_router.router)
app.include_router(logs_router.router)
app.include_router(user_router.router)

logger.info("Study Tracker service ready backend={}", _settings.persistence_backend)
