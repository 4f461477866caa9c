import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .errors import BadRequest, StorageError, StorageTimeout
from .logging import configure_logging
from .settings import get_settings
from .routers import todos as todos_router

logger = logging.getLogger(__name__)

openapi_tags = [
    {"name": "health", "description": "Service health and status endpoints."},
    {"name": "todos", "description": "Create and list Todo items."},
]

app = FastAPI(
    title="Todo Server",
    description="Todo-list service validating new items and storing them in a document store.",
    version="0.1.0",
    openapi_tags=openapi_tags,
)

_settings = get_settings()

configure_logging(_settings.log_level)

# Configure CORS based on settings (.env -> CORS_ALLOW_ORIGINS), with '*' fallback
allow_all = (_settings.cors_allow_origins == ["*"]) or (len(_settings.cors_allow_origins) == 0)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if allow_all else _settings.cors_allow_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Every error leaves the service as {"message": ...}
@app.exception_handler(BadRequest)
async def bad_request_handler(request: Request, exc: BadRequest) -> JSONResponse:
    return JSONResponse(status_code=400, content={"message": exc.message})


@app.exception_handler(StorageError)
async def storage_error_handler(request: Request, exc: StorageError) -> JSONResponse:
    """
    Map persistence failures to a 5xx response. The internal message is logged,
    never returned to the client.

    Response format:
        504 {"message": "storage timeout"} for StorageTimeout
        500 {"message": "storage error"} otherwise
    """
    logger.error("Storage failure on %s %s: %s", request.method, request.url.path, exc, exc_info=exc)
    if isinstance(exc, StorageTimeout):
        return JSONResponse(status_code=504, content={"message": "storage timeout"})
    return JSONResponse(status_code=500, content={"message": "storage error"})


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
app.include_router(todos_router.router)
