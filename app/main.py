"""FastAPI application serving portrait generation.

Endpoints
---------
========  ==================  ==========================================
Method    Path                Purpose
========  ==================  ==========================================
POST      ``/api/generate``   Generate a portrait from an uploaded photo
GET       ``/api/health``     Service health, optional backend probe
========  ==================  ==========================================

Every failure is returned as ``{"error": "..."}`` with the status carried by
the error, and never includes image data.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

import uvicorn
from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.config import settings
from src.core.backend_factory import BackendFactory
from src.core.errors import ConfigurationError, PortraitError
from src.core.models import PortraitRequestBody, PortraitResponse
from src.core.orchestrator import PortraitOrchestrator
from src.utils.health import HealthChecker, Outcome

# Configure logging
logging.basicConfig(
    level=settings.log_level,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Create the orchestrator and health checker for the app's lifetime."""
    app.state.orchestrator = PortraitOrchestrator(settings)
    app.state.health_checker = HealthChecker()
    logger.info(
        f"Portrait service started (backend={settings.default_backend}, "
        f"publishing={'on' if settings.publishing_enabled else 'off'})"
    )
    yield


app = FastAPI(
    title="Renaissance Portrait Generator",
    description="Turns a photo into a Renaissance oil-painting portrait.",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)


def get_orchestrator(request: Request) -> PortraitOrchestrator:
    return request.app.state.orchestrator


def get_health_checker(request: Request) -> HealthChecker:
    return request.app.state.health_checker


@app.exception_handler(PortraitError)
async def portrait_error_handler(request: Request, exc: PortraitError) -> JSONResponse:
    if exc.http_status >= 500:
        logger.error(f"generate error: {exc}")
    else:
        logger.warning(f"rejected request: {exc}")
    checker = getattr(request.app.state, "health_checker", None)
    if checker is not None:
        checker.record(Outcome.from_status(exc.http_status))
    return JSONResponse(status_code=exc.http_status, content={"error": str(exc)})


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    first = errors[0] if errors else {}
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "Invalid request body")
    return JSONResponse(
        status_code=400,
        content={"error": f"Invalid request: {location}: {message}" if location else f"Invalid request: {message}"},
    )


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unexpected error handling {request.url.path}: {exc}")
    checker = getattr(request.app.state, "health_checker", None)
    if checker is not None:
        checker.record(Outcome.INTERNAL_ERROR)
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


@app.post("/api/generate", response_model=PortraitResponse)
def generate(
    body: PortraitRequestBody,
    orchestrator: PortraitOrchestrator = Depends(get_orchestrator),
    health_checker: HealthChecker = Depends(get_health_checker),
) -> PortraitResponse:
    """Generate a portrait.

    Runs in FastAPI's thread pool, so slow backend polling does not block
    other requests.
    """
    response = orchestrator.generate(body)
    health_checker.record(Outcome.SUCCEEDED)
    return response


@app.get("/api/health")
def health(probe: bool = False, health_checker: HealthChecker = Depends(get_health_checker)) -> dict:
    """Report service health; ``?probe=true`` also calls the configured backend."""
    result = health_checker.check_health().to_dict()
    result["backend"] = settings.default_backend
    result["publishing_enabled"] = settings.publishing_enabled

    if probe:
        try:
            backend = BackendFactory.create_backend(settings.default_backend, settings)
        except ConfigurationError as e:
            result["backend_probe"] = {"status": "unhealthy", "message": str(e)}
        else:
            result["backend_probe"] = health_checker.probe_backend(backend).to_dict()
    return result


def main() -> None:
    """Run the API server with uvicorn."""
    uvicorn.run("app.main:app", host=settings.host, port=settings.port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    main()
