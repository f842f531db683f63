"""
FastAPI Application Entry Point

Integrates:
  - Chat, image, speech-to-text and text-to-speech routes
  - Rate limit status and model catalog
  - Health checks
  - Middleware for logging & error handling

Run: uvicorn main:app --reload --host 0.0.0.0 --port 8000
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware

from api import (
    chat_router,
    image_router,
    models_router,
    rate_limit_router,
    speech_to_text_router,
    text_to_speech_router,
)
from config import Config
from dispatch import DispatchError, RateLimitExceeded
from infra import InfraBootstrap, bootstrap_infrastructure

# Setup logging
logging.basicConfig(
    level=getattr(logging, Config.LOG_LEVEL, logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Routes whose error bodies also carry "success": false
SPEECH_PATHS = ("/speech-to-text", "/text-to-speech")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan: startup and shutdown handlers.
    """
    # Startup
    logger.info("=" * 60)
    logger.info("AI Playground API starting up...")
    logger.info(f"Environment: {Config.ENVIRONMENT}")
    logger.info(f"Inference backend: {Config.INFERENCE_BACKEND}")
    missing = Config.validate()
    if missing:
        logger.warning(f"Missing configuration: {', '.join(missing)}")
    bootstrap_infrastructure()
    logger.info("=" * 60)

    yield

    # Shutdown
    logger.info("AI Playground API shutting down...")
    await InfraBootstrap.shutdown()


# Create FastAPI app
app = FastAPI(
    title="AI Playground API",
    description="Request normalization and dispatch for hosted AI models",
    version="1.0.0",
    lifespan=lifespan,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=Config.CORS_ALLOW_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Middleware for logging
@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log all requests."""
    logger.debug(f"{request.method} {request.url.path}")
    try:
        response = await call_next(request)
        return response
    except Exception as e:
        logger.error(f"Request error: {str(e)}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={"error": "Internal server error"},
        )


def _error_body(request: Request, message: str) -> dict:
    body = {"error": message}
    if request.url.path in SPEECH_PATHS:
        body["success"] = False
    return body


@app.exception_handler(DispatchError)
async def dispatch_error_handler(request: Request, exc: DispatchError):
    """Render the error taxonomy as {"error": ...}."""
    body = _error_body(request, exc.message)
    if isinstance(exc, RateLimitExceeded):
        body["rateLimit"] = exc.result.to_dict(exc.capability)
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.kind}: {exc.message}")
    else:
        logger.info(f"{request.method} {request.url.path} -> {exc.status_code} {exc.kind}")
    return JSONResponse(status_code=exc.status_code, content=body)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    """Malformed bodies are 400 InvalidArgument, naming the first bad field."""
    errors = exc.errors()
    message = "Invalid request body"
    if errors:
        first = errors[0]
        if first.get("type") == "json_invalid":
            message = "Invalid JSON in request body"
        else:
            location = [
                str(part)
                for part in first.get("loc", ())
                if part not in ("body", "query", "path")
            ]
            field = ".".join(location) or "body"
            message = f"Invalid value for '{field}': {first.get('msg', 'invalid')}"
    return JSONResponse(status_code=400, content=_error_body(request, message))


# Include routers
app.include_router(chat_router)
app.include_router(image_router)
app.include_router(speech_to_text_router)
app.include_router(text_to_speech_router)
app.include_router(rate_limit_router)
app.include_router(models_router)


# Health check endpoints
@app.get("/health/live")
async def health_live():
    """Live health check (Kubernetes liveness probe)."""
    return {"status": "alive"}


@app.get("/health/ready")
async def health_ready():
    """Readiness health check (Kubernetes readiness probe)."""
    missing = Config.validate()
    if missing:
        return {"status": "not_ready", "missing": missing}
    return {"status": "ready"}


@app.get("/")
async def root():
    """Root endpoint with API info."""
    return {
        "name": "AI Playground API",
        "version": "1.0.0",
        "status": "running",
        "endpoints": {
            "chat": "POST /chat",
            "image": "POST /image",
            "speech_to_text": "POST /speech-to-text",
            "text_to_speech": "POST /text-to-speech",
            "rate_limit": "GET /rate-limit/{capability}",
            "models": "GET /models",
            "health_live": "GET /health/live",
            "health_ready": "GET /health/ready",
        },
    }


@app.get("/config/info")
async def config_info():
    """Get non-sensitive configuration info."""
    return {
        "environment": Config.ENVIRONMENT,
        "inference_backend": Config.INFERENCE_BACKEND,
        "rate_limit_enabled": Config.RATE_LIMIT_ENABLED,
        "fast_store": bool(Config.RATE_LIMIT_REDIS_URL),
        "durable_store": bool(Config.RATE_LIMIT_DB_PATH),
        "app_port": Config.APP_PORT,
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        app,
        host="0.0.0.0",
        port=Config.APP_PORT,
        reload=Config.ENVIRONMENT == "development",
    )
