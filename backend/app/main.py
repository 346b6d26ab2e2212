"""
Main FastAPI application entry point.
"""
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded

from app.config import settings
from app.logging_config import setup_logging
from app.api.routes import integrations, secrets, contexts, work_items
from app.database import Base, engine
from app.exceptions import IntegrationError
from app.rate_limiter import limiter, rate_limit_exceeded_handler
import logging

setup_logging()
logger = logging.getLogger(__name__)

# Create database tables (Alembic owns the schema in deployed environments)
Base.metadata.create_all(bind=engine)

# Initialize FastAPI application
app = FastAPI(
    title=settings.PROJECT_NAME,
    debug=settings.DEBUG,
    version="1.0.0",
    description="Tracker integrations, credential vault and context indexing for backlog projects"
)

# Rate limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.BACKEND_CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(integrations.router, prefix=settings.API_V1_PREFIX)
app.include_router(secrets.router, prefix=settings.API_V1_PREFIX)
app.include_router(contexts.router, prefix=settings.API_V1_PREFIX)
app.include_router(work_items.router, prefix=settings.API_V1_PREFIX)


@app.exception_handler(IntegrationError)
async def integration_error_handler(request: Request, exc: IntegrationError):
    if exc.status_code >= 500:
        logger.error("%s on %s: %s", exc.code, request.url.path, exc.message)
    else:
        logger.info("%s on %s: %s", exc.code, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


# Exception handler for validation errors
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.info("Validation error on %s: %s", request.url.path, exc.errors())
    return JSONResponse(
        status_code=422,
        content={"message": "Invalid request", "code": "VALIDATION_ERROR", "details": {"errors": jsonable_encoder(exc.errors())}},
    )


@app.get("/")
async def root():
    """Root endpoint - API health check."""
    return {
        "message": settings.PROJECT_NAME,
        "version": "1.0.0",
        "status": "healthy",
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "app.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG
    )
