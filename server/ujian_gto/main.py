from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from ujian_gto.config import settings
from ujian_gto.database import init_db
from ujian_gto.errors import UjianError
from ujian_gto.logging_config import configure_logging
import logging
import os
import time

configure_logging()
logger = logging.getLogger("ujian_gto")

# Create uploads directory if it doesn't exist
os.makedirs(os.path.join(settings.upload_dir, settings.blueprint_bucket), exist_ok=True)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize database on startup"""
    init_db()
    logger.info("🚀 %s is starting...", settings.app_name)
    logger.info("📚 Database: %s", settings.database_url)
    if not settings.live_channel_enabled:
        logger.warning("⚠️ Live monitoring disabled; exams run without warnings")
    yield


# Initialize FastAPI app
app = FastAPI(
    title=settings.app_name,
    version=settings.api_version,
    debug=settings.debug,
    lifespan=lifespan,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Mount static files for uploads (blueprints)
app.mount("/uploads", StaticFiles(directory=settings.upload_dir), name="uploads")


@app.exception_handler(UjianError)
async def ujian_error_handler(request: Request, exc: UjianError):
    """Domain errors become a plain message the client shows inline."""
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log every request with status and duration"""
    start_time = time.time()
    response = await call_next(request)
    process_time = time.time() - start_time
    logger.info(f"{request.method} {request.url.path} -> {response.status_code} in {process_time:.4f}s")
    return response


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "message": f"Welcome to {settings.app_name}",
        "version": settings.api_version,
        "status": "running"
    }


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {"status": "healthy"}


# Import and include routers
from ujian_gto.routes import attempts, auth, exams, live, students, submissions  # noqa: E402

app.include_router(auth.router, prefix="/api/auth", tags=["Auth"])
app.include_router(exams.router, prefix="/api/exams", tags=["Exam"])
app.include_router(submissions.router, prefix="/api/submissions", tags=["Submission"])
app.include_router(students.router, prefix="/api/students", tags=["Student"])
app.include_router(attempts.router, prefix="/api/attempts", tags=["Attempt"])
app.include_router(live.router, prefix="/api/live", tags=["Live"])


def main():
    import uvicorn
    uvicorn.run(app, host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
