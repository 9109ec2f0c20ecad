"""
School Grades Statistics API

Main FastAPI application for the school grades management system.
Provides role-scoped score entry, ranking and exam statistics.
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config import settings, get_logger
from database import init_db
from api import statistics_router, scores_router, semesters_router, classes_router, records_router

logger = get_logger(__name__)


# --------------- Lifespan ---------------

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan handler – initialise DB on startup."""
    logger.info("Initializing database...")
    await init_db()
    logger.info("Database initialized.")
    yield


# --------------- FastAPI app ---------------

app = FastAPI(
    title="School Grades Statistics API",
    description="""
API for managing exam scores and grade statistics.

## Features

### Statistics
- Exam statistics: averages, pass/excellent/poor rates, score distribution
- Class comparison across exams of the same subject and date (or semester)
- Semester trends per student, student and subject statistics
- Dense ranking with ties: [95, 95, 90, 80] ranks as [1, 1, 3, 4]

### Authorization Rules
- **Admins / Grade leaders**: See every exam, student and score
- **Teachers**: See exams they own and records of the classes they own
- **Exam statistics**: Only the owning teacher or a full-scope role
- Records outside the caller's scope are reported as not found
    """,
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler."""
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=exc)
    return JSONResponse(
        status_code=500,
        content={"detail": str(exc), "type": type(exc).__name__}
    )


# Include routers
app.include_router(statistics_router)
app.include_router(scores_router)
app.include_router(semesters_router)
app.include_router(classes_router)
app.include_router(records_router)


@app.get("/", tags=["Health"])
async def root():
    """Root endpoint - API health check."""
    return {
        "status": "online",
        "service": "School Grades Statistics API",
        "version": "1.0.0"
    }


@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug,
    )
