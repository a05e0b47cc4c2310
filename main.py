import logging
import os
from contextlib import asynccontextmanager
from datetime import datetime

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from syntaxmap import config
from syntaxmap.database import (
    close_connection_pool, create_connection_pool, get_db_connection, init_database, release_db_connection,
)
from syntaxmap.errors import AppError
from syntaxmap.routes import (
    dashboard, dictionary, examples, mistakes, notifications, progress, quizzes, tenses, users,
)

config.configure_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Starting {config.APP_NAME} {config.APP_VERSION} ({config.ENVIRONMENT})")
    create_connection_pool()
    init_database()
    yield
    logger.info("Shutting down, closing connection pool")
    close_connection_pool()


app = FastAPI(
    title=config.APP_NAME,
    description="API for learning English tenses: tense map, examples, quizzes and progress tracking",
    version=config.APP_VERSION,
    lifespan=lifespan
)

# ========== CORS ==========
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ========== ERRORS ==========
@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(status_code=500,
                        content={"success": False, "error": True, "message": "Internal server error"})


# ========== ROUTERS ==========
app.include_router(users.router)
app.include_router(tenses.router)
app.include_router(examples.router)
app.include_router(quizzes.router)
app.include_router(progress.router)
app.include_router(notifications.router)
app.include_router(dictionary.router)
app.include_router(mistakes.router)
app.include_router(dashboard.router)


@app.get("/")
async def root():
    return {
        "message": f"Welcome to the {config.APP_NAME}",
        "version": config.APP_VERSION,
        "database": "PostgreSQL"
    }


# ========== HEALTH ==========
@app.get("/health")
def health_check():
    services = {"database": "unknown"}

    conn = None
    try:
        conn = get_db_connection()
        with conn.cursor() as cursor:
            cursor.execute("SELECT 1")
        services["database"] = "healthy"
    except Exception as e:
        logger.warning(f"Health check could not reach the database: {e}")
        services["database"] = "unhealthy"
    finally:
        if conn is not None:
            release_db_connection(conn)

    return {
        "status": "healthy" if all(s != "unhealthy" for s in services.values()) else "degraded",
        "timestamp": datetime.now().isoformat(),
        "services": services,
        "version": config.APP_VERSION,
        "database": "PostgreSQL"
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
        reload=config.ENVIRONMENT == "development",
        log_level=config.LOG_LEVEL.lower()
    )
