from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from api.v1 import auth, users
from core.config import settings
from db.mongodb import get_mongo_db, init_mongo_indexes, close_mongo_client
from utils.email import verify_mail_accounts
from utils.logging_config import configure_logging, RequestContextMiddleware

# Configure logging with date-based files and TTL retention
logger = configure_logging("findex_auth")

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.VERSION,
    debug=settings.DEBUG
)

# Global exception handler: no internal detail crosses the boundary
@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error at {request.url.path}: {exc!r}")
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})

# Malformed request bodies answer 400, the same status as service-level ValidationError
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    problems = []
    for error in exc.errors():
        field = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        problems.append(f"{field}: {error.get('msg')}" if field else error.get("msg", "Invalid input"))
    logger.info(f"Rejected request body at {request.url.path}: {problems}")
    return JSONResponse(status_code=400, content={"detail": "; ".join(problems) or "Invalid request body"})

app.add_middleware(GZipMiddleware, minimum_size=500)

# Add logging context middleware to capture user_id and API path
app.add_middleware(RequestContextMiddleware)

# CORS middleware; credentials allowed for the refresh-token cookie
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth.router, prefix=settings.API_PREFIX, tags=["Authentication"])
app.include_router(users.router, prefix=settings.API_PREFIX, tags=["Users"])

@app.on_event("startup")
async def startup_db_client():
    """Ensure Mongo indexes and optionally check the mail accounts"""
    try:
        await init_mongo_indexes()
        logger.info("Mongo indexes ensured")
    except Exception as e:
        logger.warning(f"Mongo init skipped or failed: {e}")
    if settings.SMTP_VERIFY_ON_STARTUP:
        verify_mail_accounts()
    logger.info("Application startup complete")

@app.on_event("shutdown")
async def shutdown_db_client():
    close_mongo_client()
    logger.info("Application shutdown complete")

@app.get("/")
async def root():
    return {"message": settings.APP_NAME, "version": settings.VERSION}

@app.get("/health")
async def health_check():
    db = get_mongo_db()
    if db is None:
        return {"status": "degraded", "database": "mongo_not_configured"}
    try:
        await db.command({"ping": 1})
        return {"status": "healthy", "database": "mongo_connected"}
    except Exception as e:
        logger.warning(f"Health Mongo check failed: {e}")
        return {"status": "degraded", "database": "mongo_unavailable"}
