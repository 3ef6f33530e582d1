# dreamsaver/main.py
import uvicorn
import os
import logging
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text

from dreamsaver.core.config import settings
from dreamsaver.core.database import engine, Base, utcnow
from dreamsaver.core.errors import register_exception_handlers
from dreamsaver.api.v1.api import api_router

# Register every table on Base.metadata
from dreamsaver.models import product, goal, deposit, price_lock, notification  # noqa: F401

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


# Create all tables on startup (production runs Alembic migrations)
async def create_db_and_tables():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.VERSION,
    openapi_tags=[
        {"name": "goals", "description": "Savings goals, deposits and redemption"},
        {"name": "payments", "description": "Stripe checkout and webhook"},
        {"name": "notifications", "description": "In-app notification inbox"},
    ],
)

# CORS Configuration
origins = [
    settings.FRONTEND_URL,
    "http://localhost:3000",  # Local development
    "http://localhost:3001",  # Backup local port
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request, exc):
    if isinstance(exc, HTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail}
        )

    logger.exception(f"Unhandled exception on {request.method} {request.url.path}: {exc}")

    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"}
    )


# ------------------------------------------------------------
# ROOT ENDPOINT
# ------------------------------------------------------------
@app.get("/", tags=["Root"])
async def root():
    return {
        "message": f"{settings.APP_NAME} is running!",
        "version": settings.VERSION
    }


# ------------------------------------------------------------
# HEALTH CHECK ENDPOINT
# ------------------------------------------------------------
@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint, including database connectivity"""
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        logger.error(f"Health check failed: {str(e)}")
        raise HTTPException(status_code=503, detail="Service unhealthy: database unreachable")
    return {
        "status": "healthy",
        "timestamp": utcnow().isoformat() + "Z",
        "version": settings.VERSION,
        "environment": settings.ENVIRONMENT
    }


# ------------------------------------------------------------
# BUSINESS LOGIC ROUTES
# ------------------------------------------------------------
app.include_router(api_router, prefix="/api/v1")


# ------------------------------------------------------------
# STARTUP EVENT
# ------------------------------------------------------------
@app.on_event("startup")
async def on_startup():
    try:
        await create_db_and_tables()
        logger.info("Database tables created successfully")
        logger.info(f"Frontend URL: {settings.FRONTEND_URL}")
        if not settings.STRIPE_SECRET_KEY:
            logger.warning("Stripe secret key not configured - checkout will be unavailable")
        if not settings.STRIPE_WEBHOOK_SECRET:
            logger.warning("Stripe webhook secret not configured - webhook events will be rejected")
    except Exception as e:
        logger.error(f"Startup error: {str(e)}")


if __name__ == "__main__":
    port = int(os.environ.get("PORT", 8000))
    uvicorn.run("dreamsaver.main:app", host="0.0.0.0", port=port, reload=False)
