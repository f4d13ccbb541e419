"""Health check endpoints."""

from fastapi import APIRouter
from sqlalchemy import text

from app.core.config import get_settings
from app.core.dependencies import DbSession

router = APIRouter()


@router.get("/health")
async def health_check(db: DbSession):
    """Check if the API and its database are reachable."""
    await db.execute(text("SELECT 1"))
    return {"status": "healthy", "message": f"{get_settings().app_name} is running"}


@router.get("/")
async def root():
    """Root endpoint."""
    return {
        "name": get_settings().app_name,
        "version": "1.0.0",
        "description": "OTP authentication API for the AgriConnect marketplace",
    }
