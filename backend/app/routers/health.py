# app/routers/health.py
from datetime import datetime, timezone

from fastapi import APIRouter, Request

router = APIRouter(prefix="/api", tags=["health"])


@router.get("/health")
async def health_root(request: Request):
    return {
        "status": "OK",
        "message": "Portfolio API is running",
        "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        "transport": request.app.state.transport.name,
    }
