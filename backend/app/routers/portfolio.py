# app/routers/portfolio.py
from typing import Any, Dict, List

from fastapi import APIRouter

from app.lib.portfolio import load_portfolio, load_projects

router = APIRouter(prefix="/api", tags=["portfolio"])


@router.get("/portfolio")
async def portfolio() -> Dict[str, Any]:
    return load_portfolio()


@router.get("/projects")
async def projects() -> List[Dict[str, Any]]:
    return load_projects()
