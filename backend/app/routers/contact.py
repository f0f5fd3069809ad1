# app/routers/contact.py
import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from app.core.rate_limit import contact_rate_limit
from app.lib.contact import FAILURE_MESSAGE

router = APIRouter(prefix="/api", tags=["contact"])
log = logging.getLogger("uvicorn.error")


@router.post("/contact", dependencies=[Depends(contact_rate_limit)])
async def contact(request: Request):
    try:
        payload = await request.json()
    except ValueError:
        payload = {}
    if not isinstance(payload, dict):
        payload = {}

    try:
        outcome = await request.app.state.intake.handle_submission(payload)
    except Exception:
        log.exception("[contact] Contact form error")
        return JSONResponse(status_code=500, content={"success": False, "message": FAILURE_MESSAGE})

    return JSONResponse(status_code=outcome.status_code, content=outcome.body)
