"""Email pipeline endpoints: domain events, delivery webhooks, explicit resend"""
import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from mailflow.core.config import settings
from mailflow.core.security import verify_orchestrator_signature
from mailflow.db.session import get_db
from mailflow.services.orchestrator_service import handle_email_event
from mailflow.services.resend_service import resend_email
from mailflow.services.webhook_service import process_resend_webhook

router = APIRouter(prefix="/api/email", tags=["email"])
logger = logging.getLogger(__name__)


@router.post("/events")
async def email_events(request: Request, db: Session = Depends(get_db)):
    """Orchestrator: turn a signed domain event into a queued email"""
    payload = await request.body()
    signature = request.headers.get(settings.ORCHESTRATOR_SIGNATURE_HEADER)

    status_code, body = handle_email_event(payload, signature, db)
    return JSONResponse(status_code=status_code, content=body)


@router.post("/webhook")
async def resend_webhook(request: Request, db: Session = Depends(get_db)):
    """Handle Resend webhook events"""
    payload = await request.body()

    status_code, body = process_resend_webhook(payload, request.headers, db)
    return JSONResponse(status_code=status_code, content=body)


@router.post("/logs/{log_id}/resend")
async def resend_logged_email(log_id: int, request: Request, db: Session = Depends(get_db)):
    """Queue a failed or bounced email again as a new attempt"""
    payload = await request.body()
    signature = request.headers.get(settings.ORCHESTRATOR_SIGNATURE_HEADER)
    if not verify_orchestrator_signature(payload, signature):
        raise HTTPException(401, "Invalid signature")

    try:
        return resend_email(log_id, db)
    except ValueError as e:
        error_msg = str(e)
        if "not found" in error_msg.lower():
            raise HTTPException(404, error_msg)
        raise HTTPException(400, error_msg)
