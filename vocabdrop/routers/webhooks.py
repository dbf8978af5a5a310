import json
import logging

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status
from sqlalchemy.orm import Session

from vocabdrop.clock import utc_now
from vocabdrop.config import settings
from vocabdrop.db import get_db
from vocabdrop.services.subscriptions import (
    InvalidPayloadError,
    InvalidSignatureError,
    apply_payment_event,
    verify_webhook_signature,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


@router.post("/razorpay")
async def razorpay_webhook(
    request: Request,
    x_razorpay_signature: str | None = Header(default=None),
    db: Session = Depends(get_db),
):
    """Apply Razorpay subscription lifecycle events."""
    body = await request.body()

    if settings.razorpay_webhook_secret:
        try:
            verify_webhook_signature(body, x_razorpay_signature, settings.razorpay_webhook_secret)
        except InvalidSignatureError as e:
            logger.error("Invalid webhook signature")
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(e))

    try:
        event = json.loads(body)
    except json.JSONDecodeError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid JSON payload")

    try:
        subscription = apply_payment_event(db, event, utc_now())
    except InvalidPayloadError as e:
        logger.warning(f"Rejected webhook payload: {e}")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return {"success": True, "applied": subscription is not None}
