from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from vocabdrop.clock import utc_now
from vocabdrop.db import get_db
from vocabdrop.schemas.subscription import SubscriptionResponse, TrialSignupRequest
from vocabdrop.services.subscriptions import SubscriptionExistsError, start_trial

router = APIRouter(prefix="/subscriptions", tags=["subscriptions"])


@router.post("/trial", response_model=SubscriptionResponse, status_code=status.HTTP_201_CREATED)
async def create_trial_subscription(
    signup: TrialSignupRequest,
    db: Session = Depends(get_db),
):
    """Start a free trial for a phone number."""
    try:
        return start_trial(
            db,
            phone_number=signup.phone_number,
            first_name=signup.first_name,
            last_name=signup.last_name,
            delivery_time=signup.delivery_time,
            category=signup.category,
            now=utc_now(),
        )
    except SubscriptionExistsError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
