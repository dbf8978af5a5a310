from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from vocabdrop.clock import utc_now
from vocabdrop.db import get_db
from vocabdrop.dependencies import require_admin_token
from vocabdrop.models.subscription import Subscription
from vocabdrop.schemas.delivery import (
    DeliverySettingsResponse,
    DeliverySettingsUpdate,
    DeliverySettingsWithSchedule,
)
from vocabdrop.services.delivery_settings import (
    get_delivery_settings,
    preview_today,
    save_delivery_settings,
)

router = APIRouter(prefix="/delivery-settings", tags=["delivery-settings"])


def _preferred_time(db: Session, user_id: str) -> str | None:
    subscription = db.query(Subscription).filter(Subscription.user_id == user_id).first()
    return subscription.delivery_time if subscription else None


@router.get("/{user_id}", response_model=DeliverySettingsWithSchedule)
async def read_delivery_settings(
    user_id: str,
    db: Session = Depends(get_db),
    _token: dict = Depends(require_admin_token),
):
    """Get a user's delivery settings and today's schedule."""
    delivery_settings = get_delivery_settings(db, user_id)
    if delivery_settings is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Delivery settings not found",
        )

    return DeliverySettingsWithSchedule(
        settings=DeliverySettingsResponse.model_validate(delivery_settings),
        today_schedule=preview_today(delivery_settings, _preferred_time(db, user_id), utc_now()),
    )


@router.put("/{user_id}", response_model=DeliverySettingsWithSchedule)
async def update_delivery_settings(
    user_id: str,
    update: DeliverySettingsUpdate,
    db: Session = Depends(get_db),
    _token: dict = Depends(require_admin_token),
):
    """Create or replace a user's delivery settings."""
    delivery_settings = save_delivery_settings(db, user_id, update)

    return DeliverySettingsWithSchedule(
        settings=DeliverySettingsResponse.model_validate(delivery_settings),
        today_schedule=preview_today(delivery_settings, _preferred_time(db, user_id), utc_now()),
    )
