"""Invocation triggers for the pipeline, for use by an external cron.

The handlers are sync so runs execute in the threadpool, off the event loop.
"""

import logging

from fastapi import APIRouter, Depends, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from vocabdrop.clock import utc_now
from vocabdrop.db import get_db
from vocabdrop.dependencies import require_service_token
from vocabdrop.schemas.jobs import JobErrorResponse, ProcessRunSummary, ScheduleRunSummary
from vocabdrop.services.daily_schedule import run_daily_schedule
from vocabdrop.services.outbox_processor import process_outbox

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/jobs", tags=["jobs"])


def _error_response(e: Exception) -> JSONResponse:
    body = JobErrorResponse(error=str(e), timestamp=utc_now())
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=jsonable_encoder(body),
    )


@router.post(
    "/daily-schedule",
    response_model=ScheduleRunSummary,
    responses={500: {"model": JobErrorResponse}},
)
def trigger_daily_schedule(
    db: Session = Depends(get_db),
    _token: dict = Depends(require_service_token),
):
    """Run the daily scheduler now."""
    try:
        return run_daily_schedule(db)
    except Exception as e:
        logger.error(f"Error in daily scheduler: {e}")
        db.rollback()
        return _error_response(e)


@router.post(
    "/outbox",
    response_model=ProcessRunSummary,
    responses={500: {"model": JobErrorResponse}},
)
def trigger_outbox(
    db: Session = Depends(get_db),
    _token: dict = Depends(require_service_token),
):
    """Send due outbox messages now."""
    try:
        return process_outbox(db)
    except Exception as e:
        logger.error(f"Error in outbox processor: {e}")
        db.rollback()
        return _error_response(e)
