import logging

import pytz
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy.orm import Session

from vocabdrop.config import settings
from vocabdrop.db import SessionLocal
from vocabdrop.services.daily_schedule import run_daily_schedule
from vocabdrop.services.outbox_processor import process_outbox

logger = logging.getLogger(__name__)

scheduler = BackgroundScheduler()


def run_daily_schedule_job():
    """Daily job: enqueue today's words for every entitled subscription."""
    logger.info("Starting daily schedule job")
    db: Session = SessionLocal()

    try:
        summary = run_daily_schedule(db)
        logger.info(
            f"Daily schedule job completed: {summary.messages_inserted} messages for "
            f"{summary.total_subscriptions} subscriptions"
        )
    except Exception as e:
        logger.error(f"Error in daily schedule job: {e}")
        db.rollback()
    finally:
        db.close()


def run_outbox_job():
    """Frequent job: send queued messages that are due."""
    db: Session = SessionLocal()

    try:
        summary = process_outbox(db)
        if summary.processed_messages:
            logger.info(f"Outbox job processed {summary.processed_messages} messages")
    except Exception as e:
        logger.error(f"Error in outbox job: {e}")
        db.rollback()
    finally:
        db.close()


def start_scheduler():
    """Start the background scheduler."""
    if not settings.enable_scheduler:
        logger.info("Scheduler is disabled via configuration")
        return

    if scheduler.running:
        logger.info("Scheduler is already running")
        return

    scheduler.add_job(
        run_daily_schedule_job,
        trigger=CronTrigger(
            hour=settings.schedule_hour,
            minute=settings.schedule_minute,
            timezone=pytz.timezone(settings.schedule_timezone),
        ),
        id="daily_schedule",
        name="Daily Word Scheduler",
        replace_existing=True,
    )
    scheduler.add_job(
        run_outbox_job,
        trigger=IntervalTrigger(seconds=settings.outbox_poll_seconds),
        id="outbox_processor",
        name="Outbox Processor",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )

    scheduler.start()
    logger.info(
        f"Scheduler started. Daily schedule at {settings.schedule_hour:02d}:"
        f"{settings.schedule_minute:02d} {settings.schedule_timezone}, outbox every "
        f"{settings.outbox_poll_seconds}s"
    )


def stop_scheduler():
    """Stop the background scheduler."""
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler stopped")
