"""
Slot status lifecycle.

Transitions, applied in this order in one transaction (intervals are
half-open, [start, end)):

    booked,   Upcoming           start <= now < end  ->  Ongoing
    booked,   Upcoming|Ongoing   end <= now          ->  Completed
    unbooked, Upcoming           end <= now          ->  Cancelled

Terminal statuses are never touched again, so a sweep is idempotent and a
slot's status only moves forward.
"""
import atexit
import logging

from apscheduler.schedulers.background import BackgroundScheduler
from sqlalchemy import update
from sqlalchemy.orm import sessionmaker

from models import db
from models.availability import (
    AvailabilitySlot,
    STATUS_CANCELLED,
    STATUS_COMPLETED,
    STATUS_ONGOING,
    STATUS_UPCOMING,
)
from utils.timeutil import utcnow
from utils.transaction import session_scope

logger = logging.getLogger(__name__)

SWEEP_JOB_ID = "slot_status_sweep"


def _bulk_status(session, new_status, *criteria) -> int:
    result = session.execute(
        update(AvailabilitySlot)
        .where(*criteria)
        .values(status=new_status)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount


def sweep_slot_statuses(session, now=None) -> dict:
    """Apply all three transitions. Caller owns the transaction."""
    now = now or utcnow()
    S = AvailabilitySlot

    started = _bulk_status(
        session, STATUS_ONGOING,
        S.is_booked.is_(True),
        S.status == STATUS_UPCOMING,
        S.start_time <= now,
        S.end_time > now,
    )
    completed = _bulk_status(
        session, STATUS_COMPLETED,
        S.is_booked.is_(True),
        S.status.in_((STATUS_UPCOMING, STATUS_ONGOING)),
        S.end_time <= now,
    )
    cancelled = _bulk_status(
        session, STATUS_CANCELLED,
        S.is_booked.is_(False),
        S.status == STATUS_UPCOMING,
        S.end_time <= now,
    )
    return {"ongoing": started, "completed": completed, "cancelled": cancelled}


def run_sweep(app, now=None):
    """
    One scheduled/CLI run with its own session. Never raises: a failed run is
    logged and rolled back, and the next run tries again.
    """
    with app.app_context():
        try:
            with session_scope(sessionmaker(bind=db.engine)) as session:
                counts = sweep_slot_statuses(session, now)
        except Exception:
            logger.exception("slot status sweep failed")
            return None

    logger.info(
        "slot status sweep: %d ongoing, %d completed, %d cancelled",
        counts["ongoing"], counts["completed"], counts["cancelled"],
    )
    return counts


def start_scheduler(app) -> BackgroundScheduler:
    interval = app.config.get("SLOT_SWEEP_INTERVAL_MINUTES", 10)
    scheduler = BackgroundScheduler(daemon=True)
    scheduler.add_job(
        run_sweep,
        "interval",
        minutes=interval,
        args=[app],
        id=SWEEP_JOB_ID,
        max_instances=1,
        coalesce=True,
        replace_existing=True,
    )
    scheduler.start()
    atexit.register(lambda: scheduler.shutdown(wait=False))
    app.extensions["slot_scheduler"] = scheduler
    logger.info("slot status sweep scheduled every %s minutes", interval)
    return scheduler
