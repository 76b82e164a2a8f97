import atexit
import logging
from datetime import datetime

from apscheduler.schedulers.background import BackgroundScheduler

from slotbook.extensions import db
from slotbook.services.events import dispatch_pending_events
from slotbook.services.lifecycle import AppointmentLifecycle

logger = logging.getLogger(__name__)

scheduler = BackgroundScheduler()


def run_completion_sweep(app, now=None):
    """Complete CONFIRMED appointments whose end time has passed."""
    now = now or datetime.now()
    with app.app_context():
        try:
            completed = AppointmentLifecycle(db.session).complete_elapsed(now=now)
            if completed:
                logger.info(f"[SCHEDULER] Auto-completed {completed} appointment(s)")
            return completed
        except Exception:
            db.session.rollback()
            logger.exception("[SCHEDULER] Error auto-completing appointments")
            return 0
        finally:
            db.session.remove()


def run_event_dispatch(app):
    """Turn recorded appointment events into in-app notifications."""
    with app.app_context():
        try:
            dispatched = dispatch_pending_events(db.session)
            if dispatched:
                logger.info(f"[SCHEDULER] Dispatched {dispatched} appointment event(s)")
            return dispatched
        except Exception:
            logger.exception("[SCHEDULER] Error dispatching appointment events")
            return 0
        finally:
            db.session.remove()


def init_scheduler(app):
    """Register the background jobs and start the scheduler once."""
    scheduler.add_job(
        run_completion_sweep,
        "interval",
        minutes=app.config.get("COMPLETION_SWEEP_MINUTES", 5),
        args=[app],
        id="completion_sweep",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )
    scheduler.add_job(
        run_event_dispatch,
        "interval",
        seconds=app.config.get("EVENT_DISPATCH_SECONDS", 30),
        args=[app],
        id="event_dispatch",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )

    if not scheduler.running:
        scheduler.start()
        logger.info("[SCHEDULER] Scheduler started")
        # Shut down the scheduler when exiting the app
        atexit.register(lambda: scheduler.shutdown(wait=False))
    else:
        logger.info("[SCHEDULER] Scheduler already running (skipping duplicate start)")
