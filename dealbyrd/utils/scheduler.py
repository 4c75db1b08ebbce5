"""
Background scheduler for offer lifecycle sweeps.

Handles (at startup, then every 15 minutes, UTC):
- Auto-activation of offers whose start date arrived
- Auto-expiration of offers past their end date
- Auto-extension / shortfall warnings for offers ending within the hour
"""
import os
import atexit
import logging
from datetime import datetime

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

logger = logging.getLogger(__name__)

# Global scheduler instance
_scheduler = None
_flask_app = None  # Flask app reference for job context


def init_scheduler(app):
    """
    Initialize the background scheduler.

    Only runs in production or when ENABLE_SCHEDULER=true.
    Only the first gunicorn process runs the scheduler.
    """
    global _scheduler, _flask_app

    _flask_app = app

    if app.config.get('TESTING'):
        # print: logging may not be configured for the app yet
        print('[Scheduler] Disabled in testing mode')
        return

    if not (os.getenv('FLASK_ENV') == 'production' or app.config.get('ENABLE_SCHEDULER')):
        print('[Scheduler] Disabled (set FLASK_ENV=production or ENABLE_SCHEDULER=true)')
        return

    # One scheduler across gunicorn workers
    if os.getenv('SCHEDULER_RUNNING') == 'true':
        print('[Scheduler] Already running in another process')
        return

    from ..services.lifecycle_service import SWEEP_INTERVAL_MINUTES

    try:
        # First run at startup, then every interval
        started_at = datetime.utcnow()

        _scheduler = BackgroundScheduler(
            timezone='UTC',
            job_defaults={
                'coalesce': True,  # Combine missed runs
                'max_instances': 1,  # Never overlap a sweep with itself
                'misfire_grace_time': 300
            }
        )

        _scheduler.add_job(
            run_auto_activate,
            trigger=IntervalTrigger(minutes=SWEEP_INTERVAL_MINUTES),
            id='auto_activate',
            name='Activate offers whose start date arrived',
            next_run_time=started_at,
            replace_existing=True
        )

        _scheduler.add_job(
            run_auto_expire,
            trigger=IntervalTrigger(minutes=SWEEP_INTERVAL_MINUTES),
            id='auto_expire',
            name='Expire offers past their end date',
            next_run_time=started_at,
            replace_existing=True
        )

        _scheduler.add_job(
            run_auto_extend,
            trigger=IntervalTrigger(minutes=SWEEP_INTERVAL_MINUTES),
            id='auto_extend',
            name='Extend or warn on offers ending soon',
            next_run_time=started_at,
            replace_existing=True
        )

        _scheduler.start()
        os.environ['SCHEDULER_RUNNING'] = 'true'

        print(f'[Scheduler] Started with 3 lifecycle jobs, every {SWEEP_INTERVAL_MINUTES} minutes:')
        print('  - Auto-activate')
        print('  - Auto-expire')
        print('  - Auto-extend / shortfall warnings')

        atexit.register(shutdown_scheduler)

    except Exception as e:
        print(f'[Scheduler] Failed to initialize: {e}')


def shutdown_scheduler():
    """Shutdown the scheduler gracefully."""
    global _scheduler

    if _scheduler:
        _scheduler.shutdown(wait=False)
        _scheduler = None
        os.environ.pop('SCHEDULER_RUNNING', None)
        logger.info('[Scheduler] Shutdown complete')


def run_auto_activate():
    """Job: activate offers whose start date fell since the last run."""
    from ..services.lifecycle_service import lifecycle_service

    with _flask_app.app_context():
        try:
            result = lifecycle_service.run_activate_sweep()
            logger.info(f'[Scheduler] Auto-activate: {result["activated"]} activated')
        except Exception as e:
            logger.error(f'[Scheduler] Auto-activate failed: {e}')


def run_auto_expire():
    """Job: expire active offers past their end date."""
    from ..services.lifecycle_service import lifecycle_service

    with _flask_app.app_context():
        try:
            result = lifecycle_service.run_expire_sweep()
            logger.info(f'[Scheduler] Auto-expire: {result["expired"]} expired')
        except Exception as e:
            logger.error(f'[Scheduler] Auto-expire failed: {e}')


def run_auto_extend():
    """Job: extend or warn on offers ending within the hour."""
    from ..services.lifecycle_service import lifecycle_service

    with _flask_app.app_context():
        try:
            result = lifecycle_service.run_extend_sweep()
            logger.info(
                f'[Scheduler] Auto-extend: {result["extended"]} extended, '
                f'{result["shortfall_warnings"]} shortfall warnings'
            )
        except Exception as e:
            logger.error(f'[Scheduler] Auto-extend failed: {e}')


def get_next_run_times() -> dict:
    """Get the next scheduled run times for all jobs."""
    if not _scheduler:
        return {'error': 'Scheduler not initialized'}

    jobs = {}
    for job in _scheduler.get_jobs():
        next_run = job.next_run_time
        jobs[job.id] = {
            'name': job.name,
            'next_run': next_run.isoformat() if next_run else None
        }

    return jobs
