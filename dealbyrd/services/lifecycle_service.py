"""
Offer lifecycle sweeps.

Three reconciliation jobs run on a fixed interval (see utils/scheduler.py):

- activate: offers whose start_date arrived since the last successful run
  become active; activated_at is set once so activation fires once.
- expire:   active offers past end_date become expired.
- extend:   active offers ending within the hour either get extended
  (auto_extend with a missed target) or trigger a shortfall warning.

Sweeps never raise. Per-offer failures are logged and collected in the
result; a failure before the batch starts leaves the checkpoint untouched so
the next run recomputes a wider lookback.
"""
import logging
import math
from datetime import datetime, timedelta
from typing import Dict, Any, Optional

from ..extensions import db
from ..models import OfferStatus, SchedulerState
from . import offer_repository
from .notification_service import NotificationService, notification_service

logger = logging.getLogger(__name__)

ACTIVATE_JOB = 'auto_activate'
EXPIRE_JOB = 'auto_expire'
EXTEND_JOB = 'auto_extend'
JOB_NAMES = (ACTIVATE_JOB, EXPIRE_JOB, EXTEND_JOB)

SWEEP_INTERVAL_MINUTES = 15
FIRST_RUN_LOOKBACK_MINUTES = 24 * 60
EXPIRING_WINDOW_HOURS = 1
DEFAULT_EXTENSION_DAYS = 3


def compute_lookback_minutes(last_successful_run: Optional[datetime], now: datetime) -> int:
    """Minutes since the last successful run, rounded up; 24h with no checkpoint."""
    if last_successful_run is None:
        return FIRST_RUN_LOOKBACK_MINUTES
    elapsed = (now - last_successful_run).total_seconds() / 60
    return max(1, math.ceil(elapsed))


class LifecycleService:
    """Runs the activate / expire / extend sweeps."""

    def __init__(self, notifier: NotificationService = None):
        self.notifier = notifier or notification_service

    # ==================== Checkpoints ====================

    def _start(self, job_name: str, now: datetime) -> SchedulerState:
        state = SchedulerState.get_or_create(job_name)
        state.last_started_at = now
        return state

    def _record_success(self, job_name: str, now: datetime) -> None:
        state = SchedulerState.get_or_create(job_name)
        state.last_successful_run_at = now
        state.last_error = None
        db.session.commit()

    def _record_failure(self, job_name: str, error: Exception) -> None:
        db.session.rollback()
        try:
            state = SchedulerState.get_or_create(job_name)
            state.last_error = str(error)[:2000]
            db.session.commit()
        except Exception as e:
            db.session.rollback()
            logger.error(f'[Lifecycle] Could not record failure for {job_name}: {e}')

    def get_status(self) -> Dict[str, Any]:
        states = {s.job_name: s for s in SchedulerState.query.filter(SchedulerState.job_name.in_(JOB_NAMES))}
        return {
            name: states[name].to_dict() if name in states else {'job_name': name, 'last_successful_run_at': None}
            for name in JOB_NAMES
        }

    # ==================== Activate ====================

    def run_activate_sweep(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        now = now or datetime.utcnow()
        result = {
            'job': ACTIVATE_JOB,
            'lookback_minutes': None,
            'processed': 0,
            'activated': 0,
            'errors': []
        }

        try:
            state = self._start(ACTIVATE_JOB, now)
            lookback = compute_lookback_minutes(state.last_successful_run_at, now)
            result['lookback_minutes'] = lookback
            offers = offer_repository.get_offers_to_activate(now, lookback)
        except Exception as e:
            logger.error(f'[Lifecycle] Activate sweep failed before processing: {e}')
            self._record_failure(ACTIVATE_JOB, e)
            result['errors'].append({'error': str(e)})
            return result

        for offer in offers:
            offer_id, title, merchant_id = offer.id, offer.title, offer.merchant_id
            result['processed'] += 1
            try:
                offer_repository.update_offer(
                    offer_id, merchant_id,
                    {'status': OfferStatus.ACTIVE.value, 'activated_at': now},
                    enforce_lock=False
                )
                self.notifier.notify_offer_activated(merchant_id, offer_id, title, now=now)
                result['activated'] += 1
                logger.info(f'[Lifecycle] Activated offer {offer_id} "{title}"')
            except Exception as e:
                db.session.rollback()
                logger.error(f'[Lifecycle] Failed to activate offer {offer_id} "{title}": {e}')
                result['errors'].append({'offer_id': offer_id, 'title': title, 'error': str(e)})

        self._record_success(ACTIVATE_JOB, now)
        logger.info(
            f'[Lifecycle] Activate sweep: {result["activated"]}/{result["processed"]} activated '
            f'(lookback {result["lookback_minutes"]} min)'
        )
        return result

    # ==================== Expire ====================

    def run_expire_sweep(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        now = now or datetime.utcnow()
        result = {'job': EXPIRE_JOB, 'processed': 0, 'expired': 0, 'errors': []}

        try:
            self._start(EXPIRE_JOB, now)
            offers = offer_repository.get_offers_to_expire(now)
        except Exception as e:
            logger.error(f'[Lifecycle] Expire sweep failed before processing: {e}')
            self._record_failure(EXPIRE_JOB, e)
            result['errors'].append({'error': str(e)})
            return result

        for offer in offers:
            offer_id, title, merchant_id = offer.id, offer.title, offer.merchant_id
            result['processed'] += 1
            try:
                offer_repository.update_offer(
                    offer_id, merchant_id, {'status': OfferStatus.EXPIRED.value}, enforce_lock=False
                )
                self.notifier.notify_offer_expired(merchant_id, offer_id, title, now=now)
                result['expired'] += 1
                logger.info(f'[Lifecycle] Expired offer {offer_id} "{title}"')
            except Exception as e:
                db.session.rollback()
                logger.error(f'[Lifecycle] Failed to expire offer {offer_id} "{title}": {e}')
                result['errors'].append({'offer_id': offer_id, 'title': title, 'error': str(e)})

        self._record_success(EXPIRE_JOB, now)
        logger.info(f'[Lifecycle] Expire sweep: {result["expired"]}/{result["processed"]} expired')
        return result

    # ==================== Extend ====================

    def run_extend_sweep(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        now = now or datetime.utcnow()
        result = {
            'job': EXTEND_JOB,
            'processed': 0,
            'extended': 0,
            'shortfall_warnings': 0,
            'target_met': 0,
            'skipped': 0,
            'errors': []
        }

        try:
            self._start(EXTEND_JOB, now)
            offers = offer_repository.get_expiring_offers(EXPIRING_WINDOW_HOURS, now)
        except Exception as e:
            logger.error(f'[Lifecycle] Extend sweep failed before processing: {e}')
            self._record_failure(EXTEND_JOB, e)
            result['errors'].append({'error': str(e)})
            return result

        recent_cutoff = now - timedelta(hours=EXPIRING_WINDOW_HOURS)

        for offer in offers:
            offer_id, title, merchant_id = offer.id, offer.title, offer.merchant_id
            units_sold = offer.units_sold or 0
            target = offer.target_units
            result['processed'] += 1

            try:
                if offer.auto_extend and target:
                    if units_sold >= target:
                        result['target_met'] += 1
                        logger.info(f'[Lifecycle] Offer {offer_id} "{title}" met target {target}, not extending')
                        continue

                    # One extension per expiring window
                    if offer.last_auto_extended_at and offer.last_auto_extended_at > recent_cutoff:
                        result['skipped'] += 1
                        continue

                    days = offer.extension_days if offer.extension_days is not None else DEFAULT_EXTENSION_DAYS
                    offer_repository.update_offer(
                        offer_id, merchant_id,
                        {
                            'end_date': offer.end_date + timedelta(days=days),
                            'last_auto_extended_at': now
                        },
                        enforce_lock=False
                    )
                    self.notifier.notify_auto_extend(merchant_id, offer_id, title, days, units_sold, target, now=now)
                    result['extended'] += 1
                    logger.info(f'[Lifecycle] Extended offer {offer_id} "{title}" by {days} days')

                elif offer.notify_on_shortfall and not offer.auto_extend:
                    if target and units_sold < target:
                        self.notifier.notify_shortfall(merchant_id, offer_id, title, units_sold, target, now=now)
                        result['shortfall_warnings'] += 1
                    else:
                        result['skipped'] += 1
                else:
                    result['skipped'] += 1

            except Exception as e:
                db.session.rollback()
                logger.error(f'[Lifecycle] Failed to process expiring offer {offer_id} "{title}": {e}')
                result['errors'].append({'offer_id': offer_id, 'title': title, 'error': str(e)})

        self._record_success(EXTEND_JOB, now)
        logger.info(
            f'[Lifecycle] Extend sweep: {result["extended"]} extended, '
            f'{result["shortfall_warnings"]} shortfall warnings, {result["target_met"]} met target'
        )
        return result


lifecycle_service = LifecycleService()
