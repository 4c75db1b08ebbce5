"""
Tests for the offer lifecycle sweeps.

Tests cover:
- Auto-activation within the checkpoint lookback window
- Auto-expiration
- Auto-extension, shortfall warnings and the one-extension-per-window guard
- Checkpoint bookkeeping on success and failure
"""
import pytest
from datetime import datetime, timedelta
from unittest.mock import patch, MagicMock

from dealbyrd.extensions import db
from dealbyrd.models import Notification, SchedulerState, CampaignFolder
from dealbyrd.services.lifecycle_service import (
    LifecycleService,
    compute_lookback_minutes,
    ACTIVATE_JOB,
    EXPIRE_JOB,
    FIRST_RUN_LOOKBACK_MINUTES,
)

NOW = datetime(2026, 3, 7, 12, 0, 0)


def _notifications(merchant_id, notification_type):
    return Notification.query.filter_by(merchant_id=merchant_id, type=notification_type).all()


class TestLookback:
    """Tests for compute_lookback_minutes."""

    def test_no_checkpoint_uses_first_run_window(self):
        """Without a previous success the sweep looks back 24 hours."""
        assert compute_lookback_minutes(None, NOW) == FIRST_RUN_LOOKBACK_MINUTES == 1440

    def test_rounds_partial_minutes_up(self):
        """15.5 minutes since the last run becomes 16."""
        last = NOW - timedelta(minutes=15, seconds=30)
        assert compute_lookback_minutes(last, NOW) == 16

    def test_minimum_one_minute(self):
        """Back-to-back runs still look back one minute."""
        assert compute_lookback_minutes(NOW, NOW) == 1


class TestActivateSweep:
    """Tests for run_activate_sweep."""

    def test_activates_offer_whose_start_date_arrived(self, sample_merchant, make_offer):
        """An offer that started five minutes ago is activated and announced once."""
        offer = make_offer(
            sample_merchant, status='draft',
            start_date=NOW - timedelta(minutes=5), end_date=NOW + timedelta(days=2)
        )

        result = LifecycleService().run_activate_sweep(NOW)

        assert result['activated'] == 1
        assert result['lookback_minutes'] == FIRST_RUN_LOOKBACK_MINUTES
        assert result['errors'] == []
        assert offer.status == 'active'
        assert offer.activated_at == NOW
        assert len(_notifications(sample_merchant.id, 'offer_activated')) == 1

    def test_second_run_does_not_reactivate(self, sample_merchant, make_offer):
        """activated_at makes activation one-shot."""
        make_offer(sample_merchant, status='draft',
                   start_date=NOW - timedelta(minutes=5), end_date=NOW + timedelta(days=2))
        service = LifecycleService()

        service.run_activate_sweep(NOW)
        second = service.run_activate_sweep(NOW + timedelta(minutes=15))

        assert second['activated'] == 0
        assert second['lookback_minutes'] == 15
        assert len(_notifications(sample_merchant.id, 'offer_activated')) == 1

    def test_start_date_outside_lookback_is_ignored(self, sample_merchant, make_offer):
        """Offers that started before the lookback window are left alone."""
        offer = make_offer(sample_merchant, status='draft',
                           start_date=NOW - timedelta(days=2), end_date=NOW + timedelta(days=2))

        result = LifecycleService().run_activate_sweep(NOW)

        assert result['activated'] == 0
        assert offer.activated_at is None

    def test_lookback_follows_checkpoint(self, sample_merchant, make_offer):
        """After a 40 minute outage the sweep covers the whole gap."""
        state = SchedulerState(job_name=ACTIVATE_JOB, last_successful_run_at=NOW - timedelta(minutes=40))
        db.session.add(state)
        db.session.commit()
        offer = make_offer(sample_merchant, status='draft',
                           start_date=NOW - timedelta(minutes=30), end_date=NOW + timedelta(days=1))

        result = LifecycleService().run_activate_sweep(NOW)

        assert result['lookback_minutes'] == 40
        assert result['activated'] == 1
        assert offer.status == 'active'

    def test_future_and_ended_offers_not_activated(self, sample_merchant, make_offer):
        """start_date in the future or end_date already passed are both skipped."""
        future = make_offer(sample_merchant, status='draft',
                            start_date=NOW + timedelta(minutes=5), end_date=NOW + timedelta(days=1))
        ended = make_offer(sample_merchant, status='draft',
                           start_date=NOW - timedelta(minutes=30), end_date=NOW - timedelta(minutes=1))

        result = LifecycleService().run_activate_sweep(NOW)

        assert result['activated'] == 0
        assert future.activated_at is None
        assert ended.activated_at is None

    def test_deleted_and_unreintegrated_offers_skipped(self, sample_merchant, make_offer):
        """Soft-deleted offers and offers awaiting reintegration never activate."""
        make_offer(sample_merchant, status='draft', is_deleted=True,
                   start_date=NOW - timedelta(minutes=5), end_date=NOW + timedelta(days=1))
        make_offer(sample_merchant, status='draft', needs_reintegration=True,
                   start_date=NOW - timedelta(minutes=5), end_date=NOW + timedelta(days=1))

        result = LifecycleService().run_activate_sweep(NOW)

        assert result['processed'] == 0

    def test_locked_folder_offer_still_activates(self, sample_merchant, make_offer):
        """Campaign lock blocks merchant edits, not the scheduled lifecycle."""
        folder = CampaignFolder(merchant_id=sample_merchant.id, name='Spring', status='campaign', is_locked=True)
        db.session.add(folder)
        db.session.commit()
        offer = make_offer(sample_merchant, status='draft', campaign_folder_id=folder.id,
                           start_date=NOW - timedelta(minutes=5), end_date=NOW + timedelta(days=1))

        result = LifecycleService().run_activate_sweep(NOW)

        assert result['activated'] == 1
        assert offer.status == 'active'

    def test_records_checkpoint_on_success(self, sample_merchant):
        """A run with nothing to do still advances the checkpoint."""
        LifecycleService().run_activate_sweep(NOW)

        state = db.session.get(SchedulerState, ACTIVATE_JOB)
        assert state.last_successful_run_at == NOW
        assert state.last_error is None

    def test_failure_before_batch_keeps_checkpoint(self, sample_merchant):
        """If loading candidates fails the checkpoint stays put for a wider retry."""
        with patch('dealbyrd.services.offer_repository.get_offers_to_activate',
                   side_effect=RuntimeError('database unavailable')):
            result = LifecycleService().run_activate_sweep(NOW)

        assert result['activated'] == 0
        assert 'database unavailable' in result['errors'][0]['error']

        state = db.session.get(SchedulerState, ACTIVATE_JOB)
        assert state.last_successful_run_at is None
        assert 'database unavailable' in state.last_error

    def test_per_offer_error_does_not_stop_batch(self, sample_merchant, make_offer):
        """One failing offer is reported; the rest are processed and the checkpoint advances."""
        make_offer(sample_merchant, status='draft', title='First',
                   start_date=NOW - timedelta(minutes=5), end_date=NOW + timedelta(days=1))
        make_offer(sample_merchant, status='draft', title='Second',
                   start_date=NOW - timedelta(minutes=5), end_date=NOW + timedelta(days=1))

        notifier = MagicMock()
        notifier.notify_offer_activated.side_effect = [RuntimeError('boom'), None]

        result = LifecycleService(notifier=notifier).run_activate_sweep(NOW)

        assert result['processed'] == 2
        assert result['activated'] == 1
        assert len(result['errors']) == 1
        assert db.session.get(SchedulerState, ACTIVATE_JOB).last_successful_run_at == NOW


class TestExpireSweep:
    """Tests for run_expire_sweep."""

    def test_expires_active_offer_past_end_date(self, sample_merchant, make_offer):
        """Active offer past its end date becomes expired with a low priority notice."""
        offer = make_offer(sample_merchant, status='active',
                           start_date=NOW - timedelta(days=2), end_date=NOW - timedelta(minutes=1))

        result = LifecycleService().run_expire_sweep(NOW)

        assert result['expired'] == 1
        assert offer.status == 'expired'
        notices = _notifications(sample_merchant.id, 'offer_expired')
        assert len(notices) == 1
        assert notices[0].priority == 'low'
        assert notices[0].action_url == '/offers?view=expired'

    def test_running_offer_and_drafts_untouched(self, sample_merchant, make_offer):
        """Only active offers whose end date passed are expired."""
        running = make_offer(sample_merchant, status='active', end_date=NOW + timedelta(hours=3))
        draft = make_offer(sample_merchant, status='draft', end_date=NOW - timedelta(hours=3))

        result = LifecycleService().run_expire_sweep(NOW)

        assert result['expired'] == 0
        assert running.status == 'active'
        assert draft.status == 'draft'

    def test_expire_is_idempotent(self, sample_merchant, make_offer):
        """A second run finds nothing left to expire."""
        make_offer(sample_merchant, status='active', end_date=NOW - timedelta(minutes=1))
        service = LifecycleService()

        service.run_expire_sweep(NOW)
        second = service.run_expire_sweep(NOW + timedelta(minutes=15))

        assert second['expired'] == 0
        assert len(_notifications(sample_merchant.id, 'offer_expired')) == 1
        assert db.session.get(SchedulerState, EXPIRE_JOB).last_successful_run_at == NOW + timedelta(minutes=15)

    def test_offer_ending_now_expires_and_never_activates(self, sample_merchant, make_offer):
        """end_date == now belongs to expire only."""
        offer = make_offer(sample_merchant, status='active',
                           start_date=NOW - timedelta(minutes=10), end_date=NOW)
        service = LifecycleService()

        activated = service.run_activate_sweep(NOW)
        expired = service.run_expire_sweep(NOW)

        assert activated['activated'] == 0
        assert offer.activated_at is None
        assert expired['expired'] == 1
        assert offer.status == 'expired'
        assert _notifications(sample_merchant.id, 'offer_activated') == []


class TestExtendSweep:
    """Tests for run_extend_sweep."""

    def test_extends_offer_that_missed_target(self, sample_merchant, make_offer):
        """auto_extend with units below target pushes end_date by extension_days."""
        end = NOW + timedelta(minutes=30)
        offer = make_offer(sample_merchant, status='active', end_date=end,
                           auto_extend=True, target_units=10, units_sold=3, extension_days=2)

        result = LifecycleService().run_extend_sweep(NOW)

        assert result['extended'] == 1
        assert offer.end_date == end + timedelta(days=2)
        assert offer.last_auto_extended_at == NOW
        notices = _notifications(sample_merchant.id, 'auto_extend')
        assert len(notices) == 1
        assert '3 of 10' in notices[0].message

    def test_default_extension_is_three_days(self, sample_merchant, make_offer):
        """Without extension_days set, the offer gets 3 more days."""
        end = NOW + timedelta(minutes=30)
        offer = make_offer(sample_merchant, status='active', end_date=end,
                           auto_extend=True, target_units=10, units_sold=3)

        LifecycleService().run_extend_sweep(NOW)

        assert offer.extension_days == 3
        assert offer.end_date == end + timedelta(days=3)

    def test_auto_extend_wins_over_shortfall(self, sample_merchant, make_offer):
        """With both flags set, only the auto_extend notice is sent."""
        make_offer(sample_merchant, status='active', end_date=NOW + timedelta(minutes=30),
                   auto_extend=True, notify_on_shortfall=True, target_units=10, units_sold=3)

        result = LifecycleService().run_extend_sweep(NOW)

        assert result['extended'] == 1
        assert result['shortfall_warnings'] == 0
        assert len(_notifications(sample_merchant.id, 'auto_extend')) == 1
        assert _notifications(sample_merchant.id, 'shortfall_warning') == []

    def test_auto_extend_without_target_is_skipped(self, sample_merchant, make_offer):
        end = NOW + timedelta(minutes=30)
        offer = make_offer(sample_merchant, status='active', end_date=end,
                           auto_extend=True, target_units=None)

        result = LifecycleService().run_extend_sweep(NOW)

        assert result['skipped'] == 1
        assert result['extended'] == 0
        assert offer.end_date == end
        assert _notifications(sample_merchant.id, 'auto_extend') == []

    def test_recent_extension_is_not_repeated(self, sample_merchant, make_offer):
        """An offer extended within the last hour is skipped."""
        end = NOW + timedelta(minutes=30)
        offer = make_offer(sample_merchant, status='active', end_date=end,
                           auto_extend=True, target_units=10, units_sold=3,
                           last_auto_extended_at=NOW - timedelta(minutes=20))

        result = LifecycleService().run_extend_sweep(NOW)

        assert result['extended'] == 0
        assert result['skipped'] == 1
        assert offer.end_date == end

    def test_target_met_is_not_extended(self, sample_merchant, make_offer):
        """Offers that hit their target run out normally."""
        end = NOW + timedelta(minutes=30)
        offer = make_offer(sample_merchant, status='active', end_date=end,
                           auto_extend=True, target_units=10, units_sold=10)

        result = LifecycleService().run_extend_sweep(NOW)

        assert result['target_met'] == 1
        assert result['extended'] == 0
        assert offer.end_date == end

    def test_shortfall_warning_without_auto_extend(self, sample_merchant, make_offer):
        """notify_on_shortfall warns instead of extending."""
        end = NOW + timedelta(minutes=45)
        offer = make_offer(sample_merchant, status='active', end_date=end,
                           auto_extend=False, notify_on_shortfall=True, target_units=10, units_sold=4)

        result = LifecycleService().run_extend_sweep(NOW)

        assert result['shortfall_warnings'] == 1
        assert result['extended'] == 0
        assert offer.end_date == end
        assert len(_notifications(sample_merchant.id, 'shortfall_warning')) == 1

    def test_no_shortfall_flag_is_skipped(self, sample_merchant, make_offer):
        """Offers with neither auto_extend nor notify_on_shortfall are skipped."""
        make_offer(sample_merchant, status='active', end_date=NOW + timedelta(minutes=45),
                   auto_extend=False, notify_on_shortfall=False, target_units=10, units_sold=1)

        result = LifecycleService().run_extend_sweep(NOW)

        assert result['skipped'] == 1
        assert result['shortfall_warnings'] == 0

    def test_offers_outside_window_ignored(self, sample_merchant, make_offer):
        """Offers ending more than an hour out are not candidates."""
        make_offer(sample_merchant, status='active', end_date=NOW + timedelta(hours=3),
                   auto_extend=True, target_units=10, units_sold=0)

        result = LifecycleService().run_extend_sweep(NOW)

        assert result['processed'] == 0


class TestLifecycleStatus:
    """Tests for get_status."""

    def test_status_lists_every_job(self, app):
        """Jobs that never ran report no last success."""
        status = LifecycleService().get_status()

        assert set(status) == {'auto_activate', 'auto_expire', 'auto_extend'}
        assert status['auto_activate']['last_successful_run_at'] is None
