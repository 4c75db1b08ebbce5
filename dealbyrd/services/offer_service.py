"""
Offer create/update rules.

Drafts may hold anything. Any write that leaves an offer active or paused
runs the full gate in order; only a move into active checks the count:

    required fields -> date window -> tier features -> active offer count
    -> 2 hour minimum run -> customer acquisition bank floor
"""
import logging
from datetime import datetime, timedelta, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional

from ..extensions import db
from ..models import (
    Merchant,
    Offer,
    OfferStatus,
    OfferType,
    AddType,
    RedemptionType,
    CampaignFolder,
    parse_delivery_config,
    delivery_config_to_dict,
)
from ..utils.exceptions import (
    FieldValidationError,
    FolderNotFoundError,
    InsufficientBalanceError,
    LockedFolderError,
    MerchantNotFoundError,
    OfferNotFoundError,
    ReintegrationRequiredError,
    TierLimitError,
    ValidationError,
)
from . import offer_repository
from .bank_service import bank_service
from .folder_service import folder_service, generate_folder_name
from .notification_service import notification_service
from .tier_validation import validate_offer_against_tier, validate_active_offer_count

logger = logging.getLogger(__name__)

MIN_RUN_HOURS = 2
START_DATE_GRACE_SECONDS = 60

STRING_FIELDS = ('title', 'description', 'menu_item', 'zip_code', 'image_url', 'video_url',
                 'coupon_delivery_method', 'campaign_folder_id')
DECIMAL_FIELDS = ('original_price', 'discount_value', 'click_budget_dollars',
                  'text_budget_dollars', 'rips_budget_dollars')
INT_FIELDS = ('max_clicks_allowed', 'target_units', 'extension_days')
BOOL_FIELDS = ('auto_extend', 'notify_on_shortfall', 'notify_on_target_met',
               'notify_on_poor_performance', 'get_new_customers_enabled')
DATE_FIELDS = ('start_date', 'end_date')
ENUM_FIELDS = {
    'offer_type': OfferType,
    'add_type': AddType,
    'redemption_type': RedemptionType,
}
EDITABLE_STATUSES = (OfferStatus.DRAFT.value, OfferStatus.ACTIVE.value, OfferStatus.PAUSED.value)


def parse_datetime(value, field: str) -> Optional[datetime]:
    """ISO-8601 string -> naive UTC datetime."""
    if value in (None, ''):
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            parsed = datetime.fromisoformat(str(value).replace('Z', '+00:00'))
        except ValueError:
            raise ValidationError(f"Invalid {field} format", field=field)
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def parse_offer_payload(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Coerce a JSON body into typed Offer column values. Unknown keys are ignored."""
    fields = {}

    for key in STRING_FIELDS:
        if key in payload:
            value = payload[key]
            fields[key] = value.strip() if isinstance(value, str) else value

    for key in DECIMAL_FIELDS:
        if key in payload:
            value = payload[key]
            if value in (None, ''):
                fields[key] = None
                continue
            try:
                fields[key] = Decimal(str(value))
            except InvalidOperation:
                raise ValidationError(f"{key} must be a number", field=key)

    for key in INT_FIELDS:
        if key in payload:
            value = payload[key]
            if value in (None, ''):
                fields[key] = None
                continue
            try:
                fields[key] = int(value)
            except (TypeError, ValueError):
                raise ValidationError(f"{key} must be a whole number", field=key)

    for key in BOOL_FIELDS:
        if key in payload:
            fields[key] = bool(payload[key])

    for key in DATE_FIELDS:
        if key in payload:
            fields[key] = parse_datetime(payload[key], key)

    for key, enum_cls in ENUM_FIELDS.items():
        if key in payload and payload[key] is not None:
            try:
                fields[key] = enum_cls(payload[key]).value
            except ValueError:
                allowed = ', '.join(e.value for e in enum_cls)
                raise ValidationError(f"{key} must be one of: {allowed}", field=key)

    if 'status' in payload:
        if payload['status'] not in EDITABLE_STATUSES:
            raise ValidationError(f"status must be one of: {', '.join(EDITABLE_STATUSES)}", field='status')
        fields['status'] = payload['status']

    if 'delivery_config' in payload:
        fields['delivery_config'] = payload['delivery_config']

    if fields.get('extension_days') is None and 'extension_days' in fields:
        fields.pop('extension_days')

    return fields


def _offer_snapshot(offer: Offer) -> Dict[str, Any]:
    data = {key: getattr(offer, key) for key in
            STRING_FIELDS + DECIMAL_FIELDS + INT_FIELDS + BOOL_FIELDS + DATE_FIELDS + tuple(ENUM_FIELDS)}
    data['status'] = offer.status
    data['delivery_config'] = offer.delivery_config
    return data


def _missing_required(data: Dict[str, Any]) -> Dict[str, str]:
    errors = {}
    for key, label in (('title', 'Offer Title'), ('description', 'Description'),
                       ('menu_item', 'Menu Item name'), ('zip_code', 'ZIP Code')):
        if not data.get(key):
            errors[key] = f"{label} is required"
    if data.get('original_price') is None:
        errors['original_price'] = "Original Price is required"
    if not data.get('max_clicks_allowed') or data['max_clicks_allowed'] < 1:
        errors['max_clicks_allowed'] = "Maximum Clicks Allowed must be at least 1"
    if data.get('click_budget_dollars') is None or data['click_budget_dollars'] < 0:
        errors['click_budget_dollars'] = "Click Budget is required (enter 0 if not using)"
    if not data.get('start_date'):
        errors['start_date'] = "Start Date is required"
    if not data.get('end_date'):
        errors['end_date'] = "End Date is required"
    return errors


class OfferService:
    """Merchant-facing offer operations."""

    def _get_merchant(self, merchant_id: int) -> Merchant:
        merchant = db.session.get(Merchant, merchant_id)
        if not merchant:
            raise MerchantNotFoundError(merchant_id)
        return merchant

    def _validate_publish(self, merchant: Merchant, data: Dict[str, Any], now: datetime,
                          current_offer_id: Optional[str] = None, check_count: bool = True,
                          check_start_grace: bool = False) -> None:
        """Full gate for an offer that is (or is becoming) active."""
        end_date = data.get('end_date')
        start_date = data.get('start_date')

        if check_start_grace and start_date and start_date < now - timedelta(seconds=START_DATE_GRACE_SECONDS):
            raise FieldValidationError({'start_date': "Start date cannot be in the past"})
        if start_date and end_date and end_date < start_date:
            raise FieldValidationError({'end_date': "End date must be after the start date"})

        tier_errors = validate_offer_against_tier(data, merchant.tier, OfferStatus.ACTIVE.value)
        if tier_errors:
            raise TierLimitError(tier_errors, "Tier limitations exceeded")

        if check_count:
            count_errors = validate_active_offer_count(merchant.id, merchant.tier, current_offer_id)
            if count_errors:
                raise TierLimitError(count_errors, "Active offer limit exceeded")

        if end_date < now + timedelta(hours=MIN_RUN_HOURS):
            raise FieldValidationError({
                'end_date': "End date must be at least 2 hours from now to give customers "
                            "time to see and claim your offer"
            })

        if data.get('get_new_customers_enabled'):
            try:
                bank_service.require_acquisition_balance(merchant)
            except InsufficientBalanceError as e:
                raise FieldValidationError({'get_new_customers_enabled': e.message})

        if data.get('coupon_delivery_method'):
            config = parse_delivery_config(data['coupon_delivery_method'], data.get('delivery_config'))
            data['delivery_config'] = delivery_config_to_dict(config)

    def _resolve_folder(self, merchant_id: int, folder_id: str) -> CampaignFolder:
        folder = CampaignFolder.query.filter_by(id=folder_id, merchant_id=merchant_id).first()
        if not folder:
            raise FolderNotFoundError(folder_id)
        if folder.is_locked:
            raise LockedFolderError("Cannot add offers to a promoted campaign folder")
        return folder

    # ==================== Create / Update ====================

    def create_offer(self, merchant_id: int, payload: Dict[str, Any], now: Optional[datetime] = None) -> Offer:
        """
        Raises:
            FieldValidationError, ValidationError: Bad input
            TierLimitError: Tier features or active count exceeded
        """
        now = now or datetime.utcnow()
        merchant = self._get_merchant(merchant_id)
        data = parse_offer_payload(payload)
        data.setdefault('status', OfferStatus.DRAFT.value)

        if data['status'] == OfferStatus.PAUSED.value:
            raise ValidationError("New offers must be draft or active", field='status')

        if data['status'] == OfferStatus.DRAFT.value:
            if not data.get('title'):
                raise FieldValidationError({'title': "Offer Title is required"})
        else:
            missing = _missing_required(data)
            if missing:
                raise FieldValidationError(missing, "Please fix the following issues")
            self._validate_publish(merchant, data, now, check_start_grace=True)

        if data.get('campaign_folder_id'):
            self._resolve_folder(merchant_id, data['campaign_folder_id'])

        for pool in ('text', 'rips'):
            key = f'{pool}_budget_dollars'
            data[key] = data.get(key) or Decimal('0')
            if data[key] < 0:
                raise ValidationError(f"{key} cannot be negative", field=key)

        # Per-offer budgets come out of the merchant pools
        reserved = []
        try:
            for pool in ('text', 'rips'):
                amount = data[f'{pool}_budget_dollars']
                bank_service.adjust_offer_budget(merchant_id, pool, amount)
                reserved.append((pool, amount))

            if not data.get('campaign_folder_id'):
                folder = folder_service.create_folder(
                    merchant_id,
                    generate_folder_name(data.get('offer_type'), data.get('redemption_type'),
                                         data.get('coupon_delivery_method'), now),
                    commit=False
                )
                data['campaign_folder_id'] = folder.id

            offer = offer_repository.create_offer(merchant_id, data)
        except Exception:
            db.session.rollback()
            for pool, amount in reserved:
                bank_service.adjust_offer_budget(merchant_id, pool, -amount)
            raise

        logger.info(f'Merchant {merchant_id} created offer {offer.id} ({offer.status})')
        return offer

    def update_offer(self, merchant_id: int, offer_id: str, payload: Dict[str, Any],
                     now: Optional[datetime] = None) -> Offer:
        """
        Raises:
            OfferNotFoundError: Not this merchant's offer
            LockedFolderError: Offer is in a promoted campaign
            ReintegrationRequiredError: Activating a resurrected offer
            FieldValidationError, TierLimitError, InsufficientBalanceError
        """
        now = now or datetime.utcnow()
        offer = offer_repository.get_offer(offer_id, merchant_id)
        if not offer:
            raise OfferNotFoundError(offer_id)
        if offer_repository.is_in_locked_folder(offer):
            raise LockedFolderError(
                "This offer cannot be edited because it's in a promoted campaign. "
                "Campaign data is locked to maintain analytics integrity."
            )

        merchant = self._get_merchant(merchant_id)
        fields = parse_offer_payload(payload)
        new_status = fields.get('status', offer.status)
        becoming_active = new_status == OfferStatus.ACTIVE.value and offer.status != OfferStatus.ACTIVE.value
        publishing = new_status != OfferStatus.DRAFT.value

        if becoming_active and offer.needs_reintegration:
            raise ReintegrationRequiredError(
                "This offer must be reintegrated before it can be activated. Click the Reintegrate button first."
            )

        if fields.get('campaign_folder_id') and fields['campaign_folder_id'] != offer.campaign_folder_id:
            self._resolve_folder(merchant_id, fields['campaign_folder_id'])

        if publishing:
            merged = _offer_snapshot(offer)
            merged.update(fields)
            # Only an explicit folder choice is a tier feature; auto-filed drafts pass
            if 'campaign_folder_id' not in fields:
                merged.pop('campaign_folder_id', None)
            if not merged.get('end_date'):
                raise FieldValidationError({'end_date': "End date is required for active offers"})
            missing = _missing_required(merged)
            if missing:
                raise FieldValidationError(missing, "Please fix the following issues")
            self._validate_publish(merchant, merged, now, current_offer_id=offer.id,
                                   check_count=becoming_active)
            if 'delivery_config' in merged and merged.get('coupon_delivery_method'):
                fields['delivery_config'] = merged['delivery_config']

        deltas = {}
        for pool in ('text', 'rips'):
            key = f'{pool}_budget_dollars'
            if key in fields:
                new_amount = fields[key] if fields[key] is not None else Decimal('0')
                if new_amount < 0:
                    raise ValidationError(f"{key} cannot be negative", field=key)
                fields[key] = new_amount
                delta = new_amount - Decimal(str(getattr(offer, key) or 0))
                if delta:
                    deltas[pool] = delta

        reserved = []
        try:
            for pool, delta in deltas.items():
                bank_service.adjust_offer_budget(merchant_id, pool, delta)
                reserved.append((pool, delta))
            updated = offer_repository.update_offer(offer_id, merchant_id, fields)
        except Exception:
            db.session.rollback()
            for pool, delta in reserved:
                bank_service.adjust_offer_budget(merchant_id, pool, -delta)
            raise

        logger.info(f'Merchant {merchant_id} updated offer {offer_id}')
        return updated

    # ==================== Sales ====================

    def record_sales(self, merchant_id: int, offer_id: str, quantity: int = 1) -> Offer:
        """Add sold units; fires target_met when this sale crosses the target."""
        if quantity < 1:
            raise ValidationError("quantity must be at least 1", field='quantity')

        offer = offer_repository.get_offer(offer_id, merchant_id)
        if not offer:
            raise OfferNotFoundError(offer_id)
        before = offer.units_sold or 0

        offer = offer_repository.increment_units_sold(offer_id, merchant_id, quantity)
        after = offer.units_sold or 0

        if offer.notify_on_target_met and offer.target_units and before < offer.target_units <= after:
            notification_service.notify_target_met(merchant_id, offer.id, offer.title, offer.target_units)

        return offer

    # ==================== Soft delete lifecycle ====================

    def _require(self, found: bool, offer_id: str) -> None:
        if not found:
            raise OfferNotFoundError(offer_id)

    def delete_offer(self, merchant_id: int, offer_id: str) -> None:
        self._require(offer_repository.delete_offer(offer_id, merchant_id), offer_id)

    def resurrect_offer(self, merchant_id: int, offer_id: str) -> None:
        self._require(offer_repository.resurrect_offer(offer_id, merchant_id), offer_id)

    def reintegrate_offer(self, merchant_id: int, offer_id: str) -> None:
        self._require(offer_repository.reintegrate_offer(offer_id, merchant_id), offer_id)

    def permanent_delete_offer(self, merchant_id: int, offer_id: str) -> None:
        self._require(offer_repository.permanent_delete_offer(offer_id, merchant_id), offer_id)


offer_service = OfferService()
