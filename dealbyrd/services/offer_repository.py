"""
Offer persistence and lifecycle queries.

The lifecycle sweeps and request handlers read and write offers only through
these functions. Merchant-initiated mutations refuse offers in locked
campaign folders; the sweeps pass enforce_lock=False so campaign offers
still activate and expire on schedule.
"""
import logging
from datetime import datetime, timedelta
from typing import List, Optional

from ..extensions import db
from ..models import Offer, OfferStatus, CampaignFolder
from ..utils.exceptions import LockedFolderError, ReintegrationRequiredError

logger = logging.getLogger(__name__)


# ==================== Lifecycle queries ====================

def get_offers_to_activate(now: datetime, lookback_minutes: int = 15) -> List[Offer]:
    """
    Offers whose start_date fell inside the last lookback window and that
    were never activated. activated_at IS NULL makes activation one-shot.
    """
    window_start = now - timedelta(minutes=lookback_minutes)

    return Offer.query.filter(
        Offer.status.in_([OfferStatus.DRAFT.value, OfferStatus.ACTIVE.value]),
        Offer.is_deleted.is_(False),
        Offer.needs_reintegration.is_(False),
        Offer.activated_at.is_(None),
        Offer.start_date >= window_start,
        Offer.start_date <= now,
        Offer.end_date > now
    ).all()


def get_offers_to_expire(now: datetime) -> List[Offer]:
    """Active offers whose end_date has passed."""
    return Offer.query.filter(
        Offer.status == OfferStatus.ACTIVE.value,
        Offer.is_deleted.is_(False),
        Offer.needs_reintegration.is_(False),
        Offer.end_date <= now
    ).all()


def get_expiring_offers(hours_ahead: int = 1, now: Optional[datetime] = None) -> List[Offer]:
    """Active offers ending within the next `hours_ahead` hours."""
    now = now or datetime.utcnow()
    horizon = now + timedelta(hours=hours_ahead)

    return Offer.query.filter(
        Offer.status == OfferStatus.ACTIVE.value,
        Offer.is_deleted.is_(False),
        Offer.end_date >= now,
        Offer.end_date <= horizon
    ).all()


# ==================== Lookups ====================

def get_offer(offer_id: str, merchant_id: Optional[int] = None) -> Optional[Offer]:
    query = Offer.query.filter(Offer.id == offer_id)
    if merchant_id is not None:
        query = query.filter(Offer.merchant_id == merchant_id)
    return query.first()


def list_offers(merchant_id: int, include_deleted: bool = False, status: Optional[str] = None) -> List[Offer]:
    query = Offer.query.filter(Offer.merchant_id == merchant_id)
    if not include_deleted:
        query = query.filter(Offer.is_deleted.is_(False))
    if status:
        query = query.filter(Offer.status == status)
    return query.order_by(Offer.created_at.desc()).all()


def is_in_locked_folder(offer: Offer) -> bool:
    if not offer.campaign_folder_id:
        return False
    folder = db.session.get(CampaignFolder, offer.campaign_folder_id)
    return bool(folder and folder.is_locked)


def _load_mutable(offer_id: str, merchant_id: int, enforce_lock: bool = True) -> Optional[Offer]:
    offer = get_offer(offer_id, merchant_id)
    if offer is None:
        return None
    if enforce_lock and is_in_locked_folder(offer):
        raise LockedFolderError(
            "Cannot modify offers in locked campaign folders. "
            "Campaign data is protected to maintain analytics integrity."
        )
    return offer


# ==================== Mutations ====================

def create_offer(merchant_id: int, fields: dict) -> Offer:
    offer = Offer(merchant_id=merchant_id, **fields)
    db.session.add(offer)
    db.session.commit()
    return offer


def update_offer(offer_id: str, merchant_id: int, fields: dict, enforce_lock: bool = True) -> Optional[Offer]:
    """
    Apply a partial update. Returns None when the merchant has no such offer.

    Raises:
        LockedFolderError: Offer belongs to a locked campaign folder
        ReintegrationRequiredError: Activating an offer that was resurrected
            and not yet reintegrated
    """
    offer = _load_mutable(offer_id, merchant_id, enforce_lock=enforce_lock)
    if offer is None:
        return None

    if fields.get('status') == OfferStatus.ACTIVE.value and offer.needs_reintegration:
        raise ReintegrationRequiredError()

    for key, value in fields.items():
        setattr(offer, key, value)

    db.session.commit()
    return offer


def delete_offer(offer_id: str, merchant_id: int) -> bool:
    """Soft delete."""
    offer = _load_mutable(offer_id, merchant_id)
    if offer is None:
        return False
    offer.is_deleted = True
    db.session.commit()
    return True


def resurrect_offer(offer_id: str, merchant_id: int) -> bool:
    """Restore a soft-deleted offer as a draft that must be reintegrated before activating."""
    offer = _load_mutable(offer_id, merchant_id)
    if offer is None:
        return False
    offer.is_deleted = False
    offer.status = OfferStatus.DRAFT.value
    offer.needs_reintegration = True
    db.session.commit()
    return True


def reintegrate_offer(offer_id: str, merchant_id: int) -> bool:
    offer = _load_mutable(offer_id, merchant_id)
    if offer is None:
        return False
    offer.needs_reintegration = False
    db.session.commit()
    return True


def permanent_delete_offer(offer_id: str, merchant_id: int) -> bool:
    offer = _load_mutable(offer_id, merchant_id)
    if offer is None:
        return False
    db.session.delete(offer)
    db.session.commit()
    return True


def increment_units_sold(offer_id: str, merchant_id: int, quantity: int = 1) -> Optional[Offer]:
    """Atomically add to units_sold."""
    updated = Offer.query.filter(
        Offer.id == offer_id,
        Offer.merchant_id == merchant_id
    ).update(
        {Offer.units_sold: Offer.units_sold + quantity},
        synchronize_session=False
    )
    db.session.commit()

    if not updated:
        return None

    offer = get_offer(offer_id, merchant_id)
    db.session.refresh(offer)
    return offer
