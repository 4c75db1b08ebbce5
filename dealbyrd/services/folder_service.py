"""
Campaign folder management.
"""
import logging
from datetime import datetime
from typing import List, Optional

from ..extensions import db
from ..models import CampaignFolder, FolderStatus, Offer
from ..utils.exceptions import FolderNotFoundError, LockedFolderError, ValidationError

logger = logging.getLogger(__name__)

OFFER_TYPE_CODES = {
    'percentage': 'PCT',
    'dollar_amount': 'DOL',
    'bogo': 'BOGO',
    'spend_threshold': 'XY',
}

REDEMPTION_TYPE_CODES = {
    'coupon': 'RC',
    'prepayment_offer': 'PPO',
}

DELIVERY_METHOD_CODES = {
    'text_message_alerts': '1',
    'coupon_codes': '2',
    'mobile_app_based_coupons': '3',
    'mms_based_coupons': '4',
    'mobile_wallet_passes': '5',
}


def generate_folder_name(offer_type: Optional[str], redemption_type: Optional[str],
                         delivery_method: Optional[str], now: Optional[datetime] = None) -> str:
    """TYPE-REDEMPTION-DELIVERY-MM_D_YYYY, e.g. PCT-RC-2-03_7_2026."""
    now = now or datetime.utcnow()
    type_code = OFFER_TYPE_CODES.get(offer_type, 'OTHER')
    redemption_code = REDEMPTION_TYPE_CODES.get(redemption_type, 'RC')
    delivery_code = DELIVERY_METHOD_CODES.get(delivery_method, '1') if delivery_method else '1'
    return f'{type_code}-{redemption_code}-{delivery_code}-{now.month:02d}_{now.day}_{now.year}'


class FolderService:

    def list_folders(self, merchant_id: int, status: Optional[str] = None) -> List[CampaignFolder]:
        query = CampaignFolder.query.filter_by(merchant_id=merchant_id)
        if status:
            query = query.filter_by(status=status)
        return query.order_by(CampaignFolder.created_at.desc()).all()

    def get_folder(self, merchant_id: int, folder_id: str) -> CampaignFolder:
        folder = CampaignFolder.query.filter_by(id=folder_id, merchant_id=merchant_id).first()
        if not folder:
            raise FolderNotFoundError(folder_id)
        return folder

    def create_folder(self, merchant_id: int, name: str, description: Optional[str] = None,
                      commit: bool = True) -> CampaignFolder:
        if not name or not name.strip():
            raise ValidationError("Folder name is required", field='name')

        folder = CampaignFolder(merchant_id=merchant_id, name=name.strip(), description=description)
        db.session.add(folder)
        if commit:
            db.session.commit()
        else:
            db.session.flush()
        return folder

    def promote_to_campaign(self, merchant_id: int, folder_id: str) -> CampaignFolder:
        """Turn a folder into a campaign and lock its offers for analytics."""
        folder = self.get_folder(merchant_id, folder_id)
        folder.status = FolderStatus.CAMPAIGN.value
        folder.is_locked = True
        db.session.commit()
        logger.info(f'Folder {folder_id} promoted to campaign for merchant {merchant_id}')
        return folder

    def delete_folder(self, merchant_id: int, folder_id: str) -> None:
        """Remove an unlocked folder; its offers are kept and unfiled."""
        folder = self.get_folder(merchant_id, folder_id)
        if folder.is_locked:
            raise LockedFolderError("Cannot delete a promoted campaign folder")

        Offer.query.filter_by(campaign_folder_id=folder.id).update(
            {Offer.campaign_folder_id: None}, synchronize_session=False
        )
        db.session.delete(folder)
        db.session.commit()


folder_service = FolderService()
