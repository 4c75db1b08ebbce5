"""
Per-delivery-method coupon configuration.

Offers store `delivery_config` as JSON; its shape depends on
`coupon_delivery_method`. `parse_delivery_config` turns the raw JSON into the
matching dataclass so callers never reach into an untyped dict.
"""
from dataclasses import dataclass, asdict
from enum import Enum
from typing import Optional, Union

from ..utils.exceptions import ValidationError


class DeliveryMethod(str, Enum):
    """How a coupon reaches the customer."""
    COUPON_CODES = 'coupon_codes'
    TEXT_MESSAGE_ALERTS = 'text_message_alerts'
    MOBILE_APP_BASED_COUPONS = 'mobile_app_based_coupons'
    MMS_BASED_COUPONS = 'mms_based_coupons'
    MOBILE_WALLET_PASSES = 'mobile_wallet_passes'


BARCODE_TYPES = ('qr_code', 'code128', 'code39', 'ean13')


@dataclass(frozen=True)
class CouponCodesConfig:
    auto_generate_code: bool = True
    method: DeliveryMethod = DeliveryMethod.COUPON_CODES


@dataclass(frozen=True)
class TextAlertsConfig:
    message_template: Optional[str] = None
    method: DeliveryMethod = DeliveryMethod.TEXT_MESSAGE_ALERTS


@dataclass(frozen=True)
class MobileAppConfig:
    app_deep_link: Optional[str] = None
    method: DeliveryMethod = DeliveryMethod.MOBILE_APP_BASED_COUPONS


@dataclass(frozen=True)
class MmsConfig:
    coupon_image_url: Optional[str] = None
    method: DeliveryMethod = DeliveryMethod.MMS_BASED_COUPONS


@dataclass(frozen=True)
class MobileWalletConfig:
    barcode_type: str = 'qr_code'
    method: DeliveryMethod = DeliveryMethod.MOBILE_WALLET_PASSES


DeliveryConfig = Union[CouponCodesConfig, TextAlertsConfig, MobileAppConfig, MmsConfig, MobileWalletConfig]


def parse_delivery_config(method, raw: Optional[dict]) -> Optional[DeliveryConfig]:
    """
    Build the typed config for `method` from stored JSON.

    Accepts both snake_case and the camelCase keys older clients send.

    Raises:
        ValidationError: Unknown delivery method or invalid barcode type
    """
    if not method:
        return None

    try:
        method = DeliveryMethod(method)
    except ValueError:
        raise ValidationError(f"Unknown delivery method: {method}", field='coupon_delivery_method')

    raw = raw or {}

    def pick(snake, camel, default=None):
        if snake in raw:
            return raw[snake]
        return raw.get(camel, default)

    if method is DeliveryMethod.COUPON_CODES:
        return CouponCodesConfig(auto_generate_code=bool(pick('auto_generate_code', 'autoGenerateCode', True)))
    if method is DeliveryMethod.TEXT_MESSAGE_ALERTS:
        return TextAlertsConfig(message_template=pick('message_template', 'messageTemplate'))
    if method is DeliveryMethod.MOBILE_APP_BASED_COUPONS:
        return MobileAppConfig(app_deep_link=pick('app_deep_link', 'appDeepLink'))
    if method is DeliveryMethod.MMS_BASED_COUPONS:
        return MmsConfig(coupon_image_url=pick('coupon_image_url', 'couponImageUrl'))

    barcode_type = pick('barcode_type', 'barcodeType', 'qr_code')
    if barcode_type not in BARCODE_TYPES:
        raise ValidationError(
            f"barcode_type must be one of: {', '.join(BARCODE_TYPES)}",
            field='barcode_type'
        )
    return MobileWalletConfig(barcode_type=barcode_type)


def delivery_config_to_dict(config: Optional[DeliveryConfig]) -> Optional[dict]:
    """Serialize a typed config back to JSON-storable form."""
    if config is None:
        return None
    data = asdict(config)
    data['method'] = config.method.value
    return data
