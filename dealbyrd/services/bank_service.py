"""
Merchant ledger operations.

Three ledgers live on the merchant row:
    merchant_bank         integer cents
    merchant_text_budget  dollars
    merchant_rips_budget  dollars

Every transfer is a single conditional UPDATE (`WHERE source >= amount`).
Zero affected rows means the source was short and nothing changed, so a
transfer can never debit one side without crediting the other.
"""
import logging
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Dict, Any

from ..extensions import db
from ..models import Merchant
from ..utils.exceptions import (
    InsufficientBalanceError,
    MerchantNotFoundError,
    ValidationError,
)
from .tier_limits import MIN_ACQUISITION_BALANCE_CENTS, cost_per_text_cents, get_tier_capabilities

logger = logging.getLogger(__name__)

MAX_DEPOSIT_CENTS = 100000  # $1,000 per transaction
CENT = Decimal('0.01')


def to_dollars(value, field: str = 'amount') -> Decimal:
    """Parse a dollar amount into a 2dp Decimal."""
    try:
        return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError(f"{field} must be a number", field=field)


def dollars_to_cents(amount: Decimal) -> int:
    return int((amount * 100).to_integral_value(rounding=ROUND_HALF_UP))


def cents_to_dollars(cents: int) -> Decimal:
    return (Decimal(cents) / 100).quantize(CENT)


class BankService:
    """Deposits, allocations and transfers between a merchant's ledgers."""

    def _get_merchant(self, merchant_id: int) -> Merchant:
        merchant = db.session.get(Merchant, merchant_id)
        if not merchant:
            raise MerchantNotFoundError(merchant_id)
        return merchant

    def _balances(self, merchant_id: int) -> Dict[str, Any]:
        merchant = self._get_merchant(merchant_id)
        db.session.refresh(merchant)
        return {
            'merchant_bank': merchant.merchant_bank or 0,
            'merchant_text_budget': float(merchant.merchant_text_budget or 0),
            'merchant_rips_budget': float(merchant.merchant_rips_budget or 0),
        }

    def _conditional_update(self, merchant_id: int, guard, values: dict) -> bool:
        updated = Merchant.query.filter(
            Merchant.id == merchant_id,
            guard
        ).update(values, synchronize_session=False)
        db.session.commit()
        return updated == 1

    def get_balances(self, merchant_id: int) -> Dict[str, Any]:
        return self._balances(merchant_id)

    def add_funds(self, merchant_id: int, amount_dollars) -> Dict[str, Any]:
        """Deposit into the bank. Between $0.01 and $1,000 per call."""
        amount = to_dollars(amount_dollars, 'amount_dollars')
        cents = dollars_to_cents(amount)
        if cents <= 0:
            raise ValidationError("Invalid amount", field='amount_dollars')
        if cents > MAX_DEPOSIT_CENTS:
            raise ValidationError("Maximum $1,000 per transaction", field='amount_dollars')

        self._get_merchant(merchant_id)
        Merchant.query.filter(Merchant.id == merchant_id).update(
            {Merchant.merchant_bank: Merchant.merchant_bank + cents},
            synchronize_session=False
        )
        db.session.commit()

        logger.info(f'Merchant {merchant_id}: deposited {cents} cents')
        return self._balances(merchant_id)

    def allocate(self, merchant_id: int, text_dollars=0, rips_dollars=0) -> Dict[str, Any]:
        """Move bank funds into the text and RIPS budgets in one step."""
        text_amount = to_dollars(text_dollars or 0, 'text_budget')
        rips_amount = to_dollars(rips_dollars or 0, 'rips_budget')
        if text_amount < 0 or rips_amount < 0:
            raise ValidationError("Budget amounts cannot be negative")

        total_cents = dollars_to_cents(text_amount + rips_amount)
        if total_cents == 0:
            raise ValidationError("Nothing to allocate")

        merchant = self._get_merchant(merchant_id)
        ok = self._conditional_update(
            merchant_id,
            Merchant.merchant_bank >= total_cents,
            {
                Merchant.merchant_bank: Merchant.merchant_bank - total_cents,
                Merchant.merchant_text_budget: Merchant.merchant_text_budget + text_amount,
                Merchant.merchant_rips_budget: Merchant.merchant_rips_budget + rips_amount,
            }
        )
        if not ok:
            db.session.refresh(merchant)
            raise InsufficientBalanceError('bank balance', merchant.merchant_bank, total_cents)

        logger.info(f'Merchant {merchant_id}: allocated text ${text_amount}, rips ${rips_amount}')
        return self._balances(merchant_id)

    def transfer_to_text(self, merchant_id: int, text_count: int) -> Dict[str, Any]:
        """
        Buy texts (positive count) or sell them back (negative count) at the
        tier's current per-text price. Both ledgers move by the same cents.
        """
        if isinstance(text_count, bool) or not isinstance(text_count, int) or text_count == 0:
            raise ValidationError("Invalid text count", field='text_count')

        merchant = self._get_merchant(merchant_id)
        rate = cost_per_text_cents(merchant.tier, merchant.lifetime_texts_sent or 0)
        if not get_tier_capabilities(merchant.tier).can_send_texts:
            raise ValidationError(
                f"{merchant.tier.value} tier cannot purchase texts. Upgrade to FREEBYRD.",
                field='text_count'
            )

        cost_cents = int((rate * abs(text_count)).to_integral_value(rounding=ROUND_HALF_UP))
        cost_dollars = cents_to_dollars(cost_cents)

        if text_count > 0:
            ok = self._conditional_update(
                merchant_id,
                Merchant.merchant_bank >= cost_cents,
                {
                    Merchant.merchant_bank: Merchant.merchant_bank - cost_cents,
                    Merchant.merchant_text_budget: Merchant.merchant_text_budget + cost_dollars,
                }
            )
            if not ok:
                db.session.refresh(merchant)
                raise InsufficientBalanceError(
                    'bank balance', merchant.merchant_bank, cost_cents,
                    message=(f"Insufficient bank balance. Need ${cost_dollars} for {text_count} "
                             f"texts at {rate}¢ each.")
                )
        else:
            ok = self._conditional_update(
                merchant_id,
                Merchant.merchant_text_budget >= cost_dollars,
                {
                    Merchant.merchant_text_budget: Merchant.merchant_text_budget - cost_dollars,
                    Merchant.merchant_bank: Merchant.merchant_bank + cost_cents,
                }
            )
            if not ok:
                db.session.refresh(merchant)
                raise InsufficientBalanceError(
                    'text balance', merchant.merchant_text_budget, cost_dollars,
                    message="Insufficient text balance"
                )

        logger.info(f'Merchant {merchant_id}: text transfer {text_count} texts ({cost_cents} cents)')
        result = self._balances(merchant_id)
        result.update(cost_per_text_cents=float(rate), total_cost_cents=cost_cents)
        return result

    def transfer_to_rips(self, merchant_id: int, amount_dollars) -> Dict[str, Any]:
        """Positive moves bank -> RIPS, negative moves RIPS -> bank."""
        amount = to_dollars(amount_dollars, 'amount')
        if amount == 0:
            raise ValidationError("Invalid amount", field='amount')

        merchant = self._get_merchant(merchant_id)
        magnitude = abs(amount)
        cents = dollars_to_cents(magnitude)

        if amount > 0:
            ok = self._conditional_update(
                merchant_id,
                Merchant.merchant_bank >= cents,
                {
                    Merchant.merchant_bank: Merchant.merchant_bank - cents,
                    Merchant.merchant_rips_budget: Merchant.merchant_rips_budget + magnitude,
                }
            )
            if not ok:
                db.session.refresh(merchant)
                raise InsufficientBalanceError('bank balance', merchant.merchant_bank, cents,
                                               message="Insufficient bank balance")
        else:
            ok = self._conditional_update(
                merchant_id,
                Merchant.merchant_rips_budget >= magnitude,
                {
                    Merchant.merchant_rips_budget: Merchant.merchant_rips_budget - magnitude,
                    Merchant.merchant_bank: Merchant.merchant_bank + cents,
                }
            )
            if not ok:
                db.session.refresh(merchant)
                raise InsufficientBalanceError('RIPS balance', merchant.merchant_rips_budget, magnitude,
                                               message="Insufficient RIPS balance")

        logger.info(f'Merchant {merchant_id}: RIPS transfer ${amount}')
        return self._balances(merchant_id)

    def adjust_offer_budget(self, merchant_id: int, pool: str, delta_dollars: Decimal) -> None:
        """
        Reserve (positive delta) or release (negative delta) merchant text or
        RIPS budget when an offer's own budget changes. Does not commit on its
        own beyond the conditional update.
        """
        column = {
            'text': Merchant.merchant_text_budget,
            'rips': Merchant.merchant_rips_budget,
        }[pool]

        if delta_dollars == 0:
            return

        if delta_dollars > 0:
            ok = self._conditional_update(
                merchant_id, column >= delta_dollars, {column: column - delta_dollars}
            )
            if not ok:
                merchant = self._get_merchant(merchant_id)
                db.session.refresh(merchant)
                raise InsufficientBalanceError(
                    f'{pool} budget', getattr(merchant, column.key), delta_dollars,
                    message=f"Insufficient {pool} budget. Allocate more from your bank first."
                )
        else:
            self._conditional_update(merchant_id, column >= 0, {column: column - delta_dollars})

    def require_acquisition_balance(self, merchant: Merchant) -> None:
        """Customer acquisition needs at least one acquisition's worth ($1.65) banked."""
        balance = merchant.merchant_bank or 0
        if balance < MIN_ACQUISITION_BALANCE_CENTS:
            raise InsufficientBalanceError(
                'bank balance', balance, MIN_ACQUISITION_BALANCE_CENTS,
                message=(f"Customer acquisition requires a bank balance of at least "
                         f"${cents_to_dollars(MIN_ACQUISITION_BALANCE_CENTS)}. "
                         f"Current balance: ${cents_to_dollars(balance)}.")
            )


bank_service = BankService()
