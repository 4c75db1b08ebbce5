"""
Tests for merchant ledger transfers.

Every transfer must move both sides or neither.
"""
import pytest
from decimal import Decimal

from dealbyrd.extensions import db
from dealbyrd.services.bank_service import BankService, dollars_to_cents, cents_to_dollars
from dealbyrd.utils.exceptions import InsufficientBalanceError, ValidationError


@pytest.fixture
def bank():
    return BankService()


def _reload(merchant):
    db.session.refresh(merchant)
    return merchant


class TestConversions:

    def test_dollars_to_cents_rounds_half_up(self):
        assert dollars_to_cents(Decimal('1.005')) == 101
        assert dollars_to_cents(Decimal('12.34')) == 1234

    def test_cents_to_dollars(self):
        assert cents_to_dollars(165) == Decimal('1.65')


class TestAddFunds:

    def test_deposit(self, bank, make_merchant):
        """$25 deposit lands as 2500 cents."""
        merchant = make_merchant(bank_cents=100)

        balances = bank.add_funds(merchant.id, '25.00')

        assert balances['merchant_bank'] == 2600

    @pytest.mark.parametrize('amount', ['0', '-5', '1000.01'])
    def test_rejects_out_of_range(self, bank, make_merchant, amount):
        """Deposits must be between $0.01 and $1,000."""
        merchant = make_merchant()
        with pytest.raises(ValidationError):
            bank.add_funds(merchant.id, amount)


class TestAllocate:

    def test_allocates_both_budgets(self, bank, make_merchant):
        merchant = make_merchant(bank_cents=2000)

        balances = bank.allocate(merchant.id, '10.00', '5.50')

        assert balances['merchant_bank'] == 450
        assert balances['merchant_text_budget'] == 10.0
        assert balances['merchant_rips_budget'] == 5.5

    def test_insufficient_bank_changes_nothing(self, bank, make_merchant):
        """Allocating more than the bank holds leaves every ledger untouched."""
        merchant = make_merchant(bank_cents=500)

        with pytest.raises(InsufficientBalanceError):
            bank.allocate(merchant.id, '4.00', '2.00')

        merchant = _reload(merchant)
        assert merchant.merchant_bank == 500
        assert merchant.merchant_text_budget == Decimal('0')
        assert merchant.merchant_rips_budget == Decimal('0')


class TestTransferToText:

    def test_buy_texts_freebyrd(self, bank, make_merchant):
        """100 texts at 2.1 cents cost 210 cents on both ledgers."""
        merchant = make_merchant(tier='FREEBYRD', bank_cents=1000)

        result = bank.transfer_to_text(merchant.id, 100)

        assert result['total_cost_cents'] == 210
        assert result['cost_per_text_cents'] == 2.1
        assert result['merchant_bank'] == 790
        assert result['merchant_text_budget'] == 2.1

    def test_cost_rounds_half_up(self, bank, make_merchant):
        """3 texts at 0.79 cents = 2.37 -> 2 cents; 50 texts = 39.5 -> 40 cents."""
        merchant = make_merchant(tier='ASCEND', bank_cents=1000)

        assert bank.transfer_to_text(merchant.id, 3)['total_cost_cents'] == 2
        assert bank.transfer_to_text(merchant.id, 50)['total_cost_cents'] == 40

    def test_sell_texts_back(self, bank, make_merchant):
        """Negative count returns money from the text budget to the bank."""
        merchant = make_merchant(tier='FREEBYRD', bank_cents=0, text_budget='5.00')

        result = bank.transfer_to_text(merchant.id, -100)

        assert result['merchant_bank'] == 210
        assert result['merchant_text_budget'] == pytest.approx(2.9)

    def test_insufficient_bank_is_atomic(self, bank, make_merchant):
        merchant = make_merchant(tier='FREEBYRD', bank_cents=100)

        with pytest.raises(InsufficientBalanceError):
            bank.transfer_to_text(merchant.id, 100)

        merchant = _reload(merchant)
        assert merchant.merchant_bank == 100
        assert merchant.merchant_text_budget == Decimal('0')

    def test_nest_cannot_buy_texts(self, bank, make_merchant):
        merchant = make_merchant(tier='NEST', bank_cents=1000)
        with pytest.raises(ValidationError):
            bank.transfer_to_text(merchant.id, 10)

    @pytest.mark.parametrize('count', [0, 1.5, '10', True])
    def test_rejects_invalid_count(self, bank, make_merchant, count):
        merchant = make_merchant(tier='FREEBYRD', bank_cents=1000)
        with pytest.raises(ValidationError):
            bank.transfer_to_text(merchant.id, count)


class TestTransferToRips:

    def test_round_trip(self, bank, make_merchant):
        merchant = make_merchant(bank_cents=1000)

        bank.transfer_to_rips(merchant.id, '4.00')
        result = bank.transfer_to_rips(merchant.id, '-1.50')

        assert result['merchant_bank'] == 750
        assert result['merchant_rips_budget'] == 2.5

    def test_insufficient_rips(self, bank, make_merchant):
        merchant = make_merchant(bank_cents=1000, rips_budget='1.00')

        with pytest.raises(InsufficientBalanceError):
            bank.transfer_to_rips(merchant.id, '-2.00')

        merchant = _reload(merchant)
        assert merchant.merchant_bank == 1000


class TestAcquisitionBalance:

    def test_requires_165_cents(self, bank, make_merchant):
        """Customer acquisition needs $1.65 banked."""
        with pytest.raises(InsufficientBalanceError):
            bank.require_acquisition_balance(make_merchant(bank_cents=164))

        bank.require_acquisition_balance(make_merchant(bank_cents=165))
