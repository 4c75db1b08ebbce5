"""
Tests for the merchant bank endpoints.
"""
import pytest


@pytest.fixture
def funded_headers(make_merchant):
    merchant = make_merchant(tier='FREEBYRD', bank_cents=1000)
    return {'X-Merchant-ID': str(merchant.id)}


class TestBankApi:

    def test_balance(self, client, funded_headers):
        response = client.get('/api/bank/balance', headers=funded_headers)

        assert response.status_code == 200
        body = response.get_json()
        assert body['merchant_bank'] == 1000
        assert body['tier'] == 'FREEBYRD'
        assert body['cost_per_text_cents'] == 2.1

    def test_add_funds(self, client, funded_headers):
        response = client.post('/api/bank/add-funds', json={'amount_dollars': 5}, headers=funded_headers)

        assert response.status_code == 200
        assert response.get_json()['merchant_bank'] == 1500

    def test_add_funds_requires_amount(self, client, funded_headers):
        response = client.post('/api/bank/add-funds', json={}, headers=funded_headers)

        assert response.status_code == 400
        assert response.get_json()['error']['code'] == 'MISSING_FIELD'

    def test_add_funds_over_limit(self, client, funded_headers):
        response = client.post('/api/bank/add-funds', json={'amount_dollars': 5000}, headers=funded_headers)
        assert response.status_code == 400

    def test_allocate_insufficient(self, client, funded_headers):
        response = client.post('/api/bank/allocate', json={'text_budget': 20, 'rips_budget': 0},
                               headers=funded_headers)

        assert response.status_code == 400
        assert response.get_json()['error']['code'] == 'INSUFFICIENT_BALANCE'

    def test_transfer_to_text(self, client, funded_headers):
        response = client.post('/api/bank/transfer-to-text', json={'text_count': 100}, headers=funded_headers)

        body = response.get_json()
        assert body['success'] is True
        assert body['total_cost_cents'] == 210
        assert body['merchant_bank'] == 790

    def test_transfer_to_rips(self, client, funded_headers):
        response = client.post('/api/bank/transfer-to-rips', json={'amount': 2.5}, headers=funded_headers)

        body = response.get_json()
        assert body['merchant_bank'] == 750
        assert body['merchant_rips_budget'] == 2.5

    def test_tier_capabilities(self, client, funded_headers):
        response = client.get('/api/bank/tier', headers=funded_headers)

        assert response.status_code == 200
        assert response.get_json()['max_active_offers'] == 3
