"""
Tests for the notification center endpoints.
"""
from unittest.mock import MagicMock

from dealbyrd.services.notification_service import NotificationService


def _seed(merchant, count=2):
    service = NotificationService(sms_client=MagicMock())
    return [service.notify_system_alert(merchant.id, f'Alert {i}') for i in range(count)]


class TestNotificationFeed:

    def test_list_with_unread_count(self, client, auth_headers, sample_merchant):
        _seed(sample_merchant, 3)

        response = client.get('/api/notifications', headers=auth_headers)

        body = response.get_json()
        assert len(body['notifications']) == 3
        assert body['unread_count'] == 3

    def test_limit(self, client, auth_headers, sample_merchant):
        _seed(sample_merchant, 3)

        response = client.get('/api/notifications?limit=2', headers=auth_headers)

        assert len(response.get_json()['notifications']) == 2

    def test_mark_read(self, client, auth_headers, sample_merchant):
        first, _ = _seed(sample_merchant)

        response = client.post(f'/api/notifications/{first.id}/read', headers=auth_headers)
        assert response.status_code == 200

        response = client.get('/api/notifications?unread=true', headers=auth_headers)
        assert len(response.get_json()['notifications']) == 1

    def test_mark_read_unknown(self, client, auth_headers):
        response = client.post('/api/notifications/424242/read', headers=auth_headers)
        assert response.status_code == 404

    def test_read_all(self, client, auth_headers, sample_merchant):
        _seed(sample_merchant, 2)

        response = client.post('/api/notifications/read-all', headers=auth_headers)

        assert response.get_json()['marked'] == 2


class TestNotificationPreferencesApi:

    def test_defaults_created(self, client, auth_headers):
        response = client.get('/api/notifications/preferences', headers=auth_headers)

        prefs = response.get_json()['preferences']
        assert prefs['quiet_hours_start'] == '22:00'
        assert prefs['timezone'] == 'UTC'

    def test_update(self, client, auth_headers):
        response = client.patch('/api/notifications/preferences',
                                json={'sms_enabled': True, 'timezone': 'America/Chicago'},
                                headers=auth_headers)

        assert response.status_code == 200
        prefs = response.get_json()['preferences']
        assert prefs['sms_enabled'] is True
        assert prefs['timezone'] == 'America/Chicago'

    def test_bad_quiet_hours(self, client, auth_headers):
        response = client.put('/api/notifications/preferences', json={'quiet_hours_end': '25:00'},
                              headers=auth_headers)
        assert response.status_code == 400
