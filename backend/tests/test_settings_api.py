import pytest
from repairdesk.models.audit import AuditLog
from repairdesk.services.settings_store import SettingsStore
from tests.test_utils_seed import admin_headers, configure_settings, staff_headers


@pytest.fixture()
def admin(app_context):
    return admin_headers()


def test_get_defaults(client, admin):
    body = client.get('/settings', headers=admin).get_json()
    assert body == {
        'admin_email': None,
        'notify_new_ticket': False,
        'notify_status_change': False,
        'notify_old_tickets': False,
        'old_tickets_days': 7,
        'logo_url': None,
        'terms_text': None,
    }


def test_partial_update(client, admin, session):
    configure_settings(logo_url='https://cdn.test/old.png')
    resp = client.put('/settings', json={'admin_email': 'admin@shop.it', 'notify_new_ticket': True, 'old_tickets_days': 10}, headers=admin)
    assert resp.status_code == 200, resp.get_json()
    body = resp.get_json()
    assert body['admin_email'] == 'admin@shop.it'
    assert body['notify_new_ticket'] is True
    assert body['old_tickets_days'] == 10
    assert body['logo_url'] == 'https://cdn.test/old.png'
    store = SettingsStore(session)
    assert store.get('email_new_ticket') == 'true'
    assert store.get('email_admin_old_tickets_days') == '10'
    # Keys absent from the body are not written
    assert store.get('email_status_change') is None
    log = session.query(AuditLog).filter_by(action='SETTINGS.UPDATE').one()
    assert log.meta == {'keys': ['admin_email', 'notify_new_ticket', 'old_tickets_days']}


@pytest.mark.parametrize('payload,field', [
    ({'old_tickets_days': 0}, 'old_tickets_days'),
    ({'old_tickets_days': 'many'}, 'old_tickets_days'),
    ({'notify_new_ticket': 'yes'}, 'notify_new_ticket'),
    ({'admin_email': 'not-an-email'}, 'admin_email'),
    ({'smtp_password': 'x'}, 'smtp_password'),
])
def test_invalid_updates(client, admin, payload, field):
    resp = client.put('/settings', json=payload, headers=admin)
    assert resp.status_code == 400
    assert resp.get_json()['error']['field'] == field


def test_staff_can_read_but_not_write(client, app_context):
    staff = staff_headers()
    assert client.get('/settings', headers=staff).status_code == 200
    assert client.put('/settings', json={'logo_url': ''}, headers=staff).status_code == 403


def test_test_email(client, admin, mail):
    assert client.post('/settings/test-email', json={}, headers=admin).get_json() == {'sent': False}
    configure_settings(email_admin_address='admin@shop.it')
    assert client.post('/settings/test-email', json={}, headers=admin).get_json() == {'sent': True}
    assert mail.sent[0]['subject'] == 'Email di prova'
    assert client.post('/settings/test-email', json={'to': 'bad'}, headers=admin).status_code == 400


def test_invalid_update_detail_is_localized(client, admin):
    it = client.put('/settings', json={'smtp_password': 'x'}, headers=admin).get_json()['error']
    en = client.put('/settings', json={'smtp_password': 'x'},
                    headers={**admin, 'Accept-Language': 'en'}).get_json()['error']
    assert it == {'status': 400, 'title': 'Bad Request', 'detail': 'Impostazione sconosciuta: smtp_password',
                  'field': 'smtp_password'}
    assert en['detail'] == 'Unknown setting: smtp_password'
    bad_days = client.put('/settings', json={'old_tickets_days': 0}, headers={**admin, 'Accept-Language': 'en'})
    assert bad_days.get_json()['error']['detail'] == 'Invalid value for setting old_tickets_days'
