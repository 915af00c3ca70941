from datetime import datetime, timedelta
import pytest
from repairdesk.models.audit import AuditLog
from repairdesk.models.ticket import Ticket
from repairdesk.utils.clock import utcnow
from tests.test_utils_seed import (
    admin_headers, configure_settings, enable_all_notifications, jwt_headers, seed_ticket, staff_headers,
)


@pytest.fixture()
def staff(app_context):
    return staff_headers()


@pytest.fixture()
def admin(app_context):
    return admin_headers()


def test_list_requires_read_permission(client, app_context):
    assert client.get('/tickets').status_code == 401
    anon = jwt_headers('anon-x', ['TICKET.SUBMIT'])
    resp = client.get('/tickets', headers=anon)
    assert resp.status_code == 403
    assert resp.get_json()['error']['status'] == 403


def test_list_newest_first_with_pagination(client, staff):
    base = datetime(2025, 4, 1, 9, 0)
    for i in range(3):
        seed_ticket(created_at=base + timedelta(days=i))
    resp = client.get('/tickets?limit=2', headers=staff)
    assert resp.status_code == 200
    body = resp.get_json()
    assert [t['ticket_number'] for t in body['data']] == ['FM-2025-04-0003', 'FM-2025-04-0002']
    assert body['pagination'] == {'total': 3, 'limit': 2, 'offset': 0, 'returned': 2}


def test_list_filters_sort_and_search(client, staff):
    seed_ticket(customer_name='Zeno', priority='high')
    seed_ticket(customer_name='Alba', status=Ticket.STATUS_CLOSED)
    seed_ticket(customer_name='Marta', device_type='Pixel 7')
    names = [t['customer_name'] for t in client.get('/tickets?sort=customer_name', headers=staff).get_json()['data']]
    assert names == ['Alba', 'Marta', 'Zeno']
    closed = client.get('/tickets?status=closed', headers=staff).get_json()['data']
    assert [t['customer_name'] for t in closed] == ['Alba']
    found = client.get('/tickets?q=pixel', headers=staff).get_json()['data']
    assert [t['customer_name'] for t in found] == ['Marta']
    assert client.get('/tickets?status=lost', headers=staff).status_code == 400
    assert client.get('/tickets?sort=password', headers=staff).status_code == 400


def test_list_conditional_get(client, staff):
    seed_ticket()
    first = client.get('/tickets', headers=staff)
    etag = first.headers.get('ETag')
    assert etag
    second = client.get('/tickets', headers={**staff, 'If-None-Match': etag})
    assert second.status_code == 304
    assert second.headers.get('ETag') == etag


def test_list_etag_follows_ticket_updates(client, staff):
    t = seed_ticket(created_at=datetime(2025, 4, 1, 9, 0))
    first = client.get('/tickets', headers=staff)
    assert first.headers.get('Last-Modified') == 'Tue, 01 Apr 2025 09:00:00 GMT'
    assert client.patch(f'/tickets/{t.id}', json={'priority': 'high'}, headers=staff).status_code == 200
    second = client.get('/tickets', headers={**staff, 'If-None-Match': first.headers['ETag']})
    assert second.status_code == 200
    assert second.headers['ETag'] != first.headers['ETag']


def test_list_if_modified_since(client, staff):
    seed_ticket(created_at=datetime(2025, 4, 1, 9, 0))
    same = client.get('/tickets', headers={**staff, 'If-Modified-Since': 'Tue, 01 Apr 2025 09:00:00 GMT'})
    assert same.status_code == 304
    older = client.get('/tickets', headers={**staff, 'If-Modified-Since': 'Mon, 31 Mar 2025 09:00:00 GMT'})
    assert older.status_code == 200
    assert older.get_json()['pagination']['returned'] == 1


def test_list_error_details(client, staff):
    resp = client.get('/tickets?sort=-password', headers={**staff, 'Accept-Language': 'en'})
    assert resp.get_json()['error'] == {
        'status': 400, 'title': 'Bad Request', 'detail': 'Invalid sort field: password', 'field': 'sort',
    }
    anon = jwt_headers('anon-x', ['TICKET.SUBMIT'])
    denied = client.get('/tickets', headers={**anon, 'Accept-Language': 'en'}).get_json()['error']
    assert denied['title'] == 'Forbidden'
    assert denied['detail'] == 'Missing permission: TICKET.READ'


def test_get_ticket_with_attachments(client, staff, session):
    from repairdesk.services.ticket_repository import TicketRepository
    t = seed_ticket()
    TicketRepository(session).add_attachment(t.id, 'https://files.test/a.png', 'image', storage_key='k')
    body = client.get(f'/tickets/{t.id}', headers=staff).get_json()
    assert body['ticket_number'] == t.ticket_number
    assert [a['file_type'] for a in body['attachments']] == ['image']
    missing = client.get('/tickets/nope', headers=staff)
    assert missing.status_code == 404
    assert missing.get_json()['error']['detail'] == 'Ticket non trovato'


def test_patch_updates_fields_and_audits_diff(client, staff, session):
    t = seed_ticket()
    resp = client.patch(f'/tickets/{t.id}', json={'assigned_to': 'Luca', 'price': '120.5', 'priority': 'high'}, headers=staff)
    assert resp.status_code == 200, resp.get_json()
    body = resp.get_json()
    assert body['assigned_to'] == 'Luca'
    assert body['price'] == 120.5
    assert body['priority'] == 'high'
    log = session.query(AuditLog).filter_by(action='TICKET.UPDATE').one()
    assert log.meta['changes']['priority'] == {'before': 'low', 'after': 'high'}


def test_patch_rejects_invalid_values(client, staff):
    t = seed_ticket()
    resp = client.patch(f'/tickets/{t.id}', json={'status': 'vanished'}, headers={**staff, 'Accept-Language': 'en'})
    assert resp.status_code == 400
    assert resp.get_json()['error']['detail'] == 'Invalid status: vanished'
    assert client.patch(f'/tickets/{t.id}', json={}, headers=staff).status_code == 400


def test_status_change_notifies(client, staff, mail):
    enable_all_notifications('admin@shop.it')
    t = seed_ticket()
    resp = client.post(f'/tickets/{t.id}/status', json={'status': 'ready-for-pickup'}, headers=staff)
    assert resp.status_code == 200
    body = resp.get_json()
    assert body['status'] == 'ready-for-pickup'
    assert body['notified'] is True
    assert [m['to'] for m in mail.sent] == ['admin@shop.it', t.customer_email]


def test_status_change_requires_status(client, staff):
    t = seed_ticket()
    resp = client.post(f'/tickets/{t.id}/status', json={}, headers=staff)
    assert resp.status_code == 400
    assert resp.get_json()['error']['field'] == 'status'


def test_delete_requires_admin(client, staff, admin, session, storage):
    t = seed_ticket()
    assert client.delete(f'/tickets/{t.id}', headers=staff).status_code == 403
    resp = client.delete(f'/tickets/{t.id}', headers=admin)
    assert resp.status_code == 200
    assert resp.get_json() == {'id': t.id, 'deleted': True, 'deleted_attachments': 0}
    assert session.query(Ticket).count() == 0
    assert client.delete(f'/tickets/{t.id}', headers=admin).status_code == 404


def test_print_view(client, staff):
    configure_settings(logo_url='https://cdn.test/logo.png', terms_and_conditions='Garanzia 90 giorni')
    t = seed_ticket(price='80')
    resp = client.get(f'/tickets/{t.id}/print', headers=staff)
    assert resp.status_code == 200
    assert resp.mimetype == 'text/html'
    html = resp.get_data(as_text=True)
    assert t.ticket_number in html
    assert 'https://cdn.test/logo.png' in html
    assert 'Garanzia 90 giorni' in html
    assert 'Firma Cliente' in html
    assert '80.00' in html


def test_old_check_endpoint(client, staff, mail):
    enable_all_notifications('admin@shop.it', days='7')
    seed_ticket(created_at=utcnow() - timedelta(days=30))
    resp = client.post('/tickets/old-check', headers=staff)
    assert resp.get_json() == {'sent': True}
    assert len(mail.sent) == 1
