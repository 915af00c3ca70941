import pytest
from repairdesk.errors import ValidationError
from repairdesk.config.pagination import DEFAULT_LIMIT, MAX_LIMIT, normalize_pagination
from tests.test_utils_seed import seed_ticket, staff_headers


def test_normalize_pagination_clamps():
    assert normalize_pagination(None, None) == (DEFAULT_LIMIT, 0)
    assert normalize_pagination('0', '-5') == (1, 0)
    assert normalize_pagination(str(MAX_LIMIT + 50), '3') == (MAX_LIMIT, 3)
    with pytest.raises(ValidationError) as exc:
        normalize_pagination('ten', None)
    assert exc.value.field == 'limit'
    with pytest.raises(ValidationError) as exc:
        normalize_pagination('5', 'x')
    assert exc.value.field == 'offset'


def test_ticket_list_pagination_meta(client, app_instance):
    with app_instance.app_context():
        headers = staff_headers()
        for _ in range(5):
            seed_ticket()
    body = client.get('/tickets?limit=2&offset=4', headers=headers).get_json()
    assert body['pagination'] == {'total': 5, 'limit': 2, 'offset': 4, 'returned': 1}
    assert client.get('/tickets?limit=abc', headers=headers).status_code == 400
