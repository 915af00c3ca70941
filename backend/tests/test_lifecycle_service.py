from datetime import datetime, timedelta
import pytest
from repairdesk.errors import AuthRequired, NotFound, ValidationError
from repairdesk.models.ticket import Ticket, TicketAttachment
from repairdesk.services.lifecycle import get_lifecycle
from repairdesk.services.storage import UploadedFile
from tests.test_utils_seed import enable_all_notifications, make_draft, seed_ticket

MIB = 1024 * 1024


@pytest.fixture()
def lifecycle(app_context, session):
    return get_lifecycle(session)


def _png(name='photo.png', size=2 * MIB):
    return UploadedFile(name, 'image/png', b'\0' * size)


def test_create_requires_identity(lifecycle, session):
    with pytest.raises(AuthRequired):
        lifecycle.create_ticket(make_draft(), None)
    assert session.query(Ticket).count() == 0


def test_create_with_image_attachment(lifecycle, session, storage):
    result = lifecycle.create_ticket_detailed(make_draft(), 'anon-1', [_png()])
    assert result.upload_error is None
    assert len(result.attachments) == 1
    att = result.attachments[0]
    assert att.file_type == TicketAttachment.TYPE_IMAGE
    assert att.storage_key.startswith(f'ticket-attachments/{result.ticket_id}/')
    assert att.file_url == f'https://files.test/tickets/{att.storage_key}'
    assert att.storage_key in storage.objects


def test_invalid_file_rejected_before_anything_is_written(lifecycle, session, storage, mail):
    enable_all_notifications()
    files = [_png(), UploadedFile('doc.pdf', 'application/pdf', b'%PDF')]
    with pytest.raises(ValidationError):
        lifecycle.create_ticket(make_draft(), 'anon-1', files)
    assert session.query(Ticket).count() == 0
    assert storage.uploads == 0
    assert mail.attempts == []


def test_mislabelled_content_rejected_before_ticket_is_created(lifecycle, session, storage, mail, monkeypatch):
    import repairdesk.services.storage as storage_mod
    monkeypatch.setattr(storage_mod, 'sniff_content_type', lambda data: 'application/pdf' if data.startswith(b'%PDF') else 'image/png')
    lifecycle.sniff_content = True
    enable_all_notifications()
    fake_png = UploadedFile('photo.png', 'image/png', b'%PDF-1.4\n' + b'x' * 64)
    with pytest.raises(ValidationError) as exc:
        lifecycle.create_ticket_detailed(make_draft(), 'anon-1', [_png('a.png'), fake_png])
    assert exc.value.message_key == 'errors.file_type'
    assert session.query(Ticket).count() == 0
    assert storage.uploads == 0
    assert mail.attempts == []


def test_oversized_file_rejected(lifecycle, session, storage):
    with pytest.raises(ValidationError):
        lifecycle.create_ticket(make_draft(), 'anon-1', [UploadedFile('big.mp4', 'video/mp4', b'\0' * (15 * MIB))])
    assert storage.uploads == 0


def test_upload_failure_stops_remaining_uploads(lifecycle, session, storage):
    storage.fail_on = 2
    files = [_png('a.png'), _png('b.png'), _png('c.png')]
    result = lifecycle.create_ticket_detailed(make_draft(), 'anon-1', files)
    # Ticket stays; first file stored, second failed, third never attempted
    assert lifecycle.repository.get_by_id(result.ticket_id) is not None
    assert result.upload_error == 'b.png'
    assert len(result.attachments) == 1
    assert storage.uploads == 2
    assert session.query(TicketAttachment).filter_by(ticket_id=result.ticket_id).count() == 1


def test_create_notifies_admin(lifecycle, mail):
    enable_all_notifications('admin@shop.it')
    result = lifecycle.create_ticket_detailed(make_draft(), 'anon-1')
    assert result.notified is True
    assert mail.sent[0]['to'] == 'admin@shop.it'


def test_create_succeeds_when_mail_fails(lifecycle, mail):
    enable_all_notifications('admin@shop.it')
    mail.raising.add('admin@shop.it')
    ticket_id = lifecycle.create_ticket(make_draft(), 'anon-1')
    assert lifecycle.repository.get_by_id(ticket_id) is not None


def test_update_status_notifies(lifecycle, mail):
    enable_all_notifications('admin@shop.it')
    t = seed_ticket()
    assert lifecycle.update_ticket_status(t.id, Ticket.STATUS_CLOSED) is True
    assert lifecycle.repository.get_by_id(t.id).status == Ticket.STATUS_CLOSED
    assert len(mail.sent) == 2


def test_any_status_may_follow_any_other(lifecycle):
    t = seed_ticket(status=Ticket.STATUS_CLOSED)
    lifecycle.update_ticket_status(t.id, Ticket.STATUS_INTAKE)
    assert lifecycle.repository.get_by_id(t.id).status == Ticket.STATUS_INTAKE


def test_update_status_same_value_does_not_notify(lifecycle, mail):
    enable_all_notifications('admin@shop.it')
    t = seed_ticket()
    assert lifecycle.update_ticket_status(t.id, Ticket.STATUS_INTAKE) is False
    assert mail.attempts == []


def test_update_status_validation(lifecycle):
    t = seed_ticket()
    with pytest.raises(ValidationError):
        lifecycle.update_ticket_status(t.id, 'teleported')
    with pytest.raises(NotFound):
        lifecycle.update_ticket_status('missing', Ticket.STATUS_CLOSED)


def test_update_ticket_notifies_only_on_status_change(lifecycle, mail):
    enable_all_notifications('admin@shop.it')
    t = seed_ticket()
    lifecycle.update_ticket(t.id, {'assigned_to': 'Luca'})
    assert mail.attempts == []
    lifecycle.update_ticket(t.id, {'status': Ticket.STATUS_IN_PROGRESS})
    assert len(mail.sent) == 2


def test_delete_removes_rows_and_objects(lifecycle, session, storage):
    result = lifecycle.create_ticket_detailed(make_draft(), 'anon-1', [_png('a.png'), _png('b.png')])
    keys = [a.storage_key for a in result.attachments]
    assert lifecycle.delete_ticket(result.ticket_id) == 2
    assert session.query(Ticket).count() == 0
    assert session.query(TicketAttachment).count() == 0
    assert sorted(storage.deleted) == sorted(keys)


def test_old_tickets_check(lifecycle, mail):
    enable_all_notifications('admin@shop.it', days='5')
    now = datetime(2025, 5, 10)
    seed_ticket(created_at=now - timedelta(days=6))
    assert lifecycle.run_old_tickets_check(now=now) is True
    assert len(mail.sent) == 1
