import os, sys, pytest
# Ensure backend directory is on path so 'repairdesk' and 'tests' can be imported
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)
from repairdesk import create_app, get_db
from repairdesk.errors import GatewayError
from repairdesk.models.authz import Base, User
from repairdesk.services.mail import MailGateway
from repairdesk.services.storage import ObjectStorage
# Import all model modules to ensure tables are registered before create_all
from repairdesk.models.audit import AuditLog
from repairdesk.models.setting import Setting
from repairdesk.models.ticket import Ticket, TicketAttachment


class RecordingMailGateway(MailGateway):
    """Collects outgoing messages; addresses in `failing` are reported as undeliverable."""

    def __init__(self):
        self.sent = []
        self.attempts = []
        self.failing = set()
        self.raising = set()

    def send(self, to, subject, html_body):
        self.attempts.append(to)
        if to in self.raising:
            raise RuntimeError(f'gateway exploded for {to}')
        if not to or to in self.failing:
            return False
        self.sent.append({'to': to, 'subject': subject, 'html': html_body})
        return True

    def reset(self):
        self.sent.clear(); self.attempts.clear(); self.failing.clear(); self.raising.clear()


class MemoryStorage(ObjectStorage):
    """In-memory object store; `fail_on` makes the Nth upload (1-based) fail."""

    def __init__(self):
        self.objects = {}
        self.uploads = 0
        self.deleted = []
        self.fail_on = None

    def upload(self, key, data, content_type):
        self.uploads += 1
        if self.fail_on is not None and self.uploads == self.fail_on:
            raise GatewayError('simulated upload failure')
        self.objects[key] = (data, content_type)
        return f'https://files.test/tickets/{key}'

    def delete(self, key):
        self.deleted.append(key)
        self.objects.pop(key, None)

    def reset(self):
        self.objects.clear(); self.deleted.clear(); self.uploads = 0; self.fail_on = None


@pytest.fixture(scope='session', autouse=True)
def app_instance():
    os.environ['DATABASE_URL'] = 'sqlite+pysqlite:///:memory:'
    app = create_app({
        'DATABASE_URL': 'sqlite+pysqlite:///:memory:',
        'JWT_SECRET_KEY': 'test-secret-key-with-enough-length-for-hs256',
        'PUBLIC_BASE_URL': 'https://desk.example.com',
        'DEFAULT_LOCALE': 'it',
        'ATTACHMENT_SNIFF_CONTENT': False,
        'MAIL_GATEWAY': RecordingMailGateway(),
        'OBJECT_STORAGE': MemoryStorage(),
        'TESTING': True,
    })
    # After app and blueprints are registered, ensure all tables exist
    with app.app_context():
        engine = get_db().get_bind()
        Base.metadata.create_all(engine)
    yield app


@pytest.fixture(autouse=True)
def clean_tables(app_instance):
    yield
    session = get_db()
    session.rollback()
    for model in (AuditLog, TicketAttachment, Ticket, Setting, User):
        session.query(model).delete()
    session.commit()
    session.expunge_all()
    app_instance.extensions['repairdesk.mail'].reset()
    app_instance.extensions['repairdesk.storage'].reset()


@pytest.fixture()
def app_context(app_instance):
    with app_instance.app_context():
        yield app_instance


@pytest.fixture()
def client(app_instance):
    return app_instance.test_client()


@pytest.fixture()
def mail(app_instance):
    return app_instance.extensions['repairdesk.mail']


@pytest.fixture()
def storage(app_instance):
    return app_instance.extensions['repairdesk.storage']


@pytest.fixture()
def session(app_instance):
    return get_db()
