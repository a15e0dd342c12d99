import pytest

from config import Config
from omniglot import create_app, socketio
from omniglot import firebase_init
from omniglot import firestore_dao as dao
from omniglot.firestore_models import Offer, User
from tests.fakes import FakeAuth, FakeFirestore


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = 'test-secret'
    WTF_CSRF_ENABLED = False
    SOCKETIO_ASYNC_MODE = 'threading'
    STRIPE_SECRET_KEY = 'sk_test_123'
    FIREBASE_WEB_API_KEY = 'test-api-key'
    LOG_LEVEL = 'WARNING'


@pytest.fixture
def db(monkeypatch):
    fake = FakeFirestore()
    monkeypatch.setattr(firebase_init, '_app', object())
    monkeypatch.setattr(firebase_init, '_db', fake)
    monkeypatch.setattr(firebase_init, '_bucket', None)
    return fake


@pytest.fixture
def fake_auth(monkeypatch):
    auth = FakeAuth()
    for target in ('omniglot.decorators.get_auth',
                   'omniglot.services.accounts.get_auth',
                   'omniglot.routes.auth.get_auth'):
        monkeypatch.setattr(target, lambda: auth)
    return auth


@pytest.fixture
def app(db, fake_auth):
    return create_app(TestConfig)


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def socket_client(app):
    clients = []

    def _connect():
        c = socketio.test_client(app)
        clients.append(c)
        return c

    yield _connect
    for c in clients:
        if c.is_connected():
            c.disconnect()


@pytest.fixture
def login(client):
    def _login(uid):
        with client.session_transaction() as sess:
            sess['firebase_session'] = uid
    return _login


@pytest.fixture
def make_user(db):
    def _make(uid, teaches=(), learns=(), professional=False, private=False, username=None):
        user = User(
            id=uid,
            username=username or uid,
            email=f'{uid}@example.com',
            country='Spain',
            birthdate='1990-01-01',
            teaches=list(teaches),
            learns=list(learns),
            professional=professional,
            private=private,
        )
        dao.create_user(uid, user.to_dict())
        return dao.get_user(uid)
    return _make


@pytest.fixture
def make_offer(db):
    def _make(teacher_id, language='es', duration=60, price=20.0, **fields):
        offer = Offer(
            teacher_id=teacher_id,
            name=fields.pop('name', f'{language} lessons'),
            language=language,
            level=fields.pop('level', 'beginner'),
            duration=duration,
            price=price,
            **fields,
        )
        offer.validate()
        offer_id = dao.create_offer(offer.to_dict())
        dao.add_user_offer(teacher_id, offer_id)
        return dao.get_offer(offer_id)
    return _make
