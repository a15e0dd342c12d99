import pytest
from google.api_core.exceptions import ServiceUnavailable

from omniglot import events
from omniglot import firestore_dao as dao
from omniglot.services import chat as chat_service


@pytest.fixture
def pair(make_user):
    make_user('ana', teaches=['es'], learns=['en'])
    make_user('bob', teaches=['en'], learns=['es'])
    return chat_service.find_or_create_chat('ana', 'bob')


def _token(app, uid):
    with app.app_context():
        return chat_service.issue_chat_token(uid)


def _events(client, name):
    return [r['args'][0] for r in client.get_received() if r['name'] == name]


def _joined(app, socket_client, uid):
    client = socket_client()
    client.emit('join', {'token': _token(app, uid)})
    return client


def test_chat_id_is_shared_by_the_pair(pair):
    assert pair.id == 'ana_bob'
    assert chat_service.find_or_create_chat('bob', 'ana').id == pair.id
    assert len(dao.get_chats_for_user('ana')) == 1
    assert dao.get_user('bob')['chat_ids'] == ['ana_bob']


def test_join_sends_snapshot(app, socket_client, pair):
    client = _joined(app, socket_client, 'ana')

    [snapshot] = _events(client, 'init')

    assert [c['id'] for c in snapshot] == ['ana_bob']
    assert {p['username'] for p in snapshot[0]['participants']} == {'ana', 'bob'}
    assert snapshot[0]['messages'] == []
    assert 'ana' in events.connected_users.values()


def test_messages_reach_both_rooms_in_order(app, socket_client, pair):
    ana = _joined(app, socket_client, 'ana')
    bob = _joined(app, socket_client, 'bob')
    ana.get_received()
    bob.get_received()

    for i in range(5):
        ana.emit('private message', {'chatId': pair.id, 'recipient': 'bob', 'message': f'hola {i}'})

    received = _events(bob, 'private message')
    echoed = _events(ana, 'private message')
    expected = [f'hola {i}' for i in range(5)]
    assert [m['message'] for m in received] == expected
    assert [m['message'] for m in echoed] == expected
    assert all(m['sender'] == 'ana' and m['recipient'] == 'bob' for m in received)

    stored = dao.get_chat(pair.id)
    assert stored['message_ids'] == [m['id'] for m in received]
    assert stored['last_message_timestamp'] is not None


def test_unread_message_notification_is_not_repeated(app, socket_client, db, pair):
    ana = _joined(app, socket_client, 'ana')

    for body in ('one', 'two', 'three'):
        ana.emit('private message', {'chatId': pair.id, 'recipient': 'bob', 'message': body})

    messages = [n for n in db.docs('notifications').values() if n['type'] == 'message']
    assert len(messages) == 1
    assert messages[0]['target_id'] == 'bob'
    assert messages[0]['ref_id'] == pair.id


def test_snapshot_after_reconnect_keeps_order(app, socket_client, pair):
    ana = _joined(app, socket_client, 'ana')
    for body in ('first', 'second'):
        ana.emit('private message', {'chatId': pair.id, 'recipient': 'bob', 'message': body})
    ana.disconnect()

    bob = _joined(app, socket_client, 'bob')
    [snapshot] = _events(bob, 'init')

    assert [m['message'] for m in snapshot[0]['messages']] == ['first', 'second']


def test_bad_token_is_rejected(app, socket_client, pair):
    client = socket_client()
    client.emit('join', {'token': 'forged'})

    assert _events(client, 'error')[0]['message'] == 'Invalid or expired chat token'

    client.emit('private message', {'chatId': pair.id, 'recipient': 'bob', 'message': 'hi'})
    assert _events(client, 'error')[0]['message'] == 'Join before sending messages'
    assert dao.get_chat(pair.id)['message_ids'] == []


def test_expired_token_is_rejected(app, socket_client, pair):
    token = _token(app, 'ana')
    app.config['CHAT_TOKEN_MAX_AGE'] = -1
    client = socket_client()

    client.emit('join', {'token': token})

    assert _events(client, 'error')


def test_send_validation_errors(app, socket_client, make_user, pair):
    make_user('eve')
    ana = _joined(app, socket_client, 'ana')
    ana.get_received()

    ana.emit('private message', {'chatId': pair.id, 'recipient': 'eve', 'message': 'hi'})
    ana.emit('private message', {'chatId': pair.id, 'recipient': 'bob', 'message': '   '})
    ana.emit('private message', {'chatId': 'nope', 'recipient': 'bob', 'message': 'hi'})

    errors = _events(ana, 'error')
    assert len(errors) == 3
    assert dao.get_chat(pair.id)['message_ids'] == []


def test_delete_own_messages_keeps_the_other_side(app, socket_client, pair):
    ana = _joined(app, socket_client, 'ana')
    bob = _joined(app, socket_client, 'bob')
    ana.emit('private message', {'chatId': pair.id, 'recipient': 'bob', 'message': 'from ana'})
    bob.emit('private message', {'chatId': pair.id, 'recipient': 'ana', 'message': 'from bob'})

    assert chat_service.delete_own_messages(pair.id, 'ana') == 1

    assert [m['body'] for m in dao.get_messages_by_chat(pair.id)] == ['from bob']
    assert len(dao.get_chat(pair.id)['message_ids']) == 1


def test_saved_message_is_delivered_when_the_notification_lookup_fails(app, socket_client, pair, monkeypatch):
    def unavailable(*args, **kwargs):
        raise ServiceUnavailable('notifications are unavailable')

    monkeypatch.setattr(dao, 'find_unread_notification', unavailable)
    ana = _joined(app, socket_client, 'ana')
    bob = _joined(app, socket_client, 'bob')
    ana.get_received()
    bob.get_received()

    ana.emit('private message', {'chatId': pair.id, 'recipient': 'bob', 'message': 'hola'})

    received = ana.get_received()
    assert [r['name'] for r in received] == ['private message']
    assert [m['message'] for m in _events(bob, 'private message')] == ['hola']
    assert len(dao.get_chat(pair.id)['message_ids']) == 1


def test_snapshot_keeps_each_chat_in_its_own_order(make_user, pair):
    make_user('cai', teaches=['zh'], learns=['es'])
    other = chat_service.find_or_create_chat('ana', 'cai')
    chat_service.send_message(pair.id, 'ana', 'bob', 'b1')
    chat_service.send_message(other.id, 'cai', 'ana', 'c1')
    chat_service.send_message(pair.id, 'bob', 'ana', 'b2')
    chat_service.send_message(other.id, 'ana', 'cai', 'c2')

    snapshot = {c['id']: [m['message'] for m in c['messages']] for c in chat_service.chats_snapshot('ana')}

    assert snapshot == {pair.id: ['b1', 'b2'], other.id: ['c1', 'c2']}
