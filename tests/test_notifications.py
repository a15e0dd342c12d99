from datetime import datetime, timedelta, timezone

import pytest
from google.api_core.exceptions import ServiceUnavailable

from omniglot import firestore_dao as dao
from omniglot.errors import NotFound, PermissionDenied
from omniglot.firestore_models import Notification, NotificationType
from omniglot.services import notifications

NOW = datetime(2030, 1, 1, 12, 0, tzinfo=timezone.utc)


@pytest.mark.parametrize('delta, expected', [
    (timedelta(seconds=20), 'less than a minute ago'),
    (timedelta(seconds=59), 'less than a minute ago'),
    (timedelta(minutes=1), '1 minute ago'),
    (timedelta(minutes=5), '5 minutes ago'),
    (timedelta(hours=3), '3 hours ago'),
    (timedelta(days=1), '1 day ago'),
    (timedelta(days=65), '2 months ago'),
    (timedelta(days=800), '2 years ago'),
])
def test_time_ago(delta, expected):
    assert notifications.time_ago(NOW - delta, NOW) == expected


def test_decorate_uses_type_display():
    n = Notification(id='n1', source_id='bob', target_id='ana',
                     type=NotificationType.RESCHEDULE_TEACHER_PENDING,
                     created_at=NOW - timedelta(minutes=2))

    card = notifications.decorate(n, {'id': 'bob', 'username': 'bob', 'profile_picture': None}, NOW)

    assert card['category'] == 'reschedule'
    assert card['endpoint'] == 'account.classes'
    assert card['icon'] == 'clock-history'
    assert card['source']['username'] == 'bob'
    assert card['time_ago'] == '2 minutes ago'
    assert card['read'] is False


def test_every_type_has_a_display_entry():
    assert set(notifications.DISPLAY) == set(NotificationType)


def test_list_is_newest_first_with_source(db, make_user):
    make_user('ana')
    make_user('bob')
    dao.create_notification({'source_id': 'bob', 'target_id': 'ana', 'type': 'booking',
                             'created_at': NOW - timedelta(hours=2)})
    dao.create_notification({'source_id': 'bob', 'target_id': 'ana', 'type': 'review',
                             'created_at': NOW - timedelta(minutes=5)})
    dao.create_notification({'source_id': 'ana', 'target_id': 'bob', 'type': 'clone',
                             'created_at': NOW})

    listed = notifications.list_for('ana', now=NOW)

    assert [n['type'] for n in listed] == ['review', 'booking']
    assert listed[0]['source']['username'] == 'bob'
    assert notifications.unread_count('ana') == 2


def test_mark_read_and_delete_check_the_owner(db, make_user):
    make_user('ana')
    make_user('bob')
    notification_id = notifications.notify('bob', 'ana', NotificationType.MESSAGE, 'ana_bob')

    with pytest.raises(PermissionDenied):
        notifications.mark_read(notification_id, 'bob')
    notifications.mark_read(notification_id, 'ana')
    assert dao.get_notification(notification_id)['read'] is True

    with pytest.raises(PermissionDenied):
        notifications.delete(notification_id, 'bob')
    notifications.delete(notification_id, 'ana')
    with pytest.raises(NotFound):
        notifications.delete(notification_id, 'ana')


def test_mark_all_read(db):
    for _ in range(3):
        notifications.notify('bob', 'ana', NotificationType.BOOKING)
    notifications.notify('ana', 'bob', NotificationType.BOOKING)

    assert notifications.mark_all_read('ana') == 3
    assert notifications.unread_count('ana') == 0
    assert notifications.unread_count('bob') == 1


def test_notification_routes(client, login, make_user):
    make_user('ana')
    make_user('bob')
    first = notifications.notify('bob', 'ana', NotificationType.BOOKING)
    notifications.notify('bob', 'ana', NotificationType.REVIEW)
    login('ana')

    assert client.get('/notification/unread-count').get_json() == {'count': 2}
    assert client.post('/notification/read', json={'notif_id': first}).status_code == 200
    assert client.get('/notification/unread-count').get_json() == {'count': 1}
    assert client.post('/notification/read-all').get_json()['count'] == 1
    assert client.post('/notification/delete', json={'notif_id': first}).status_code == 200
    assert client.post('/notification/delete', json={'notif_id': first}).status_code == 404


def test_badge_counts_past_the_dropdown_limit(client, login, make_user):
    make_user('ana')
    make_user('bob')
    for _ in range(35):
        notifications.notify('bob', 'ana', NotificationType.BOOKING)
    login('ana')

    assert client.get('/notification/unread-count').get_json() == {'count': 35}
    page = client.get('/account/profile')
    assert b'<span class="badge">35</span>' in page.data
    assert page.data.count(b'data-notif-id=') == 30


def test_pages_render_without_notifications_when_the_store_fails(client, login, make_user, monkeypatch):
    make_user('ana')
    login('ana')

    def unavailable(*args, **kwargs):
        raise ServiceUnavailable('notifications are unavailable')

    monkeypatch.setattr(dao, 'get_notifications', unavailable)
    monkeypatch.setattr(dao, 'count_unread_notifications', unavailable)

    assert client.get('/account/profile').status_code == 200

    monkeypatch.setattr('omniglot.services.booking.classes_for_student', unavailable)
    response = client.get('/account/classes')
    assert response.status_code == 500
    assert b'Something went wrong' in response.data
