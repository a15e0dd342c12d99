"""
Notification log.

Domain actions append notifications for the user they affect; the
recipient reads, marks and deletes them. Display decoration is computed at
read time from the notification's type and age and is never stored.
"""

import logging
from datetime import datetime, timezone

from google.api_core.exceptions import GoogleAPIError

from omniglot import firestore_dao as dao
from omniglot.errors import NotFound, PermissionDenied
from omniglot.firestore_models import Notification, NotificationType

logger = logging.getLogger(__name__)

T = NotificationType

# type -> (icon, text shown after the source username, page the entry links to)
DISPLAY = {
    T.REVIEW: ('star', 'has left a review about your class', 'account.reviews'),
    T.BOOKING: ('calendar-plus', 'has booked a class with you', 'account.calendar'),
    T.CANCEL_STUDENT: ('calendar-x', 'has cancelled their class with you', 'account.calendar'),
    T.CANCEL_TEACHER: ('calendar-x', 'has cancelled your class', 'account.classes'),
    T.MESSAGE: ('chat-dots', 'has sent you a message', 'account.inbox'),
    T.CLONE: ('files', 'has cloned one of your decks', 'decks.my_decks'),
    T.RESCHEDULE_STUDENT_PENDING: ('clock-history', 'asks to reschedule their class', 'account.calendar'),
    T.RESCHEDULE_TEACHER_PENDING: ('clock-history', 'asks to reschedule your class', 'account.classes'),
    T.RESCHEDULE_STUDENT_ACCEPTED: ('check-circle', 'accepted your new class time', 'account.calendar'),
    T.RESCHEDULE_TEACHER_ACCEPTED: ('check-circle', 'accepted your new class time', 'account.classes'),
    T.RESCHEDULE_STUDENT_DECLINED: ('x-circle', 'declined your new class time', 'account.calendar'),
    T.RESCHEDULE_TEACHER_DECLINED: ('x-circle', 'declined your new class time', 'account.classes'),
}

_UNITS = (
    ('year', 365 * 24 * 3600),
    ('month', 30 * 24 * 3600),
    ('day', 24 * 3600),
    ('hour', 3600),
    ('minute', 60),
)


def time_ago(created_at, now=None):
    """Relative time such as '5 minutes ago'."""
    if created_at is None:
        return ''
    now = now or datetime.now(timezone.utc)
    if created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=timezone.utc)
    seconds = int((now - created_at).total_seconds())
    if seconds < 60:
        return 'less than a minute ago'
    for unit, size in _UNITS:
        if seconds >= size:
            count = seconds // size
            return f"{count} {unit}{'s' if count != 1 else ''} ago"


def decorate(notification, source=None, now=None):
    """Build the display dict for one notification."""
    icon, text, endpoint = DISPLAY[notification.type]
    return {
        'id': notification.id,
        'type': notification.type.value,
        'category': notification.type.value.split('-')[0],
        'read': notification.read,
        'ref_id': notification.ref_id,
        'icon': icon,
        'text': text,
        'endpoint': endpoint,
        'source': source or {'username': 'Someone', 'profile_picture': None},
        'created_at': notification.created_at,
        'time_ago': time_ago(notification.created_at, now),
    }


def notify(source_id, target_id, type_, ref_id=None):
    """Append an unread notification. Returns its ID."""
    notification = Notification(
        source_id=source_id,
        target_id=target_id,
        type=NotificationType(type_),
        ref_id=ref_id,
    )
    return dao.create_notification(notification.to_dict())


def notify_best_effort(source_id, target_id, type_, ref_id=None):
    """notify() whose store failures are logged instead of raised."""
    try:
        return notify(source_id, target_id, type_, ref_id)
    except GoogleAPIError:
        logger.exception('Could not write %s notification for %s', NotificationType(type_).value, target_id)
        return None


def notify_message_best_effort(sender_id, recipient_id, chat_id):
    """Notify the recipient of a new message unless an unread one from the
    same sender is still waiting. Store failures are logged, never raised."""
    try:
        if dao.find_unread_notification(recipient_id, sender_id, NotificationType.MESSAGE.value):
            return None
        return notify(sender_id, recipient_id, NotificationType.MESSAGE, chat_id)
    except GoogleAPIError:
        logger.exception('Could not write message notification for %s', recipient_id)
        return None


def list_for(user_id, now=None, limit=None):
    """Decorated notifications targeting the user, newest first."""
    docs = dao.get_notifications(user_id, limit=limit)
    notifications = [Notification.from_dict(d) for d in docs]
    sources = dao.get_users_by_ids([n.source_id for n in notifications])
    now = now or datetime.now(timezone.utc)
    result = []
    for n in notifications:
        source = sources.get(n.source_id)
        card = {'id': n.source_id, 'username': source['username'],
                'profile_picture': source.get('profile_picture')} if source else None
        result.append(decorate(n, card, now))
    return result


def unread_count(user_id):
    return dao.count_unread_notifications(user_id)


def _owned(notification_id, user_id):
    doc = dao.get_notification(notification_id)
    if not doc:
        raise NotFound('Notification not found.')
    if doc.get('target_id') != user_id:
        raise PermissionDenied()
    return doc


def mark_read(notification_id, user_id):
    _owned(notification_id, user_id)
    dao.mark_notification_read(notification_id)


def mark_all_read(user_id):
    return dao.mark_all_read(user_id)


def delete(notification_id, user_id):
    _owned(notification_id, user_id)
    dao.delete_notification(notification_id)
