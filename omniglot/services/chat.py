"""
Conversations between two users.

Persistence and snapshot building for the Socket.IO gateway in
omniglot.events, plus the signed tokens the HTTP layer hands to the
browser so that `join` can trust the identity it is given.
"""

import logging

from flask import current_app
from google.api_core.exceptions import AlreadyExists
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from omniglot import firestore_dao as dao
from omniglot.errors import NotFound, PermissionDenied, ValidationError
from omniglot.firestore_models import Chat, Message, User
from omniglot.services import notifications

logger = logging.getLogger(__name__)

TOKEN_SALT = 'omniglot-chat-join'


# ---------------------------------------------------------------------------
# Join tokens
# ---------------------------------------------------------------------------

def _serializer():
    return URLSafeTimedSerializer(current_app.config['SECRET_KEY'], salt=TOKEN_SALT)


def issue_chat_token(user_id):
    return _serializer().dumps({'uid': user_id})


def verify_chat_token(token):
    """Return the user ID inside a valid token, or None."""
    if not token or not isinstance(token, str):
        return None
    max_age = current_app.config.get('CHAT_TOKEN_MAX_AGE', 12 * 60 * 60)
    try:
        data = _serializer().loads(token, max_age=max_age)
    except SignatureExpired:
        logger.info('Rejected expired chat token')
        return None
    except BadSignature:
        logger.warning('Rejected forged chat token')
        return None
    return data.get('uid')


# ---------------------------------------------------------------------------
# Chats
# ---------------------------------------------------------------------------

def load_chat(chat_id):
    doc = dao.get_chat(chat_id)
    if not doc:
        raise NotFound('Chat not found.')
    return Chat.from_dict(doc)


def find_or_create_chat(user_id, target_user_id):
    """Return the chat for the unordered pair, creating it on first contact."""
    if not target_user_id or target_user_id == user_id:
        raise ValidationError('Pick another user to talk to.')
    if not dao.get_user(target_user_id):
        raise NotFound('User not found.')

    chat_id = Chat.id_for(user_id, target_user_id)
    existing = dao.get_chat(chat_id)
    if existing:
        return Chat.from_dict(existing)

    chat = Chat(id=chat_id, participant_ids=[user_id, target_user_id])
    try:
        dao.create_chat(chat_id, chat.to_dict())
    except AlreadyExists:
        return load_chat(chat_id)
    dao.add_user_chat(user_id, chat_id)
    dao.add_user_chat(target_user_id, chat_id)
    logger.info('Chat %s created', chat_id)
    return chat


def chats_snapshot(user_id):
    """Every chat of the user with participants and ordered messages,
    most recently active first. JSON-safe."""
    chats = [Chat.from_dict(d) for d in dao.get_chats_for_user(user_id)]
    participants = dao.get_users_by_ids(pid for c in chats for pid in c.participant_ids)
    by_id = {d['id']: Message.from_dict(d) for d in dao.get_messages_by_chats([c.id for c in chats])}

    snapshot = []
    for chat in chats:
        messages = [by_id[mid].to_payload() for mid in chat.message_ids if mid in by_id]
        snapshot.append({
            'id': chat.id,
            'participants': [
                User.from_dict(participants[pid]).participant_card()
                for pid in chat.participant_ids if pid in participants
            ],
            'messages': messages,
            'last_message_timestamp': chat.last_message_timestamp.isoformat() if chat.last_message_timestamp else None,
            '_sort': chat.last_message_timestamp or chat.created_at,
        })

    snapshot.sort(key=lambda c: c['_sort'].timestamp() if c['_sort'] else 0, reverse=True)
    for item in snapshot:
        del item['_sort']
    return snapshot


def send_message(chat_id, sender_id, recipient_id, body):
    """Persist a message and link it to its chat. Returns the Message."""
    body = (body or '').strip()
    if not body:
        raise ValidationError('Cannot send an empty message.')
    chat = load_chat(chat_id)
    if sender_id not in chat.participant_ids:
        raise PermissionDenied('You are not part of this chat.')
    if recipient_id != chat.other_participant(sender_id):
        raise PermissionDenied('The recipient is not part of this chat.')

    message = Message(chat_id=chat.id, sender_id=sender_id, recipient_id=recipient_id, body=body)
    message.id, message.created_at = dao.create_message(message.to_dict())
    dao.append_chat_message(chat.id, message.id, message.created_at)

    notifications.notify_message_best_effort(sender_id, recipient_id, chat.id)
    return message


def delete_own_messages(chat_id, user_id):
    """Delete the messages the user authored in a chat. Returns how many."""
    chat = load_chat(chat_id)
    if user_id not in chat.participant_ids:
        raise PermissionDenied('You are not part of this chat.')
    own = [d['id'] for d in dao.get_messages_by_sender(chat.id, user_id)]
    dao.delete_messages(own)
    dao.remove_chat_messages(chat.id, own)
    logger.info('Deleted %d messages of %s in chat %s', len(own), user_id, chat.id)
    return len(own)
