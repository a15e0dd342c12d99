"""
Socket.IO chat gateway.

A connection joins the room named after its user ID by presenting a chat
token minted by the HTTP layer. Every message is persisted before it is
relayed to the recipient's room and echoed to the sender's room, so all of
the sender's open tabs see it too.
"""

import logging

from flask import request
from flask_socketio import emit, join_room, leave_room
from google.api_core.exceptions import GoogleAPIError

from omniglot import socketio
from omniglot import firestore_dao as dao
from omniglot.errors import OmniglotError
from omniglot.services import chat as chat_service

logger = logging.getLogger(__name__)

# socket sid -> joined user ID
connected_users = {}


def _joined_user():
    return connected_users.get(request.sid)


@socketio.on('connect')
def handle_connect():
    logger.debug('Socket %s connected', request.sid)


@socketio.on('disconnect')
def handle_disconnect(*args):
    user_id = connected_users.pop(request.sid, None)
    if user_id:
        leave_room(user_id)
        logger.info('User %s left their room', user_id)


@socketio.on('join')
def handle_join(data):
    token = data.get('token') if isinstance(data, dict) else data
    user_id = chat_service.verify_chat_token(token)
    if not user_id:
        emit('error', {'message': 'Invalid or expired chat token'})
        return

    user = dao.get_user(user_id)
    if not user:
        emit('error', {'message': 'User not found'})
        return

    previous = connected_users.get(request.sid)
    if previous and previous != user_id:
        leave_room(previous)
    connected_users[request.sid] = user_id
    join_room(user_id)
    logger.info('%s joined their room', user['username'])

    try:
        chats = chat_service.chats_snapshot(user_id)
    except GoogleAPIError:
        logger.exception('Could not load chats for %s', user_id)
        emit('error', {'message': 'Could not load your conversations'})
        return
    emit('init', chats)


@socketio.on('private message')
def handle_private_message(data):
    sender_id = _joined_user()
    if not sender_id:
        emit('error', {'message': 'Join before sending messages'})
        return
    if not isinstance(data, dict):
        emit('error', {'message': 'Malformed message'})
        return

    try:
        message = chat_service.send_message(
            data.get('chatId'), sender_id, data.get('recipient'), data.get('message'),
        )
    except OmniglotError as e:
        emit('error', {'message': e.message})
        return
    except GoogleAPIError:
        logger.exception('Message from %s in chat %s was not persisted', sender_id, data.get('chatId'))
        emit('error', {'message': 'Your message could not be sent. Please resend it.'})
        return

    payload = message.to_payload()
    socketio.emit('private message', payload, to=message.recipient_id)
    socketio.emit('private message', payload, to=sender_id)
