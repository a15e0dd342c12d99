"""
Account lifecycle: sign-up, profile edits and deletion.

Deletion follows one explicit cascade (see `delete_account`) instead of
cleanup scattered across routes.
"""

import logging

from firebase_admin import auth as firebase_auth
from firebase_admin.exceptions import FirebaseError

from omniglot import firestore_dao as dao
from omniglot.errors import Conflict, DependencyError, NotFound
from omniglot.firebase_init import get_auth
from omniglot.firestore_models import User
from omniglot.services import decks, storage

logger = logging.getLogger(__name__)


def _check_unique(username, email, current_id=None):
    by_name = dao.get_user_by_username(username)
    if by_name and by_name['id'] != current_id:
        raise Conflict('The username is already taken. Choose a different username.')
    by_email = dao.get_user_by_email(email)
    if by_email and by_email['id'] != current_id:
        raise Conflict('The email address is already registered.')


def sign_up(profile, password, picture=None):
    """Create the Firebase Auth account and the user document.

    `profile` holds the User fields; `picture` is an optional
    (bytes, extension) pair.
    """
    user = User(**profile)
    user.email = user.email.strip().lower()
    user.validate()
    _check_unique(user.username, user.email)

    auth = get_auth()
    try:
        account = auth.create_user(email=user.email, password=password, display_name=user.username)
    except firebase_auth.EmailAlreadyExistsError:
        raise Conflict('The email address is already registered.')
    except FirebaseError as e:
        logger.error('Firebase Auth sign-up failed for %s: %s', user.email, e)
        raise DependencyError('Could not create your account. Please try again.')
    user.id = account.uid

    if picture:
        data, ext = picture
        user.profile_picture_path, user.profile_picture = storage.upload_profile_picture(user.id, data, ext)

    dao.create_user(user.id, user.to_dict())
    logger.info('User %s signed up as %s', user.id, user.username)
    return user


def update_profile(user_id, changes, picture=None):
    """Apply profile edits; a new picture replaces and deletes the old one."""
    doc = dao.get_user(user_id)
    if not doc:
        raise NotFound('User not found.')
    current = User.from_dict(doc)
    merged = User.from_dict({**doc, **changes})
    merged.email = merged.email.strip().lower()
    merged.validate()
    _check_unique(merged.username, merged.email, current_id=user_id)

    if merged.email != current.email:
        try:
            get_auth().update_user(user_id, email=merged.email)
        except FirebaseError as e:
            logger.error('Firebase Auth email change failed for %s: %s', user_id, e)
            raise DependencyError('Could not change your email address.')

    update = {
        'username': merged.username,
        'email': merged.email,
        'gender': merged.gender,
        'birthdate': merged.birthdate,
        'country': merged.country,
        'teaches': merged.teaches,
        'learns': merged.learns,
        'private': merged.private,
        'professional': merged.professional,
    }
    if picture:
        data, ext = picture
        update['profile_picture_path'], update['profile_picture'] = storage.upload_profile_picture(user_id, data, ext)
    dao.update_user(user_id, update)
    if picture and current.profile_picture_path:
        storage.delete_file(current.profile_picture_path)
    return dao.get_user(user_id)


def delete_account(user_id):
    """Delete a user and everything they own.

    Order: offers, decks (with flashcards), notifications addressed to the
    user, the user's sent messages, the profile picture, the Firebase Auth
    account and finally the user document. Chats stay for the other
    participant.
    """
    doc = dao.get_user(user_id)
    if not doc:
        raise NotFound('User not found.')

    offers = dao.delete_offers_by_teacher(user_id)
    deck_count = decks.delete_decks_of(user_id)
    notification_count = dao.delete_notifications_for(user_id)
    sent = dao.delete_messages_by_sender(user_id)
    for chat_id, message_ids in sent.items():
        if dao.get_chat(chat_id):
            dao.remove_chat_messages(chat_id, message_ids)
    storage.delete_file(doc.get('profile_picture_path'))

    try:
        get_auth().delete_user(user_id)
    except firebase_auth.UserNotFoundError:
        logger.warning('Firebase Auth account %s was already gone', user_id)

    dao.delete_user(user_id)
    logger.info('Deleted user %s: %d offers, %d decks, %d notifications, %d chats touched',
                user_id, offers, deck_count, notification_count, len(sent))
