"""
Firestore Data Access Object (DAO) layer.

Route files and services call functions from this module instead of
querying the database directly. Every read returns plain dicts carrying the
document ID under 'id'.
"""

from datetime import datetime, timezone

from google.cloud.firestore_v1 import ArrayRemove, ArrayUnion, FieldFilter

from omniglot.firebase_init import get_db

# Firestore 'in' / 'array-contains-any' filters accept at most 30 values
IN_QUERY_LIMIT = 30
BATCH_LIMIT = 500


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _doc_to_dict(doc_snapshot):
    """Convert a Firestore DocumentSnapshot to a dict with 'id' field."""
    if not doc_snapshot.exists:
        return None
    d = doc_snapshot.to_dict()
    d['id'] = doc_snapshot.id
    return d


def _query_to_list(query_ref):
    """Run a query and return a list of dicts."""
    return [_doc_to_dict(doc) for doc in query_ref.stream()]


def _now():
    return datetime.now(timezone.utc)


def _chunks(values, size=IN_QUERY_LIMIT):
    values = list(values)
    for i in range(0, len(values), size):
        yield values[i:i + size]


def _query_in(collection, field, values, *extra_filters):
    """Run `field in values` in chunks and concatenate the results."""
    results = []
    for chunk in _chunks(values):
        q = get_db().collection(collection).where(filter=FieldFilter(field, 'in', chunk))
        for f in extra_filters:
            q = q.where(filter=f)
        results.extend(_query_to_list(q))
    return results


def _delete_refs(refs):
    """Delete document references in batches."""
    batch = get_db().batch()
    count = 0
    for ref in refs:
        batch.delete(ref)
        count += 1
        if count % BATCH_LIMIT == 0:
            batch.commit()
            batch = get_db().batch()
    if count % BATCH_LIMIT != 0:
        batch.commit()
    return count


# ========================================================================
# Users  (collection: users)
# ========================================================================

def get_user(uid):
    """Get a user document by UID. Returns dict or None."""
    if not uid:
        return None
    doc = get_db().collection('users').document(uid).get()
    return _doc_to_dict(doc)


def get_user_by_email(email):
    """Get a user by email address. Returns dict or None."""
    docs = (
        get_db().collection('users')
        .where(filter=FieldFilter('email', '==', email.lower()))
        .limit(1)
        .stream()
    )
    for doc in docs:
        return _doc_to_dict(doc)
    return None


def get_user_by_username(username):
    """Get a user by username. Returns dict or None."""
    docs = (
        get_db().collection('users')
        .where(filter=FieldFilter('username', '==', username))
        .limit(1)
        .stream()
    )
    for doc in docs:
        return _doc_to_dict(doc)
    return None


def create_user(uid, data):
    """Create a user document with the given UID as the document ID."""
    data.setdefault('created_at', _now())
    get_db().collection('users').document(uid).set(data)


def update_user(uid, data):
    """Update fields on an existing user document."""
    data.setdefault('updated_at', _now())
    get_db().collection('users').document(uid).update(data)


def delete_user(uid):
    get_db().collection('users').document(uid).delete()


def get_users_by_ids(uids):
    """Fetch multiple users by their UIDs. Returns a dict keyed by UID."""
    users = {}
    for uid in set(uid for uid in uids if uid):
        d = get_user(uid)
        if d:
            users[uid] = d
    return users


def get_users_teaching_any(languages, professional_only=False):
    """Users whose `teaches` array shares at least one of `languages`."""
    results = {}
    for chunk in _chunks(sorted(set(languages))):
        q = (
            get_db().collection('users')
            .where(filter=FieldFilter('teaches', 'array_contains_any', chunk))
        )
        if professional_only:
            q = q.where(filter=FieldFilter('professional', '==', True))
        for d in _query_to_list(q):
            results[d['id']] = d
    return list(results.values())


def get_users_with_language(language):
    """Users who teach or learn `language`."""
    results = {}
    for field in ('teaches', 'learns'):
        q = (
            get_db().collection('users')
            .where(filter=FieldFilter(field, 'array_contains', language))
        )
        for d in _query_to_list(q):
            results[d['id']] = d
    return sorted(results.values(), key=lambda u: u.get('username', '').lower())


def add_user_chat(uid, chat_id):
    get_db().collection('users').document(uid).update({'chat_ids': ArrayUnion([chat_id])})


def add_user_offer(uid, offer_id):
    get_db().collection('users').document(uid).update({'offer_ids': ArrayUnion([offer_id])})


def remove_user_offer(uid, offer_id):
    get_db().collection('users').document(uid).update({'offer_ids': ArrayRemove([offer_id])})


# ========================================================================
# Offers  (collection: offers)
# ========================================================================

def get_offer(offer_id):
    """Get an offer by ID. Returns dict or None."""
    if not offer_id:
        return None
    doc = get_db().collection('offers').document(offer_id).get()
    return _doc_to_dict(doc)


def create_offer(data):
    """Create a new offer. Returns the generated doc ID."""
    data.setdefault('created_at', _now())
    _, doc_ref = get_db().collection('offers').add(data)
    return doc_ref.id


def update_offer(offer_id, data):
    """Update fields on an existing offer."""
    data.setdefault('updated_at', _now())
    get_db().collection('offers').document(offer_id).update(data)


def delete_offer(offer_id):
    get_db().collection('offers').document(offer_id).delete()


def get_offers_by_teacher(teacher_id):
    """Get all offers published by a teacher, oldest first."""
    return _query_to_list(
        get_db().collection('offers')
        .where(filter=FieldFilter('teacher_id', '==', teacher_id))
        .order_by('created_at')
    )


def get_offers_by_teachers(teacher_ids):
    """Offers for several teachers at once."""
    return _query_in('offers', 'teacher_id', teacher_ids)


def delete_offers_by_teacher(teacher_id):
    docs = (
        get_db().collection('offers')
        .where(filter=FieldFilter('teacher_id', '==', teacher_id))
        .stream()
    )
    return _delete_refs(doc.reference for doc in docs)


# ========================================================================
# Classes  (collection: classes)
# ========================================================================

def get_class(class_id):
    """Get a class by ID. Returns dict or None."""
    if not class_id:
        return None
    doc = get_db().collection('classes').document(class_id).get()
    return _doc_to_dict(doc)


def create_class(class_id, data):
    """Create a class under a caller-chosen ID.

    Uses Firestore's create-if-absent, so a second write for the same ID
    raises google.api_core.exceptions.AlreadyExists.
    """
    data.setdefault('created_at', _now())
    get_db().collection('classes').document(class_id).create(data)
    return class_id


def update_class(class_id, data):
    """Update fields on an existing class."""
    data.setdefault('updated_at', _now())
    get_db().collection('classes').document(class_id).update(data)


def delete_class(class_id):
    get_db().collection('classes').document(class_id).delete()


def get_classes_by_student(student_id):
    return _query_to_list(
        get_db().collection('classes')
        .where(filter=FieldFilter('student_id', '==', student_id))
    )


def get_classes_by_teacher(teacher_id):
    return _query_to_list(
        get_db().collection('classes')
        .where(filter=FieldFilter('teacher_id', '==', teacher_id))
    )


# ========================================================================
# Chats  (collection: chats)
# ========================================================================

def get_chat(chat_id):
    """Get a chat by ID. Returns dict or None."""
    if not chat_id:
        return None
    doc = get_db().collection('chats').document(chat_id).get()
    return _doc_to_dict(doc)


def create_chat(chat_id, data):
    """Create a chat under its pair ID. Raises AlreadyExists if present."""
    data.setdefault('created_at', _now())
    get_db().collection('chats').document(chat_id).create(data)
    return chat_id


def get_chats_for_user(uid):
    """Get every chat the user participates in."""
    return _query_to_list(
        get_db().collection('chats')
        .where(filter=FieldFilter('participant_ids', 'array_contains', uid))
    )


def append_chat_message(chat_id, message_id, timestamp):
    """Link a persisted message to its chat and bump the activity timestamp."""
    get_db().collection('chats').document(chat_id).update({
        'message_ids': ArrayUnion([message_id]),
        'last_message_timestamp': timestamp,
    })


def remove_chat_messages(chat_id, message_ids):
    if not message_ids:
        return
    get_db().collection('chats').document(chat_id).update({
        'message_ids': ArrayRemove(list(message_ids)),
    })


# ========================================================================
# Messages  (collection: messages)
# ========================================================================

def create_message(data):
    """Create a message. Returns (doc ID, created_at)."""
    data.setdefault('created_at', _now())
    _, doc_ref = get_db().collection('messages').add(data)
    return doc_ref.id, data['created_at']


def get_messages_by_chat(chat_id):
    """Get all messages of a chat, oldest first."""
    return _query_to_list(
        get_db().collection('messages')
        .where(filter=FieldFilter('chat_id', '==', chat_id))
        .order_by('created_at')
    )


def get_messages_by_chats(chat_ids):
    """Get the messages of several chats in chunked `in` queries, unordered."""
    return _query_in('messages', 'chat_id', chat_ids)


def get_messages_by_sender(chat_id, sender_id):
    return _query_to_list(
        get_db().collection('messages')
        .where(filter=FieldFilter('chat_id', '==', chat_id))
        .where(filter=FieldFilter('sender_id', '==', sender_id))
    )


def delete_messages(message_ids):
    db = get_db()
    return _delete_refs(db.collection('messages').document(mid) for mid in message_ids)


def delete_messages_by_sender(sender_id):
    """Delete every message a user sent. Returns {chat_id: [message_id]}."""
    docs = (
        get_db().collection('messages')
        .where(filter=FieldFilter('sender_id', '==', sender_id))
        .stream()
    )
    by_chat = {}
    refs = []
    for doc in docs:
        by_chat.setdefault(doc.to_dict().get('chat_id'), []).append(doc.id)
        refs.append(doc.reference)
    _delete_refs(refs)
    return by_chat


# ========================================================================
# Reviews  (collection: reviews)
# ========================================================================

def create_review(data):
    """Create a review. Returns doc ID."""
    data.setdefault('created_at', _now())
    _, doc_ref = get_db().collection('reviews').add(data)
    return doc_ref.id


def get_reviews_by_subject(subject_id):
    """Reviews about a teacher, newest first."""
    return _query_to_list(
        get_db().collection('reviews')
        .where(filter=FieldFilter('subject_id', '==', subject_id))
        .order_by('created_at', direction='DESCENDING')
    )


def get_reviews_by_subjects(subject_ids):
    return _query_in('reviews', 'subject_id', subject_ids)


def get_reviews_by_class(class_id):
    return _query_to_list(
        get_db().collection('reviews')
        .where(filter=FieldFilter('class_id', '==', class_id))
    )


# ========================================================================
# Notifications  (collection: notifications)
# ========================================================================

def get_notification(notification_id):
    if not notification_id:
        return None
    doc = get_db().collection('notifications').document(notification_id).get()
    return _doc_to_dict(doc)


def create_notification(data):
    """Create a notification. Returns doc ID."""
    data.setdefault('created_at', _now())
    data.setdefault('read', False)
    _, doc_ref = get_db().collection('notifications').add(data)
    return doc_ref.id


def get_notifications(user_id, limit=None):
    """Get notifications targeting a user, newest first."""
    q = (
        get_db().collection('notifications')
        .where(filter=FieldFilter('target_id', '==', user_id))
        .order_by('created_at', direction='DESCENDING')
    )
    if limit:
        q = q.limit(limit)
    return _query_to_list(q)


def find_unread_notification(target_id, source_id, type_):
    docs = (
        get_db().collection('notifications')
        .where(filter=FieldFilter('target_id', '==', target_id))
        .where(filter=FieldFilter('source_id', '==', source_id))
        .where(filter=FieldFilter('type', '==', type_))
        .where(filter=FieldFilter('read', '==', False))
        .limit(1)
        .stream()
    )
    for doc in docs:
        return _doc_to_dict(doc)
    return None


def count_unread_notifications(user_id):
    """Count unread notifications targeting a user with a server-side aggregation."""
    result = (
        get_db().collection('notifications')
        .where(filter=FieldFilter('target_id', '==', user_id))
        .where(filter=FieldFilter('read', '==', False))
        .count(alias='unread')
        .get()
    )
    return int(result[0][0].value)


def mark_notification_read(notification_id):
    """Mark a single notification as read."""
    get_db().collection('notifications').document(notification_id).update({
        'read': True,
        'read_at': _now(),
    })


def mark_all_read(user_id):
    """Mark all notifications for a user as read."""
    docs = (
        get_db().collection('notifications')
        .where(filter=FieldFilter('target_id', '==', user_id))
        .where(filter=FieldFilter('read', '==', False))
        .stream()
    )
    batch = get_db().batch()
    now = _now()
    count = 0
    for doc in docs:
        batch.update(doc.reference, {'read': True, 'read_at': now})
        count += 1
        if count % BATCH_LIMIT == 0:
            batch.commit()
            batch = get_db().batch()
    if count % BATCH_LIMIT != 0:
        batch.commit()
    return count


def delete_notification(notification_id):
    get_db().collection('notifications').document(notification_id).delete()


def delete_notifications_for(user_id):
    docs = (
        get_db().collection('notifications')
        .where(filter=FieldFilter('target_id', '==', user_id))
        .stream()
    )
    return _delete_refs(doc.reference for doc in docs)


# ========================================================================
# Decks  (collection: decks)
# ========================================================================

def get_deck(deck_id):
    if not deck_id:
        return None
    doc = get_db().collection('decks').document(deck_id).get()
    return _doc_to_dict(doc)


def create_deck(data):
    """Create a deck. Returns doc ID."""
    data.setdefault('created_at', _now())
    _, doc_ref = get_db().collection('decks').add(data)
    return doc_ref.id


def update_deck(deck_id, data):
    data.setdefault('updated_at', _now())
    get_db().collection('decks').document(deck_id).update(data)


def delete_deck(deck_id):
    get_db().collection('decks').document(deck_id).delete()


def get_decks_by_creator(creator_id):
    return _query_to_list(
        get_db().collection('decks')
        .where(filter=FieldFilter('creator_id', '==', creator_id))
        .order_by('created_at')
    )


def get_decks(language=None, limit=100):
    """Browse decks, newest first, optionally for one language."""
    q = get_db().collection('decks')
    if language:
        q = q.where(filter=FieldFilter('language', '==', language))
    return _query_to_list(q.order_by('created_at', direction='DESCENDING').limit(limit))


def add_deck_card(deck_id, card_id):
    get_db().collection('decks').document(deck_id).update({'card_ids': ArrayUnion([card_id])})


def remove_deck_card(deck_id, card_id):
    get_db().collection('decks').document(deck_id).update({'card_ids': ArrayRemove([card_id])})


# ========================================================================
# Flashcards  (collection: flashcards)
# ========================================================================

def get_flashcard(card_id):
    if not card_id:
        return None
    doc = get_db().collection('flashcards').document(card_id).get()
    return _doc_to_dict(doc)


def create_flashcard(data):
    """Create a flashcard. Returns doc ID."""
    data.setdefault('created_at', _now())
    _, doc_ref = get_db().collection('flashcards').add(data)
    return doc_ref.id


def update_flashcard(card_id, data):
    data.setdefault('updated_at', _now())
    get_db().collection('flashcards').document(card_id).update(data)


def delete_flashcard(card_id):
    get_db().collection('flashcards').document(card_id).delete()


def get_flashcards_by_deck(deck_id):
    return _query_to_list(
        get_db().collection('flashcards')
        .where(filter=FieldFilter('deck_id', '==', deck_id))
    )


def delete_flashcards_by_deck(deck_id):
    docs = (
        get_db().collection('flashcards')
        .where(filter=FieldFilter('deck_id', '==', deck_id))
        .stream()
    )
    return _delete_refs(doc.reference for doc in docs)
