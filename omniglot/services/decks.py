"""
Flashcard decks.

A deck and its flashcards share one lifecycle: `delete_deck` removes the
cards first, `clone_deck` copies every card with a fresh priority.
"""

import logging

from omniglot import firestore_dao as dao
from omniglot.errors import NotFound, PermissionDenied, ValidationError
from omniglot.firestore_models import Deck, Flashcard, NotificationType
from omniglot.services import notifications

logger = logging.getLogger(__name__)


def load_deck(deck_id):
    doc = dao.get_deck(deck_id)
    if not doc:
        raise NotFound('Deck not found.')
    return Deck.from_dict(doc)


def _owned_deck(deck_id, user_id):
    deck = load_deck(deck_id)
    if deck.creator_id != user_id:
        raise PermissionDenied('This deck belongs to someone else.')
    return deck


def _card_in_deck(deck, card_id):
    doc = dao.get_flashcard(card_id)
    if not doc or doc.get('deck_id') != deck.id:
        raise NotFound('Flashcard not found.')
    return Flashcard.from_dict(doc)


def deck_cards(deck):
    """Cards in the deck's stored order."""
    by_id = {d['id']: Flashcard.from_dict(d) for d in dao.get_flashcards_by_deck(deck.id)}
    return [by_id[cid] for cid in deck.card_ids if cid in by_id]


def create_deck(user_id, language, level, topic):
    if not language or not topic:
        raise ValidationError('A deck needs a language and a topic.')
    deck = Deck(creator_id=user_id, language=language.strip().lower(), level=level or '', topic=topic.strip())
    deck.id = dao.create_deck(deck.to_dict())
    return deck


def update_deck(deck_id, user_id, language, level, topic):
    deck = _owned_deck(deck_id, user_id)
    if not language or not topic:
        raise ValidationError('A deck needs a language and a topic.')
    dao.update_deck(deck.id, {'language': language.strip().lower(), 'level': level or '', 'topic': topic.strip()})
    return load_deck(deck.id)


def delete_deck(deck_id, user_id):
    """Delete a deck together with all of its flashcards."""
    deck = _owned_deck(deck_id, user_id)
    removed = dao.delete_flashcards_by_deck(deck.id)
    dao.delete_deck(deck.id)
    logger.info('Deck %s deleted with %d cards', deck.id, removed)
    return removed


def delete_decks_of(user_id):
    """Cascade used by account deletion."""
    count = 0
    for doc in dao.get_decks_by_creator(user_id):
        dao.delete_flashcards_by_deck(doc['id'])
        dao.delete_deck(doc['id'])
        count += 1
    return count


def add_card(deck_id, user_id, front, back):
    deck = _owned_deck(deck_id, user_id)
    if not (front or '').strip() or not (back or '').strip():
        raise ValidationError('Both sides of the card need some text.')
    card = Flashcard(deck_id=deck.id, front=front.strip(), back=back.strip())
    card.id = dao.create_flashcard(card.to_dict())
    dao.add_deck_card(deck.id, card.id)
    return card


def update_card(deck_id, card_id, user_id, front, back):
    deck = _owned_deck(deck_id, user_id)
    card = _card_in_deck(deck, card_id)
    if not (front or '').strip() or not (back or '').strip():
        raise ValidationError('Both sides of the card need some text.')
    dao.update_flashcard(card.id, {'front': front.strip(), 'back': back.strip()})


def delete_card(deck_id, card_id, user_id):
    deck = _owned_deck(deck_id, user_id)
    card = _card_in_deck(deck, card_id)
    dao.delete_flashcard(card.id)
    dao.remove_deck_card(deck.id, card.id)


def clone_deck(deck_id, user_id):
    """Copy someone's deck into the user's collection.

    Every card is duplicated with priority reset to 0 and the original
    creator is notified once.
    """
    source = load_deck(deck_id)
    if source.creator_id == user_id:
        raise ValidationError('This deck is already yours.')

    clone = Deck(
        creator_id=user_id,
        language=source.language,
        level=source.level,
        topic=source.topic,
        cloned_from=source.id,
    )
    clone.id = dao.create_deck(clone.to_dict())
    for card in deck_cards(source):
        copy = Flashcard(deck_id=clone.id, front=card.front, back=card.back, priority=0)
        copy.id = dao.create_flashcard(copy.to_dict())
        clone.card_ids.append(copy.id)
    dao.update_deck(clone.id, {'card_ids': clone.card_ids})

    logger.info('Deck %s cloned into %s by %s', source.id, clone.id, user_id)
    notifications.notify_best_effort(user_id, source.creator_id, NotificationType.CLONE, clone.id)
    return clone


def next_card(deck_id, user_id):
    """Highest-priority card that is not mastered, or None."""
    deck = _owned_deck(deck_id, user_id)
    cards = [c for c in deck_cards(deck) if not c.is_mastered]
    if not cards:
        return None
    return max(cards, key=lambda c: c.priority)


def review_card(deck_id, card_id, user_id, outcome):
    deck = _owned_deck(deck_id, user_id)
    card = _card_in_deck(deck, card_id)
    priority = card.review(outcome)
    dao.update_flashcard(card.id, {'priority': priority})
    return card
