"""
Bookings, reschedule negotiation, cancellation and rating.

Every operation validates against the current stored state and raises
NotFound / PermissionDenied / Conflict / ValidationError before writing
anything. Notifications to the other party are best-effort.
"""

import logging
from datetime import datetime

from google.api_core.exceptions import AlreadyExists

from omniglot import firestore_dao as dao
from omniglot.errors import Conflict, NotFound, PermissionDenied, ValidationError
from omniglot.firestore_models import Class, NotificationType, Offer, Review
from omniglot.services import notifications

logger = logging.getLogger(__name__)

DECISIONS = {'accept': True, 'decline': False}


def load_class(class_id):
    doc = dao.get_class(class_id)
    if not doc:
        raise NotFound('Class not found.')
    return Class.from_dict(doc)


def _role_in(lesson, user_id):
    role = lesson.role_of(user_id)
    if role is None:
        raise PermissionDenied('You are not part of this class.')
    return role


# ---------------------------------------------------------------------------
# Booking
# ---------------------------------------------------------------------------

def create_class_from_payment(offer_id, student_id, date, timeslot, payment_session_id):
    """Turn a paid checkout session into a Class.

    The payment session ID is the class document ID, so confirming the same
    session twice returns the class created the first time.
    """
    if not payment_session_id:
        raise ValidationError('Missing payment session.')

    existing = dao.get_class(payment_session_id)
    if existing:
        if existing.get('student_id') != student_id:
            raise Conflict('This payment session was already used.')
        logger.info('Payment session %s already consumed by class %s', payment_session_id, existing['id'])
        return Class.from_dict(existing)

    offer_doc = dao.get_offer(offer_id)
    if not offer_doc:
        raise NotFound('Offer not found.')
    offer = Offer.from_dict(offer_doc)
    if not dao.get_user(offer.teacher_id):
        raise NotFound('Teacher not found.')
    if not dao.get_user(student_id):
        raise NotFound('Student not found.')
    if offer.teacher_id == student_id:
        raise ValidationError('You cannot book your own offer.')

    lesson = Class.from_offer(offer, student_id, date, timeslot, payment_session_id)
    try:
        dao.create_class(payment_session_id, lesson.to_dict())
    except AlreadyExists:
        logger.info('Payment session %s consumed concurrently', payment_session_id)
        return load_class(payment_session_id)

    logger.info('Class %s booked: student=%s teacher=%s %s %s',
                lesson.id, student_id, offer.teacher_id, date, timeslot)
    notifications.notify_best_effort(student_id, offer.teacher_id, NotificationType.BOOKING, lesson.id)
    return lesson


# ---------------------------------------------------------------------------
# Reschedule negotiation
# ---------------------------------------------------------------------------

def propose_reschedule(class_id, new_date, new_timeslot, initiator_id):
    lesson = load_class(class_id)
    role = _role_in(lesson, initiator_id)
    proposal = lesson.propose_reschedule(new_date, new_timeslot, initiator_id)
    dao.update_class(lesson.id, {'reschedule': proposal.to_dict()})

    logger.info('Class %s: %s proposed %s %s', lesson.id, role, new_date, new_timeslot)
    notifications.notify_best_effort(
        initiator_id, lesson.other_party(initiator_id),
        NotificationType.reschedule(role, 'pending'), lesson.id,
    )
    return lesson


def resolve_reschedule(class_id, decision, actor_id):
    """Accept or decline the pending proposal on behalf of the other party."""
    if decision not in DECISIONS:
        raise ValidationError('Decision must be accept or decline.')
    lesson = load_class(class_id)
    role = _role_in(lesson, actor_id)
    if not lesson.reschedule or not lesson.reschedule.is_pending:
        raise Conflict('There is no pending reschedule proposal for this class.')
    if lesson.reschedule.initiator_id == actor_id:
        raise PermissionDenied('The other participant has to answer your proposal.')

    proposal = lesson.resolve_reschedule(DECISIONS[decision])
    dao.update_class(lesson.id, {
        'date': lesson.date,
        'timeslot': lesson.timeslot,
        'reschedule': proposal.to_dict(),
    })

    logger.info('Class %s: reschedule %s by %s', lesson.id, proposal.status.value, role)
    notifications.notify_best_effort(
        actor_id, proposal.initiator_id,
        NotificationType.reschedule(role, proposal.status.value), lesson.id,
    )
    return lesson


# ---------------------------------------------------------------------------
# Cancellation / rating
# ---------------------------------------------------------------------------

def cancel_class(class_id, actor_id):
    lesson = load_class(class_id)
    role = _role_in(lesson, actor_id)
    dao.delete_class(lesson.id)

    logger.info('Class %s cancelled by %s', lesson.id, role)
    notifications.notify_best_effort(
        actor_id, lesson.other_party(actor_id), NotificationType.cancel_by(role), lesson.id,
    )
    return lesson


def _parse_rating(rating):
    try:
        rating = int(rating)
    except (TypeError, ValueError):
        raise ValidationError('Rating must be a number between 1 and 5.')
    if not 1 <= rating <= 5:
        raise ValidationError('Rating must be a number between 1 and 5.')
    return rating


def rate_class(class_id, rating, text, author_id, now=None):
    """Leave the single review a student may write for a finished class."""
    rating = _parse_rating(rating)
    lesson = load_class(class_id)
    if _role_in(lesson, author_id) != 'student':
        raise PermissionDenied('Only the student can rate this class.')
    if lesson.is_rated:
        raise Conflict('You have already rated this class.')
    if not lesson.is_past(now):
        raise Conflict('You can rate the class once it has taken place.')

    review = Review.for_class(lesson, author_id, rating, text)
    review.id = dao.create_review(review.to_dict())
    dao.update_class(lesson.id, {'is_rated': True})
    lesson.is_rated = True

    notifications.notify_best_effort(author_id, lesson.teacher_id, NotificationType.REVIEW, lesson.id)
    return review


# ---------------------------------------------------------------------------
# Views
# ---------------------------------------------------------------------------

def classes_for_student(student_id, now=None):
    """The student's classes, soonest first, with teacher and offer attached."""
    now = now or datetime.now()
    lessons = [Class.from_dict(d) for d in dao.get_classes_by_student(student_id)]
    teachers = dao.get_users_by_ids([l.teacher_id for l in lessons])
    result = []
    for lesson in sorted(lessons, key=lambda l: l.starts_at):
        result.append({
            'class': lesson,
            'teacher': teachers.get(lesson.teacher_id),
            'offer': dao.get_offer(lesson.offer_id),
            'is_past': lesson.is_past(now),
            'can_rate': lesson.is_past(now) and not lesson.is_rated,
        })
    return result


def calendar_events(user_id, now=None):
    """Calendar events for every class the user teaches or attends."""
    now = now or datetime.now()
    lessons = [Class.from_dict(d) for d in dao.get_classes_by_teacher(user_id)]
    lessons += [Class.from_dict(d) for d in dao.get_classes_by_student(user_id)]
    others = dao.get_users_by_ids([l.other_party(user_id) for l in lessons])

    events = []
    for lesson in sorted(lessons, key=lambda l: l.starts_at):
        other = others.get(lesson.other_party(user_id)) or {}
        events.append({
            'id': lesson.id,
            'title': other.get('username', 'Deleted user'),
            'start': lesson.starts_at.strftime('%Y-%m-%dT%H:%M:%S'),
            'end': lesson.ends_at.strftime('%Y-%m-%dT%H:%M:%S'),
            'display': 'block',
            'extendedProps': {
                'role': lesson.role_of(user_id),
                'language': lesson.language,
                'is_past': lesson.is_past(now),
                'reschedule_pending': bool(lesson.reschedule and lesson.reschedule.is_pending),
            },
        })
    return events


def class_detail(class_id, user_id):
    lesson = load_class(class_id)
    role = _role_in(lesson, user_id)
    other = dao.get_user(lesson.other_party(user_id))
    proposal = lesson.reschedule
    return {
        'class': lesson,
        'role': role,
        'other': other,
        'can_answer': bool(proposal and proposal.is_pending and proposal.initiator_id != user_id),
        'can_propose': not (proposal and proposal.is_pending),
    }
