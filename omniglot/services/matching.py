"""
Language matching.

`mutual_matches` and `teacher_matches` are pure: they take the requesting
user and candidate documents and return display projections. `find_partners`
and `find_teachers` fetch the candidates from Firestore.
"""

from omniglot import firestore_dao as dao


def _ordered_intersection(values, allowed):
    allowed = set(allowed)
    return [v for v in values if v in allowed]


def is_mutual_match(user, other):
    """True when each of the two users teaches something the other learns."""
    teaches = set(user.get('teaches') or [])
    learns = set(user.get('learns') or [])
    return bool(set(other.get('teaches') or []) & learns) and bool(set(other.get('learns') or []) & teaches)


def mutual_matches(user, candidates):
    """Non-private users with complementary language sets.

    Each match is a copy whose `teaches`/`learns` only keep the languages
    relevant to the requester. Ordered by number of shared languages, then
    username.
    """
    learns = user.get('learns') or []
    teaches = user.get('teaches') or []
    matches = []
    for other in candidates:
        if other.get('id') == user.get('id') or other.get('private'):
            continue
        if not is_mutual_match(user, other):
            continue
        match = dict(other)
        match['teaches'] = _ordered_intersection(other.get('teaches') or [], learns)
        match['learns'] = _ordered_intersection(other.get('learns') or [], teaches)
        matches.append(match)
    matches.sort(key=lambda m: (-(len(m['teaches']) + len(m['learns'])), m.get('username', '').lower()))
    return matches


def rating_summary(reviews):
    """(average rating or None, review count)."""
    ratings = [r.get('rating', 0) for r in reviews]
    if not ratings:
        return None, 0
    return sum(ratings) / len(ratings), len(ratings)


def teacher_matches(user, candidates, offers, reviews):
    """Professional users teaching a language the requester learns and
    having at least one offer for such a language.

    `offers` and `reviews` may span several teachers; they are grouped by
    `teacher_id` / `subject_id`. Results carry `offers` (relevant ones only),
    `average_rating` and `review_count`, and are ordered by rating (unrated
    last), review count, then username.
    """
    learns = user.get('learns') or []
    offers_by_teacher = {}
    for offer in offers:
        offers_by_teacher.setdefault(offer.get('teacher_id'), []).append(offer)
    reviews_by_teacher = {}
    for review in reviews:
        reviews_by_teacher.setdefault(review.get('subject_id'), []).append(review)

    matches = []
    for other in candidates:
        if other.get('id') == user.get('id') or not other.get('professional'):
            continue
        teaches = _ordered_intersection(other.get('teaches') or [], learns)
        if not teaches:
            continue
        relevant_offers = [o for o in offers_by_teacher.get(other['id'], []) if o.get('language') in learns]
        if not relevant_offers:
            continue
        average, count = rating_summary(reviews_by_teacher.get(other['id'], []))
        match = dict(other)
        match['teaches'] = teaches
        match['offers'] = relevant_offers
        match['average_rating'] = average
        match['review_count'] = count
        matches.append(match)

    matches.sort(key=lambda m: (
        m['average_rating'] is None,
        -(m['average_rating'] or 0),
        -m['review_count'],
        m.get('username', '').lower(),
    ))
    return matches


def find_partners(user):
    learns = user.get('learns') or []
    if not learns or not (user.get('teaches') or []):
        return []
    return mutual_matches(user, dao.get_users_teaching_any(learns))


def find_teachers(user):
    learns = user.get('learns') or []
    if not learns:
        return []
    candidates = dao.get_users_teaching_any(learns, professional_only=True)
    ids = [c['id'] for c in candidates if c['id'] != user.get('id')]
    if not ids:
        return []
    offers = dao.get_offers_by_teachers(ids)
    reviews = dao.get_reviews_by_subjects(ids)
    return teacher_matches(user, candidates, offers, reviews)


def search_users(language, exclude_id=None):
    """Public search card for users who teach or learn `language`."""
    language = (language or '').strip().lower()
    if not language:
        return []
    return [
        {
            'id': u['id'],
            'username': u.get('username'),
            'country': u.get('country'),
            'teaches': u.get('teaches') or [],
            'learns': u.get('learns') or [],
        }
        for u in dao.get_users_with_language(language)
        if not u.get('private') and u['id'] != exclude_id
    ]
