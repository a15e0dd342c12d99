from omniglot.services import matching


def _user(uid, teaches, learns, **extra):
    return {'id': uid, 'username': uid, 'teaches': teaches, 'learns': learns, **extra}


def test_mutual_match_is_symmetric():
    ana = _user('ana', ['es'], ['en'])
    bob = _user('bob', ['en', 'fr'], ['es'])
    cleo = _user('cleo', ['en'], ['de'])

    assert matching.is_mutual_match(ana, bob)
    assert matching.is_mutual_match(bob, ana)
    assert not matching.is_mutual_match(ana, cleo)
    assert not matching.is_mutual_match(cleo, ana)


def test_mutual_matches_project_relevant_languages():
    ana = _user('ana', ['es', 'it'], ['en', 'de'])
    bob = _user('bob', ['en', 'fr'], ['es', 'ru'])

    [match] = matching.mutual_matches(ana, [bob])

    assert match['id'] == 'bob'
    assert match['teaches'] == ['en']
    assert match['learns'] == ['es']
    # the candidate document is not modified
    assert bob['teaches'] == ['en', 'fr']


def test_mutual_matches_skip_private_self_and_one_sided():
    ana = _user('ana', ['es'], ['en'])
    candidates = [
        ana,
        _user('hidden', ['en'], ['es'], private=True),
        _user('one-sided', ['en'], ['ja']),
        _user('bob', ['en'], ['es']),
    ]

    assert [m['id'] for m in matching.mutual_matches(ana, candidates)] == ['bob']


def test_mutual_matches_order_by_shared_languages_then_username():
    ana = _user('ana', ['es', 'it'], ['en', 'de'])
    candidates = [
        _user('zoe', ['en', 'de'], ['es', 'it']),
        _user('carl', ['en'], ['es']),
        _user('bea', ['de'], ['it']),
    ]

    assert [m['id'] for m in matching.mutual_matches(ana, candidates)] == ['zoe', 'bea', 'carl']


def test_teacher_matches_need_relevant_offer_and_sort_by_rating():
    student = _user('sam', [], ['es', 'fr'])
    candidates = [
        _user('t-unrated', ['es'], [], professional=True),
        _user('t-low', ['es'], [], professional=True),
        _user('t-high', ['fr', 'de'], [], professional=True),
        _user('t-no-offer', ['es'], [], professional=True),
        _user('t-amateur', ['es'], []),
    ]
    offers = [
        {'id': 'o1', 'teacher_id': 't-unrated', 'language': 'es'},
        {'id': 'o2', 'teacher_id': 't-low', 'language': 'es'},
        {'id': 'o3', 'teacher_id': 't-high', 'language': 'fr'},
        {'id': 'o4', 'teacher_id': 't-high', 'language': 'de'},
        {'id': 'o5', 'teacher_id': 't-no-offer', 'language': 'de'},
        {'id': 'o6', 'teacher_id': 't-amateur', 'language': 'es'},
    ]
    reviews = [
        {'subject_id': 't-low', 'rating': 2},
        {'subject_id': 't-low', 'rating': 3},
        {'subject_id': 't-high', 'rating': 5},
    ]

    matches = matching.teacher_matches(student, candidates, offers, reviews)

    assert [m['id'] for m in matches] == ['t-high', 't-low', 't-unrated']
    high, low, unrated = matches
    assert high['teaches'] == ['fr']
    assert [o['id'] for o in high['offers']] == ['o3']
    assert high['average_rating'] == 5
    assert low['average_rating'] == 2.5
    assert low['review_count'] == 2
    assert unrated['average_rating'] is None
    assert unrated['review_count'] == 0


def test_rating_summary_without_reviews():
    assert matching.rating_summary([]) == (None, 0)


def test_find_partners_reads_candidates_from_store(make_user):
    ana = make_user('ana', teaches=['es'], learns=['en'])
    make_user('bob', teaches=['en'], learns=['es'])
    make_user('cleo', teaches=['en'], learns=['es'], private=True)
    make_user('dan', teaches=['fr'], learns=['es'])

    assert [m['id'] for m in matching.find_partners(ana)] == ['bob']


def test_find_teachers_reads_offers_and_reviews(make_user, make_offer):
    sam = make_user('sam', learns=['es'])
    make_user('tina', teaches=['es'], professional=True)
    make_user('tom', teaches=['es'], professional=True)
    make_offer('tina', language='es')

    [match] = matching.find_teachers(sam)

    assert match['id'] == 'tina'
    assert match['average_rating'] is None


def test_search_users_excludes_private_and_requester(make_user):
    make_user('ana', teaches=['es'], learns=['en'])
    make_user('bob', teaches=['en'], learns=['es'])
    make_user('hidden', teaches=['es'], private=True)

    results = matching.search_users('ES', exclude_id='ana')

    assert [r['username'] for r in results] == ['bob']
    assert set(results[0]) == {'id', 'username', 'country', 'teaches', 'learns'}
