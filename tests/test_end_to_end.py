"""A teacher publishes an offer, a student pays for it and both see the class."""

import pytest

from omniglot import firestore_dao as dao
from omniglot.services import payments


@pytest.fixture
def paid_session(monkeypatch):
    sessions = {}

    def retrieve(session_id):
        return sessions[session_id]

    def create(offer, student, date, timeslot, return_url):
        sessions['cs_paid'] = {
            'id': 'cs_paid',
            'status': 'complete',
            'payment_status': 'paid',
            'customer_email': student['email'],
            'metadata': {'offer_id': offer['id'], 'student_id': student['id'],
                         'date': date, 'timeslot': timeslot},
        }
        return 'cs_paid_secret'

    monkeypatch.setattr(payments, 'retrieve_checkout_session', retrieve)
    monkeypatch.setattr(payments, 'create_checkout_session', create)
    return sessions


def test_book_a_class_and_see_it_on_both_sides(client, login, db, make_user, paid_session):
    make_user('T', teaches=['es'], professional=True)
    make_user('S', learns=['es'])

    login('T')
    response = client.post('/account/offers/new', data={
        'name': 'Spanish conversation',
        'language': 'es',
        'level': 'beginner',
        'location_type': 'online',
        'duration': '60',
        'class_type': 'private',
        'price': '20',
    })
    assert response.status_code == 302
    [offer] = dao.get_offers_by_teacher('T')
    assert offer['price'] == 20.0
    assert dao.get_user('T')['offer_ids'] == [offer['id']]

    login('S')
    response = client.post(f'/offers/{offer["id"]}/book', json={'date': '2030-06-01', 'timeslot': '18:00'})
    assert response.get_json() == {'clientSecret': 'cs_paid_secret'}
    assert client.get(f'/offers/{offer["id"]}/session-status?session_id=cs_paid').get_json() == {
        'status': 'complete', 'customer_email': 'S@example.com',
    }

    response = client.post(f'/offers/{offer["id"]}/return', data={'session_id': 'cs_paid'})
    assert response.status_code == 302
    assert response.headers['Location'].endswith('/account/classes')
    # confirming the same session again does not book twice
    client.post(f'/offers/{offer["id"]}/return', data={'session_id': 'cs_paid'})

    lesson = dao.get_class('cs_paid')
    assert (lesson['student_id'], lesson['teacher_id']) == ('S', 'T')
    assert (lesson['date'], lesson['timeslot'], lesson['duration']) == ('2030-06-01', '18:00', 60)
    assert len(db.docs('classes')) == 1

    page = client.get('/account/classes')
    assert page.status_code == 200
    assert b'Spanish conversation' in page.data
    assert b'2030-06-01' in page.data

    login('T')
    events = client.get('/account/calendar?format=json').get_json()
    assert [(e['title'], e['start'], e['end']) for e in events] == [
        ('S', '2030-06-01T18:00:00', '2030-06-01T19:00:00'),
    ]
    assert client.get('/account/calendar').status_code == 200
    assert client.get('/account/calendar/cs_paid').status_code == 200

    booked = [n for n in db.docs('notifications').values() if n['type'] == 'booking']
    assert len(booked) == 1
    assert booked[0]['target_id'] == 'T'


def test_payment_for_someone_else_is_refused(client, login, make_user, make_offer, paid_session):
    make_user('T', teaches=['es'], professional=True)
    make_user('S', learns=['es'])
    make_user('M', learns=['es'])
    offer = make_offer('T')
    paid_session['cs_other'] = {
        'id': 'cs_other', 'status': 'complete', 'payment_status': 'paid', 'customer_email': None,
        'metadata': {'offer_id': offer['id'], 'student_id': 'S', 'date': '2030-06-01', 'timeslot': '18:00'},
    }

    login('M')
    response = client.post(f'/offers/{offer["id"]}/return', data={'session_id': 'cs_other'})

    assert response.status_code == 400
    assert dao.get_class('cs_other') is None


def test_only_professionals_publish_offers(client, login, make_user):
    make_user('S', learns=['es'])
    login('S')

    response = client.get('/account/offers/new')

    assert response.status_code == 302
    assert response.headers['Location'].endswith('/account/profile')


def test_group_offer_needs_group_size(client, login, make_user):
    make_user('T', teaches=['es'], professional=True)
    login('T')

    client.post('/account/offers/new', data={
        'name': 'Group', 'language': 'es', 'level': 'beginner', 'location_type': 'online',
        'duration': '60', 'class_type': 'group', 'price': '10',
    })

    assert dao.get_offers_by_teacher('T') == []


def test_pages_require_login(client):
    response = client.get('/account/classes')

    assert response.status_code == 302
    assert '/auth/login' in response.headers['Location']


def test_public_pages_render(client, make_user, make_offer):
    make_user('T', teaches=['es'], professional=True)
    make_offer('T', name='Tapas and grammar')

    assert client.get('/health').get_json() == {'status': 'ok'}
    assert client.get('/').status_code == 200
    page = client.get('/users/T')
    assert page.status_code == 200
    assert b'Tapas and grammar' in page.data
    assert client.get('/users/nobody').status_code == 404
    assert [u['username'] for u in client.get('/search?q=es').get_json()] == ['T']
