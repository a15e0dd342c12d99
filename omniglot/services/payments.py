"""
Stripe embedded Checkout for offer bookings.

The chosen date and timeslot travel in the session metadata together with
the offer and student IDs, so the return handler can book the class from
the confirmed session alone.
"""

import logging

import stripe
from flask import current_app

from omniglot.errors import DependencyError

logger = logging.getLogger(__name__)


def _configure():
    key = current_app.config.get('STRIPE_SECRET_KEY')
    if not key:
        raise DependencyError('Payments are not configured.')
    stripe.api_key = key


def create_checkout_session(offer, student, date, timeslot, return_url):
    """Create an embedded checkout session. Returns its client secret."""
    _configure()
    try:
        session = stripe.checkout.Session.create(
            ui_mode='embedded',
            customer_email=student.get('email'),
            payment_method_types=['card'],
            line_items=[{
                'price_data': {
                    'currency': current_app.config.get('PAYMENT_CURRENCY', 'usd'),
                    'product_data': {'name': offer['name']},
                    'unit_amount': int(round(float(offer['price']) * 100)),
                },
                'quantity': 1,
            }],
            mode='payment',
            metadata={
                'offer_id': offer['id'],
                'student_id': student['id'],
                'date': date,
                'timeslot': timeslot,
            },
            return_url=return_url,
        )
    except stripe.StripeError as e:
        logger.error('Stripe session creation failed for offer %s: %s', offer['id'], e)
        raise DependencyError('The payment service is unavailable. Please try again.')
    return session.client_secret


def retrieve_checkout_session(session_id):
    """Fetch a session as a plain dict with the fields the app relies on."""
    _configure()
    try:
        session = stripe.checkout.Session.retrieve(session_id)
    except stripe.StripeError as e:
        logger.error('Stripe session %s could not be retrieved: %s', session_id, e)
        raise DependencyError('The payment service is unavailable. Please try again.')
    details = getattr(session, 'customer_details', None)
    metadata = getattr(session, 'metadata', None) or {}
    return {
        'id': session.id,
        'status': getattr(session, 'status', None),
        'payment_status': getattr(session, 'payment_status', None),
        'customer_email': getattr(details, 'email', None) if details else None,
        'metadata': {key: metadata[key] for key in metadata.keys()},
    }
