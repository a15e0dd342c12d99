import logging

from flask import Blueprint, render_template, redirect, url_for, flash, request, jsonify, abort, current_app

from omniglot.decorators import auth_required, get_current_user
from omniglot import firestore_dao as dao
from omniglot.errors import ValidationError
from omniglot.firestore_models import parse_schedule
from omniglot.forms import BookingForm
from omniglot.services import booking, payments

logger = logging.getLogger(__name__)

bp = Blueprint('checkout', __name__, url_prefix='/offers/<offer_id>')


def _bookable_offer(offer_id, user):
    offer = dao.get_offer(offer_id)
    if not offer:
        abort(404)
    if offer['teacher_id'] == user.id:
        raise ValidationError('You cannot book your own offer.')
    return offer


@bp.route('/book', methods=['GET'])
@auth_required
def book(offer_id):
    user = get_current_user()
    offer = _bookable_offer(offer_id, user)
    teacher = dao.get_user(offer['teacher_id'])
    return render_template('checkout/book.html', offer=offer, teacher=teacher, form=BookingForm(),
                           stripe_public_key=current_app.config.get('STRIPE_PUBLIC_KEY'))


@bp.route('/book', methods=['POST'])
@auth_required
def create_session(offer_id):
    user = get_current_user()
    offer = _bookable_offer(offer_id, user)
    data = request.get_json(silent=True) or request.form
    date, timeslot = data.get('date'), data.get('timeslot')
    parse_schedule(date, timeslot)

    return_url = url_for('checkout.checkout_return', offer_id=offer_id, _external=True) + \
        '?session_id={CHECKOUT_SESSION_ID}'
    client_secret = payments.create_checkout_session(offer, user.to_dict(), date, timeslot, return_url)
    return jsonify({'clientSecret': client_secret})


@bp.route('/session-status')
@auth_required
def session_status(offer_id):
    session_id = request.args.get('session_id')
    if not session_id:
        raise ValidationError('Missing payment session.')
    details = payments.retrieve_checkout_session(session_id)
    return jsonify({'status': details['status'], 'customer_email': details['customer_email']})


@bp.route('/return', methods=['GET'])
@auth_required
def checkout_return(offer_id):
    return render_template('checkout/return.html', offer_id=offer_id,
                           session_id=request.args.get('session_id', ''))


@bp.route('/return', methods=['POST'])
@auth_required
def confirm_booking(offer_id):
    user = get_current_user()
    data = request.get_json(silent=True) or request.form
    session_id = data.get('session_id')
    if not session_id:
        raise ValidationError('Missing payment session.')

    details = payments.retrieve_checkout_session(session_id)
    metadata = details['metadata']
    if details['payment_status'] != 'paid':
        flash('The payment has not been completed.', 'danger')
        return redirect(url_for('checkout.book', offer_id=offer_id))
    if metadata.get('student_id') != user.id or metadata.get('offer_id') != offer_id:
        logger.warning('Session %s does not belong to %s for offer %s', session_id, user.id, offer_id)
        raise ValidationError('This payment does not match the booking.')

    booking.create_class_from_payment(offer_id, user.id, metadata.get('date'),
                                      metadata.get('timeslot'), session_id)
    flash('Your class is booked!', 'success')
    return redirect(url_for('account.classes'))
