import logging

from flask import Blueprint, render_template, redirect, url_for, flash, request, jsonify, abort, session

from omniglot.decorators import SESSION_KEY, auth_required, professional_required, get_current_user
from omniglot import firestore_dao as dao
from omniglot.errors import Conflict, PermissionDenied, ValidationError
from omniglot.firestore_models import Offer
from omniglot.forms import ProfileForm, OfferForm, RateForm, RescheduleForm
from omniglot.routes.auth import uploaded_picture
from omniglot.services import accounts, booking, chat as chat_service, matching

logger = logging.getLogger(__name__)

bp = Blueprint('account', __name__, url_prefix='/account')


# ---------------------------------------------------------------------------
# Profile
# ---------------------------------------------------------------------------

@bp.route('/profile')
@auth_required
def profile():
    user = get_current_user()
    reviews = dao.get_reviews_by_subject(user.id) if user.is_professional else []
    average, count = matching.rating_summary(reviews)
    return render_template('account/profile.html', average_rating=average, review_count=count)


@bp.route('/profile/edit', methods=['GET', 'POST'])
@auth_required
def edit_profile():
    user = get_current_user()
    form = ProfileForm(data=user.to_dict())
    if form.validate_on_submit():
        changes = {
            'username': form.username.data.strip(),
            'email': form.email.data,
            'gender': form.gender.data or None,
            'birthdate': form.birthdate.data,
            'country': form.country.data.strip(),
            'teaches': form.teaches.data,
            'learns': form.learns.data,
            'professional': form.professional.data,
            'private': form.private.data,
        }
        try:
            accounts.update_profile(user.id, changes, uploaded_picture(form.profile_picture))
        except (ValidationError, Conflict) as e:
            flash(e.message, 'danger')
            return render_template('account/edit_profile.html', form=form), e.status_code
        flash('Your profile has been updated.', 'success')
        return redirect(url_for('account.profile'))

    return render_template('account/edit_profile.html', form=form)


@bp.route('/profile/delete', methods=['POST'])
@auth_required
def delete_profile():
    user = get_current_user()
    accounts.delete_account(user.id)
    session.pop(SESSION_KEY, None)
    flash('Your account has been deleted.', 'info')
    return redirect(url_for('main.index'))


# ---------------------------------------------------------------------------
# Offers
# ---------------------------------------------------------------------------

def _owned_offer(offer_id, user):
    offer = dao.get_offer(offer_id)
    if not offer:
        abort(404)
    if offer['teacher_id'] != user.id:
        raise PermissionDenied('This offer belongs to another teacher.')
    return offer


def _offer_from_form(form, teacher_id, offer_id=None):
    offer = Offer(
        id=offer_id,
        teacher_id=teacher_id,
        name=form.name.data.strip(),
        language=form.language.data,
        level=form.level.data,
        location_type=form.location_type.data,
        location=(form.location.data or '').strip() or None,
        duration=form.duration.data,
        class_type=form.class_type.data,
        max_group_size=form.max_group_size.data if form.class_type.data == 'group' else None,
        price=float(form.price.data),
    )
    offer.validate()
    return offer


@bp.route('/offers')
@professional_required
def offers():
    user = get_current_user()
    return render_template('account/offers.html', offers=dao.get_offers_by_teacher(user.id))


@bp.route('/offers/new', methods=['GET', 'POST'])
@professional_required
def new_offer():
    user = get_current_user()
    form = OfferForm()
    if form.validate_on_submit():
        offer = _offer_from_form(form, user.id)
        data = offer.to_dict()
        offer_id = dao.create_offer(data)
        dao.add_user_offer(user.id, offer_id)
        logger.info('Offer %s published by %s', offer_id, user.id)
        flash('Your offer is live.', 'success')
        return redirect(url_for('account.offers'))
    return render_template('account/offer_form.html', form=form, offer=None)


@bp.route('/offers/<offer_id>/edit', methods=['GET', 'POST'])
@professional_required
def edit_offer(offer_id):
    user = get_current_user()
    offer = _owned_offer(offer_id, user)
    form = OfferForm(data=offer)
    if form.validate_on_submit():
        updated = _offer_from_form(form, user.id, offer_id).to_dict()
        updated.pop('created_at', None)
        dao.update_offer(offer_id, updated)
        flash('Offer updated.', 'success')
        return redirect(url_for('account.offers'))
    return render_template('account/offer_form.html', form=form, offer=offer)


@bp.route('/offers/<offer_id>/delete', methods=['POST'])
@professional_required
def delete_offer(offer_id):
    user = get_current_user()
    _owned_offer(offer_id, user)
    dao.delete_offer(offer_id)
    dao.remove_user_offer(user.id, offer_id)
    flash('Offer deleted.', 'success')
    return redirect(url_for('account.offers'))


# ---------------------------------------------------------------------------
# Classes
# ---------------------------------------------------------------------------

@bp.route('/classes')
@auth_required
def classes():
    user = get_current_user()
    return render_template('account/classes.html',
                           lessons=booking.classes_for_student(user.id),
                           reschedule_form=RescheduleForm())


@bp.route('/classes/<class_id>/rate', methods=['GET', 'POST'])
@auth_required
def rate_class(class_id):
    user = get_current_user()
    lesson = booking.class_detail(class_id, user.id)
    form = RateForm()
    if form.validate_on_submit():
        try:
            booking.rate_class(class_id, form.rating.data, form.text.data, user.id)
        except (ValidationError, Conflict) as e:
            flash(e.message, 'danger')
            return redirect(url_for('account.classes'))
        flash('Thanks for your review!', 'success')
        return redirect(url_for('account.classes'))
    return render_template('account/rate.html', form=form, detail=lesson)


@bp.route('/classes/<class_id>/cancel', methods=['POST'])
@auth_required
def cancel_class(class_id):
    user = get_current_user()
    lesson = booking.cancel_class(class_id, user.id)
    flash('The class has been cancelled.', 'info')
    if lesson.teacher_id == user.id:
        return redirect(url_for('account.calendar'))
    return redirect(url_for('account.classes'))


def _back_to(lesson_id, user_id):
    lesson = booking.load_class(lesson_id)
    if lesson.teacher_id == user_id:
        return redirect(url_for('account.calendar_event', class_id=lesson_id))
    return redirect(url_for('account.classes'))


@bp.route('/classes/<class_id>/reschedule', methods=['POST'])
@bp.route('/calendar/<class_id>/reschedule', methods=['POST'])
@auth_required
def reschedule_class(class_id):
    user = get_current_user()
    form = RescheduleForm()
    if not form.validate_on_submit():
        for errors in form.errors.values():
            for error in errors:
                flash(error, 'danger')
        return _back_to(class_id, user.id)
    try:
        booking.propose_reschedule(class_id, form.new_date.data, form.new_timeslot.data, user.id)
    except (ValidationError, Conflict) as e:
        flash(e.message, 'danger')
        return _back_to(class_id, user.id)
    flash('Your new time has been proposed.', 'success')
    return _back_to(class_id, user.id)


@bp.route('/classes/<class_id>/reschedule/<decision>', methods=['POST'])
@auth_required
def answer_reschedule(class_id, decision):
    user = get_current_user()
    try:
        lesson = booking.resolve_reschedule(class_id, decision, user.id)
    except (ValidationError, Conflict) as e:
        flash(e.message, 'danger')
        return _back_to(class_id, user.id)
    if lesson.reschedule.status.value == 'accepted':
        flash(f'The class now takes place on {lesson.date} at {lesson.timeslot}.', 'success')
    else:
        flash('You declined the new time.', 'info')
    return _back_to(class_id, user.id)


# ---------------------------------------------------------------------------
# Calendar
# ---------------------------------------------------------------------------

@bp.route('/calendar')
@auth_required
def calendar():
    user = get_current_user()
    events = booking.calendar_events(user.id)
    if request.args.get('format') == 'json':
        return jsonify(events)
    return render_template('account/calendar.html', events=events)


@bp.route('/calendar/<class_id>')
@auth_required
def calendar_event(class_id):
    user = get_current_user()
    detail = booking.class_detail(class_id, user.id)
    return render_template('account/class_detail.html', detail=detail, reschedule_form=RescheduleForm())


# ---------------------------------------------------------------------------
# Reviews
# ---------------------------------------------------------------------------

@bp.route('/reviews')
@auth_required
def reviews():
    user = get_current_user()
    received = dao.get_reviews_by_subject(user.id)
    authors = dao.get_users_by_ids([r.get('author_id') for r in received])
    for review in received:
        review['author'] = authors.get(review.get('author_id'))
    average, count = matching.rating_summary(received)
    return render_template('account/reviews.html', reviews=received,
                           average_rating=average, review_count=count)


# ---------------------------------------------------------------------------
# Inbox
# ---------------------------------------------------------------------------

@bp.route('/inbox', methods=['GET', 'POST'])
@auth_required
def inbox():
    user = get_current_user()
    if request.method == 'POST':
        target_user_id = request.form.get('target_user_id')
        chat = chat_service.find_or_create_chat(user.id, target_user_id)
        return redirect(url_for('account.chat', chat_id=chat.id))
    return render_template('account/inbox.html',
                           chat_token=chat_service.issue_chat_token(user.id),
                           active_chat_id=None)


@bp.route('/inbox/<chat_id>')
@auth_required
def chat(chat_id):
    user = get_current_user()
    conversation = chat_service.load_chat(chat_id)
    if user.id not in conversation.participant_ids:
        raise PermissionDenied('You are not part of this chat.')
    return render_template('account/inbox.html',
                           chat_token=chat_service.issue_chat_token(user.id),
                           active_chat_id=conversation.id)


@bp.route('/inbox/<chat_id>/delete', methods=['POST'])
@auth_required
def delete_chat_messages(chat_id):
    user = get_current_user()
    count = chat_service.delete_own_messages(chat_id, user.id)
    flash(f'Deleted {count} of your messages.', 'info')
    return redirect(url_for('account.inbox'))
