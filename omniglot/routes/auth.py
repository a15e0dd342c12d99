import logging
from datetime import timedelta
from urllib.parse import urlparse

import requests as http_requests
from firebase_admin.exceptions import FirebaseError
from flask import (Blueprint, render_template, redirect, url_for, flash,
                   request, session, current_app)

from omniglot.decorators import SESSION_KEY, anonymous_required, auth_required
from omniglot.errors import Conflict, ValidationError
from omniglot.firebase_init import get_auth
from omniglot import firestore_dao as dao
from omniglot.forms import SignupForm, LoginForm
from omniglot.services import accounts, storage

logger = logging.getLogger(__name__)

bp = Blueprint('auth', __name__, url_prefix='/auth')

FIREBASE_SIGN_IN_URL = (
    'https://identitytoolkit.googleapis.com/v1/accounts:signInWithPassword'
)
SESSION_LIFETIME = timedelta(days=5)


def _firebase_sign_in(email, password):
    """Verify email/password via Firebase Auth REST API.

    Returns the ID token on success, or None on failure.
    """
    api_key = current_app.config.get('FIREBASE_WEB_API_KEY')
    if not api_key:
        logger.error('FIREBASE_WEB_API_KEY is not configured')
        return None

    try:
        resp = http_requests.post(
            f'{FIREBASE_SIGN_IN_URL}?key={api_key}',
            json={
                'email': email,
                'password': password,
                'returnSecureToken': True,
            },
            timeout=10,
        )
    except http_requests.RequestException:
        logger.exception('Firebase sign-in request failed')
        return None
    if resp.status_code == 200:
        return resp.json().get('idToken')
    return None


def is_safe_url(target):
    if not target:
        return False
    ref_url = urlparse(request.host_url)
    test_url = urlparse(target)
    return test_url.scheme in ('', 'http', 'https') and ref_url.netloc == test_url.netloc


def uploaded_picture(field):
    """(bytes, extension) for an uploaded picture, or None."""
    file = field.data
    if not file or not getattr(file, 'filename', ''):
        return None
    ext = storage.picture_extension(file.filename)
    data = file.read()
    if len(data) > current_app.config.get('PROFILE_PICTURE_MAX_BYTES', 10 * 1024 * 1024):
        raise ValidationError('Profile pictures must be 10MB or smaller.')
    return data, ext


@bp.route('/signup', methods=['GET', 'POST'])
@anonymous_required
def signup():
    form = SignupForm()
    if form.validate_on_submit():
        profile = {
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
            accounts.sign_up(profile, form.password.data, uploaded_picture(form.profile_picture))
        except (ValidationError, Conflict) as e:
            flash(e.message, 'danger')
            return render_template('auth/signup.html', form=form), e.status_code

        flash('Your account is ready. Please log in.', 'success')
        return redirect(url_for('auth.login'))

    return render_template('auth/signup.html', form=form)


@bp.route('/login', methods=['GET', 'POST'])
@anonymous_required
def login():
    form = LoginForm()
    if form.validate_on_submit():
        identifier = form.login.data.strip()
        user = dao.get_user_by_email(identifier) if '@' in identifier else dao.get_user_by_username(identifier)
        if not user:
            flash('User not found. Please try again.', 'danger')
            return render_template('auth/login.html', form=form), 400

        id_token = _firebase_sign_in(user['email'], form.password.data)
        if not id_token:
            flash('Password is incorrect. Please try again.', 'danger')
            return render_template('auth/login.html', form=form), 400

        try:
            session[SESSION_KEY] = get_auth().create_session_cookie(id_token, expires_in=SESSION_LIFETIME)
        except FirebaseError:
            logger.exception('Could not create a session cookie for %s', user['id'])
            flash('Something went wrong while logging you in.', 'danger')
            return render_template('auth/login.html', form=form), 502

        next_page = request.args.get('next')
        if next_page and is_safe_url(next_page):
            return redirect(next_page)
        return redirect(url_for('main.index'))

    return render_template('auth/login.html', form=form)


@bp.route('/logout')
@auth_required
def logout():
    session.pop(SESSION_KEY, None)
    flash('You have been logged out. See you soon!', 'success')
    return redirect(url_for('main.index'))
