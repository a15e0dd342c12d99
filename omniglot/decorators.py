import logging
from functools import wraps

from firebase_admin import auth as firebase_auth
from flask import flash, g, redirect, request, session, url_for

from omniglot.firebase_init import get_auth
from omniglot import firestore_dao as dao

logger = logging.getLogger(__name__)

SESSION_KEY = 'firebase_session'


def _verify_session():
    """Verify the Firebase session cookie and return the user document."""
    session_cookie = session.get(SESSION_KEY)
    if not session_cookie:
        return None

    auth = get_auth()
    try:
        decoded = auth.verify_session_cookie(session_cookie, check_revoked=True)
    except (ValueError, firebase_auth.InvalidSessionCookieError,
            firebase_auth.RevokedSessionCookieError, firebase_auth.UserDisabledError,
            firebase_auth.CertificateFetchError):
        logger.info('Dropping invalid session cookie')
        session.pop(SESSION_KEY, None)
        return None

    return dao.get_user(decoded['uid'])


class CurrentUser:
    """Proxy object providing attribute access to the current user dict."""

    def __init__(self, data=None):
        self._data = data or {}

    def __getattr__(self, name):
        if name.startswith('_'):
            raise AttributeError(name)
        return self._data.get(name)

    def __getitem__(self, key):
        return self._data[key]

    def __contains__(self, key):
        return key in self._data

    def get(self, key, default=None):
        return self._data.get(key, default)

    @property
    def is_authenticated(self):
        return bool(self._data)

    @property
    def id(self):
        return self._data.get('id', '')

    @property
    def teaches(self):
        return self._data.get('teaches') or []

    @property
    def learns(self):
        return self._data.get('learns') or []

    @property
    def is_professional(self):
        return bool(self._data.get('professional'))

    @property
    def initial(self):
        name = self._data.get('username', '')
        return name[0].upper() if name else '?'

    def to_dict(self):
        return dict(self._data)


def load_current_user():
    """Load current user into g before each request."""
    if hasattr(g, '_current_user'):
        return
    g._current_user = CurrentUser(_verify_session())


def get_current_user():
    if not hasattr(g, '_current_user'):
        load_current_user()
    return g._current_user


def auth_required(f):
    @wraps(f)
    def decorated(*args, **kwargs):
        user = get_current_user()
        if not user.is_authenticated:
            flash('Please log in first.', 'info')
            return redirect(url_for('auth.login', next=request.url))
        g.current_user = user
        return f(*args, **kwargs)
    return decorated


def anonymous_required(f):
    @wraps(f)
    def decorated(*args, **kwargs):
        if get_current_user().is_authenticated:
            return redirect(url_for('main.index'))
        return f(*args, **kwargs)
    return decorated


def professional_required(f):
    @wraps(f)
    def decorated(*args, **kwargs):
        user = get_current_user()
        if not user.is_authenticated:
            flash('Please log in first.', 'info')
            return redirect(url_for('auth.login', next=request.url))
        if not user.is_professional:
            flash('Only professional teachers can publish offers.', 'danger')
            return redirect(url_for('account.profile'))
        g.current_user = user
        return f(*args, **kwargs)
    return decorated
