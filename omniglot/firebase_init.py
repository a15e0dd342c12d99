import logging
import os

import firebase_admin
from firebase_admin import auth, credentials, firestore, storage

logger = logging.getLogger(__name__)

_app = None
_db = None
_bucket = None


def _config_value(app_config, key, default=''):
    value = app_config.get(key) if app_config else None
    return value or os.environ.get(key, default)


def init_firebase(app_config=None):
    """Initialise the Firebase Admin app once per process.

    Credentials come from GOOGLE_APPLICATION_CREDENTIALS when that file
    exists, otherwise from the ambient application default credentials.
    """
    global _app, _db, _bucket

    if _app is not None:
        return

    cred_path = os.environ.get('GOOGLE_APPLICATION_CREDENTIALS', './firebase-service-account.json')
    if os.path.exists(cred_path):
        cred = credentials.Certificate(cred_path)
    else:
        cred = credentials.ApplicationDefault()

    bucket_name = _config_value(app_config, 'FIREBASE_STORAGE_BUCKET')
    options = {'storageBucket': bucket_name} if bucket_name else None

    _app = firebase_admin.initialize_app(cred, options=options)
    _db = firestore.client()
    if bucket_name:
        _bucket = storage.bucket()
    logger.info('Firebase initialised (storage bucket: %s)', bucket_name or 'none')


def get_db():
    if _db is None:
        init_firebase()
    return _db


def get_bucket():
    if _bucket is None:
        init_firebase()
    return _bucket


def get_auth():
    return auth
