import logging
import uuid
from datetime import timedelta

from google.api_core.exceptions import GoogleAPIError

from omniglot.errors import DependencyError, ValidationError
from omniglot.firebase_init import get_bucket

logger = logging.getLogger(__name__)

PICTURE_EXTENSIONS = {'png', 'jpg', 'jpeg', 'gif', 'webp'}


def upload_file(file_data, destination_path, content_type=None):
    """Upload file bytes to Firebase Storage.

    Args:
        file_data: bytes or file-like object
        destination_path: path in the bucket (e.g. 'users/uid/pfp-1a2b.png')
        content_type: MIME type

    Returns:
        The storage path (same as destination_path)
    """
    bucket = get_bucket()
    if bucket is None:
        raise DependencyError('File storage is not configured.')
    blob = bucket.blob(destination_path)
    try:
        if isinstance(file_data, bytes):
            blob.upload_from_string(file_data, content_type=content_type)
        else:
            blob.upload_from_file(file_data, content_type=content_type)
    except GoogleAPIError:
        logger.exception('Upload of %s failed', destination_path)
        raise DependencyError('Could not store the uploaded file.')
    return destination_path


def delete_file(storage_path):
    """Delete a file from Firebase Storage. Missing files are ignored."""
    bucket = get_bucket()
    if bucket is None or not storage_path:
        return
    blob = bucket.blob(storage_path)
    try:
        if blob.exists():
            blob.delete()
    except GoogleAPIError:
        logger.exception('Could not delete %s', storage_path)


def get_signed_url(storage_path, expiration_minutes=7 * 24 * 60):
    """Signed URL for temporary read access, or None if the file is gone."""
    bucket = get_bucket()
    if bucket is None:
        return None
    blob = bucket.blob(storage_path)
    if not blob.exists():
        return None
    return blob.generate_signed_url(
        version='v4',
        expiration=timedelta(minutes=expiration_minutes),
        method='GET'
    )


def picture_extension(filename):
    ext = filename.rsplit('.', 1)[1].lower() if '.' in filename else ''
    if ext not in PICTURE_EXTENSIONS:
        raise ValidationError('Profile pictures must be PNG, JPG, GIF or WEBP images.')
    return ext


def upload_profile_picture(uid, file_data, ext):
    """Store a new profile picture under a unique name.

    Returns:
        (storage path, signed URL)
    """
    path = f'users/{uid}/pfp-{uuid.uuid4().hex[:12]}.{ext}'
    content_type = 'image/jpeg' if ext in ('jpg', 'jpeg') else f'image/{ext}'
    upload_file(file_data, path, content_type)
    return path, get_signed_url(path)
