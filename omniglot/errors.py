"""
Error taxonomy shared by services, routes and the chat gateway.

Services raise these before touching the store; routes either let them
propagate to the handlers registered here or catch them to flash a message.
"""

import logging

from flask import jsonify, render_template, request
from google.api_core.exceptions import GoogleAPIError

logger = logging.getLogger(__name__)


class OmniglotError(Exception):
    status_code = 500
    default_message = 'Something went wrong. Please try again.'

    def __init__(self, message=None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message


class ValidationError(OmniglotError):
    status_code = 400
    default_message = 'Some mandatory fields are missing. Please try again.'


class PermissionDenied(OmniglotError):
    status_code = 403
    default_message = 'You are not allowed to do that.'


class NotFound(OmniglotError):
    status_code = 404
    default_message = 'The requested resource does not exist.'


class Conflict(OmniglotError):
    status_code = 409
    default_message = 'This action conflicts with the current state.'


class DependencyError(OmniglotError):
    status_code = 502
    default_message = 'An external service failed. Please try again later.'


def _wants_json():
    if request.is_json:
        return True
    if request.headers.get('X-Requested-With') == 'XMLHttpRequest':
        return True
    best = request.accept_mimetypes.best_match(['application/json', 'text/html'])
    return best == 'application/json' and request.accept_mimetypes[best] > request.accept_mimetypes['text/html']


def _error_response(message, status_code):
    if _wants_json():
        return jsonify({'error': message}), status_code
    return render_template('error.html', message=message, status_code=status_code), status_code


def register_error_handlers(app):
    @app.errorhandler(OmniglotError)
    def handle_omniglot_error(error):
        if error.status_code >= 500:
            logger.error('%s on %s: %s', type(error).__name__, request.path, error.message)
        return _error_response(error.message, error.status_code)

    @app.errorhandler(GoogleAPIError)
    def handle_store_error(error):
        logger.exception('Document store failure on %s', request.path)
        return _error_response(OmniglotError.default_message, 500)
