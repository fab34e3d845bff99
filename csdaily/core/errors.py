"""
API error taxonomy and Flask error handlers

Every error returned to clients carries an ``error_code`` whose prefix tells
the client how to react: AUTH_* (session), VAL_* (input), RES_* (resource),
DB_* (storage) and SRV_* (server).
"""
import logging

from flask import jsonify
from werkzeug.exceptions import HTTPException

logger = logging.getLogger(__name__)


class ApiError(Exception):
    """Base class for errors that are reported to the client"""

    status_code = 500
    error_code = 'SRV_001'
    default_message = 'Internal server error'

    def __init__(self, message=None, error_code=None, details=None):
        self.message = message or self.default_message
        super().__init__(self.message)
        self.error_code = error_code or self.error_code
        self.details = details

    def to_dict(self):
        body = {'error': self.message, 'error_code': self.error_code}
        if self.details is not None:
            body['details'] = self.details
        return body


# Authentication

class AuthenticationError(ApiError):
    status_code = 401
    error_code = 'AUTH_002'
    default_message = 'Invalid token'


class MissingTokenError(AuthenticationError):
    error_code = 'AUTH_001'
    default_message = 'No token provided'


class TokenExpiredError(AuthenticationError):
    error_code = 'AUTH_003'
    default_message = 'Token expired'


class InvalidCredentialsError(AuthenticationError):
    error_code = 'AUTH_004'
    default_message = 'Invalid credentials'


class DuplicateAccountError(ApiError):
    status_code = 400
    error_code = 'AUTH_005'
    default_message = 'An account with this email already exists'


class PermissionDeniedError(ApiError):
    status_code = 403
    error_code = 'AUTH_002'
    default_message = 'Admin access required'


# Validation

class ValidationError(ApiError):
    status_code = 400
    error_code = 'VAL_001'
    default_message = 'Invalid input'


class InvalidFormatError(ValidationError):
    error_code = 'VAL_002'
    default_message = 'Request body must be a JSON object'


class InvalidValueError(ValidationError):
    error_code = 'VAL_003'
    default_message = 'Invalid value'


# Resources

class NotFoundError(ApiError):
    status_code = 404
    error_code = 'RES_001'
    default_message = 'Not found'


class AlreadyExistsError(ApiError):
    status_code = 409
    error_code = 'RES_002'
    default_message = 'Already exists'


# Storage

class StorageError(ApiError):
    status_code = 503
    error_code = 'DB_001'
    default_message = 'Database unavailable'


class DatabaseError(ApiError):
    status_code = 500
    error_code = 'DB_002'
    default_message = 'Database error'


class StorageInitializingError(StorageError):
    error_code = 'DB_003'
    default_message = 'Database is initializing'


_HTTP_ERROR_CODES = {
    400: 'VAL_001',
    401: 'AUTH_001',
    403: 'AUTH_002',
    404: 'RES_001',
    405: 'VAL_001',
    409: 'RES_002',
    415: 'VAL_002',
    503: 'SRV_003',
    504: 'SRV_002',
}


def register_error_handlers(app):
    """Register JSON error handlers on the Flask app"""

    @app.errorhandler(ApiError)
    def handle_api_error(error):
        if error.status_code >= 500:
            app.logger.error(f"{error.error_code}: {error.message}")
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(HTTPException)
    def handle_http_exception(error):
        body = {
            'error': error.description or error.name,
            'error_code': _HTTP_ERROR_CODES.get(error.code, 'SRV_001'),
        }
        return jsonify(body), error.code

    @app.errorhandler(Exception)
    def handle_unexpected_error(error):
        app.logger.exception(f"Unhandled exception: {error}")
        message = str(error) if app.config.get('DEBUG') else 'Internal server error'
        return jsonify({'error': message, 'error_code': 'SRV_001'}), 500
