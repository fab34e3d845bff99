"""
User-friendly error messages keyed by server error_code
"""
from .http import ApiClientError, NetworkError, OfflineError, RequestTimeoutError

ERROR_MESSAGES = {
    # Authentication errors
    'AUTH_001': 'Please log in to continue.',
    'AUTH_002': 'Your session is invalid. Please log in again.',
    'AUTH_003': 'Your session has expired. Please log in again.',
    'AUTH_004': 'Invalid email or password. Please try again.',
    'AUTH_005': 'An account with this email already exists.',

    # Validation errors
    'VAL_001': 'Please check your input and try again.',
    'VAL_002': 'Invalid data format. Please check your input.',
    'VAL_003': 'Invalid value provided. Please check your input.',

    # Resource errors
    'RES_001': 'The requested item was not found.',
    'RES_002': 'This item already exists.',

    # Database errors
    'DB_001': 'Connection error. Please check your internet connection and try again.',
    'DB_002': 'A database error occurred. Please try again later.',
    'DB_003': 'The system is being set up. Please try again in a moment.',

    # Server errors
    'SRV_001': 'Something went wrong. Please try again later.',
    'SRV_002': 'Request timed out. Please try again.',
    'SRV_003': 'Service is temporarily unavailable. Please try again later.',
}

NETWORK_ERRORS = {
    'TIMEOUT': 'Request timed out. Please check your internet connection and try again.',
    'OFFLINE': 'You appear to be offline. Please check your internet connection.',
    'FAILED': 'Network request failed. Please check your internet connection and try again.',
    'UNKNOWN': 'An unexpected error occurred. Please try again.',
}


def friendly_message(error):
    """Message to show for an error, a server error body or a plain string"""
    if isinstance(error, str):
        return error or NETWORK_ERRORS['UNKNOWN']

    if isinstance(error, RequestTimeoutError):
        return NETWORK_ERRORS['TIMEOUT']
    if isinstance(error, OfflineError):
        return NETWORK_ERRORS['OFFLINE']
    if isinstance(error, NetworkError):
        return NETWORK_ERRORS['FAILED']

    if isinstance(error, ApiClientError):
        if error.error_code in ERROR_MESSAGES:
            return ERROR_MESSAGES[error.error_code]
        return error.message or NETWORK_ERRORS['UNKNOWN']

    if isinstance(error, dict):
        code = error.get('error_code')
        if code in ERROR_MESSAGES:
            return ERROR_MESSAGES[code]
        return error.get('error') or NETWORK_ERRORS['UNKNOWN']

    return str(error) or NETWORK_ERRORS['UNKNOWN']
