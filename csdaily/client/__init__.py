"""
Python client for the Civil Services Daily API and the infinite question feed
"""
from .feed import FeedController, FeedSettings, QuestionState, filter_questions
from .http import ApiClient, ApiClientError, NetworkError, OfflineError, RequestTimeoutError, RetryPolicy
from .messages import ERROR_MESSAGES, NETWORK_ERRORS, friendly_message
from .session import Session, is_token_expired, peek_unverified_claims

__all__ = [
    'ApiClient', 'ApiClientError', 'NetworkError', 'OfflineError', 'RequestTimeoutError', 'RetryPolicy',
    'FeedController', 'FeedSettings', 'QuestionState', 'filter_questions',
    'ERROR_MESSAGES', 'NETWORK_ERRORS', 'friendly_message',
    'Session', 'is_token_expired', 'peek_unverified_claims',
]
