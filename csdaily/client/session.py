"""
Client-side session state

A Session belongs to one ApiClient instance. Token claims read here are
never verified; they only drive optimistic UI (is the session still fresh,
which email to show). The server verifies every request.
"""
import logging
import time

import jwt

logger = logging.getLogger(__name__)


def peek_unverified_claims(token):
    """Decode token claims WITHOUT checking the signature.

    Returns None for anything that is not a decodable token. Never use the
    result for authorisation decisions.
    """
    if not token:
        return None
    try:
        return jwt.decode(token, options={'verify_signature': False})
    except jwt.InvalidTokenError:
        return None


def is_token_expired(token, now=None):
    claims = peek_unverified_claims(token)
    if not claims or not claims.get('exp'):
        return True
    now = time.time() if now is None else now
    return claims['exp'] < now


class Session:
    """Token holder passed to the API client"""

    def __init__(self, token=None, on_logout=None):
        self.token = token
        self.on_logout = on_logout

    def set_token(self, token):
        self.token = token

    def clear(self, reason=None):
        had_token = self.token is not None
        self.token = None
        if had_token:
            logger.info(f"Session cleared{': ' + reason if reason else ''}")
            if self.on_logout:
                self.on_logout(reason)

    @property
    def is_authenticated(self):
        return bool(self.token) and not is_token_expired(self.token)

    def user_hint(self):
        """{id, email, role} from the token, or None when absent/expired"""
        if not self.is_authenticated:
            return None
        claims = peek_unverified_claims(self.token)
        return {
            'id': claims.get('userId') or claims.get('user_id'),
            'email': claims.get('email'),
            'role': claims.get('role'),
        }
