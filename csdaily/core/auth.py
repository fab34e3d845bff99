"""
Authentication: password hashing, signed tokens and route decorators
"""
import re
from datetime import datetime, timedelta, timezone
from functools import wraps

import jwt
from flask import current_app, g, request
from werkzeug.security import check_password_hash, generate_password_hash

from .errors import (
    AuthenticationError,
    DatabaseError,
    DuplicateAccountError,
    InvalidCredentialsError,
    MissingTokenError,
    NotFoundError,
    PermissionDeniedError,
    TokenExpiredError,
    ValidationError,
)

EMAIL_PATTERN = re.compile(r'^[^@\s]+@[^@\s]+\.[^@\s]+$')
MIN_PASSWORD_LENGTH = 6


def create_token(user, secret, ttl_hours=24, algorithm='HS256'):
    """Issue a signed token carrying userId, email, role and exp"""
    now = datetime.now(timezone.utc)
    payload = {
        'userId': user['id'],
        'email': user['email'],
        'role': user.get('role') or 'user',
        'iat': int(now.timestamp()),
        'exp': int((now + timedelta(hours=ttl_hours)).timestamp()),
    }
    return jwt.encode(payload, secret, algorithm=algorithm)


def decode_token(token, secret, algorithm='HS256'):
    """Verify a token and return its claims"""
    try:
        return jwt.decode(
            token,
            secret,
            algorithms=[algorithm],
            options={'require': ['exp', 'userId']},
        )
    except jwt.ExpiredSignatureError:
        raise TokenExpiredError()
    except jwt.InvalidTokenError:
        raise AuthenticationError()


def _bearer_token():
    header = request.headers.get('Authorization', '')
    parts = header.split()
    if len(parts) != 2 or parts[0].lower() != 'bearer':
        return None
    return parts[1]


def token_required(f):
    """Require a valid bearer token; claims end up in g.current_user"""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = _bearer_token()
        if not token:
            raise MissingTokenError()
        claims = decode_token(
            token,
            current_app.config['JWT_SECRET'],
            current_app.config['JWT_ALGORITHM'],
        )
        g.current_user = {
            'id': claims['userId'],
            'email': claims.get('email'),
            'role': claims.get('role'),
        }
        return f(*args, **kwargs)
    return decorated_function


def admin_required(f):
    """Require a valid token for a user whose stored role is admin"""
    @token_required
    @wraps(f)
    def decorated_function(*args, **kwargs):
        # The role claim is only a hint; the stored role decides
        rows = current_app.db_manager.execute_query(
            'SELECT role FROM users WHERE id = ?', (g.current_user['id'],)
        )
        if not rows or rows[0]['role'] != 'admin':
            raise PermissionDeniedError()
        return f(*args, **kwargs)
    return decorated_function


class AccountManager:
    """Signup, login and profile operations on the users table"""

    def __init__(self, db_manager, admin_emails=None):
        self.db = db_manager
        self.admin_emails = set(admin_emails or [])

    def validate_credentials(self, email, password):
        if not email or not password:
            raise ValidationError('Email and password are required')
        if not isinstance(email, str) or not EMAIL_PATTERN.match(email):
            raise ValidationError('Please enter a valid email address', error_code='VAL_003')
        if not isinstance(password, str) or len(password) < MIN_PASSWORD_LENGTH:
            raise ValidationError(
                f'Password must be at least {MIN_PASSWORD_LENGTH} characters',
                error_code='VAL_003'
            )

    def signup(self, email, password):
        email = (email or '').strip().lower() if isinstance(email, str) else email
        self.validate_credentials(email, password)

        existing = self.db.execute_query('SELECT id FROM users WHERE email = ?', (email,))
        if existing:
            raise DuplicateAccountError()

        role = 'admin' if email in self.admin_emails else 'user'
        try:
            user_id = self.db.execute_insert(
                'INSERT INTO users (email, password_hash, role) VALUES (?, ?, ?)',
                (email, generate_password_hash(password), role)
            )
        except DatabaseError as e:
            # Lost a race against a concurrent signup
            if self.db.is_integrity_error(e):
                raise DuplicateAccountError()
            raise
        return {'id': user_id, 'email': email, 'role': role}

    def login(self, email, password):
        if not email or not password:
            raise ValidationError('Email and password are required')
        if not isinstance(email, str) or not isinstance(password, str):
            raise ValidationError('Email and password must be strings', error_code='VAL_002')
        email = email.strip().lower()

        users = self.db.execute_query(
            'SELECT id, email, password_hash, role FROM users WHERE email = ?', (email,)
        )
        if not users or not check_password_hash(users[0]['password_hash'], password):
            raise InvalidCredentialsError()

        user = users[0]
        return {'id': user['id'], 'email': user['email'], 'role': user['role']}

    def get_user(self, user_id):
        rows = self.db.execute_query(
            'SELECT id, email, role, exam_id FROM users WHERE id = ?', (user_id,)
        )
        if not rows:
            raise AuthenticationError('User no longer exists')
        return rows[0]

    def set_exam(self, user_id, exam_id):
        if exam_id is not None:
            exams = self.db.execute_query('SELECT id FROM exams WHERE id = ?', (exam_id,))
            if not exams:
                raise NotFoundError('Exam not found')
        self.db.execute_query('UPDATE users SET exam_id = ? WHERE id = ?', (exam_id, user_id))
        return self.get_user(user_id)
