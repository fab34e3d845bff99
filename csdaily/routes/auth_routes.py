"""
Signup, login and current-user routes
"""
from flask import Blueprint, current_app, g, jsonify

from csdaily.core.auth import create_token, token_required
from .helpers import json_body, optional_int

auth_bp = Blueprint('auth', __name__, url_prefix='/api')


def _issue(user):
    token = create_token(
        user,
        current_app.config['JWT_SECRET'],
        current_app.config['TOKEN_TTL_HOURS'],
        current_app.config['JWT_ALGORITHM'],
    )
    return jsonify({'user': {'id': user['id'], 'email': user['email']}, 'token': token})


@auth_bp.route('/auth/signup', methods=['POST'])
def signup():
    data = json_body()
    user = current_app.account_manager.signup(data.get('email'), data.get('password'))
    current_app.logger.info(f"New account {user['email']} (id={user['id']}, role={user['role']})")
    return _issue(user)


@auth_bp.route('/auth/login', methods=['POST'])
def login():
    data = json_body()
    user = current_app.account_manager.login(data.get('email'), data.get('password'))
    return _issue(user)


@auth_bp.route('/auth/me')
@token_required
def me():
    user = current_app.account_manager.get_user(g.current_user['id'])
    return jsonify({'user': user})


@auth_bp.route('/users/me/exam', methods=['PUT'])
@token_required
def set_my_exam():
    """Set (or clear with null) the user's preparation exam"""
    data = json_body()
    exam_id = optional_int(data.get('exam_id'), 'exam_id')
    user = current_app.account_manager.set_exam(g.current_user['id'], exam_id)
    return jsonify({'user': user})
