"""
Public catalogue routes: exams and categories
"""
from flask import Blueprint, current_app, jsonify, request

from csdaily.core.auth import token_required
from .helpers import optional_int

catalog_bp = Blueprint('catalog', __name__, url_prefix='/api')


@catalog_bp.route('/categories')
@token_required
def list_categories():
    exam_id = optional_int(request.args.get('exam_id'), 'exam_id')
    categories = current_app.catalog_manager.list_categories(exam_id=exam_id)
    return jsonify({'categories': categories})


@catalog_bp.route('/exams')
@token_required
def list_exams():
    return jsonify({'exams': current_app.catalog_manager.list_exams()})
