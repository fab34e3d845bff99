"""
Admin routes: exam/category management, mappings, deletion impact,
library statistics and question import
"""
from flask import Blueprint, current_app, jsonify, request

from csdaily.core.auth import admin_required
from csdaily.core.errors import InvalidFormatError
from .helpers import json_body

admin_bp = Blueprint('admin', __name__, url_prefix='/api/admin')


def get_catalog():
    return current_app.catalog_manager


# Exams

@admin_bp.route('/exams', methods=['GET'])
@admin_required
def list_exams():
    return jsonify({'exams': get_catalog().list_exams()})


@admin_bp.route('/exams', methods=['POST'])
@admin_required
def create_exam():
    data = json_body()
    exam = get_catalog().create_exam(data.get('name'), data.get('category'), data.get('description'))
    return jsonify({'id': exam['id'], 'exam': exam}), 201


@admin_bp.route('/exams/<int:exam_id>', methods=['GET'])
@admin_required
def get_exam(exam_id):
    return jsonify({'exam': get_catalog().get_exam(exam_id)})


@admin_bp.route('/exams/<int:exam_id>', methods=['PUT'])
@admin_required
def update_exam(exam_id):
    data = json_body()
    exam = get_catalog().update_exam(
        exam_id, data.get('name'), data.get('category'), data.get('description')
    )
    return jsonify({'exam': exam})


@admin_bp.route('/exams/<int:exam_id>', methods=['DELETE'])
@admin_required
def delete_exam(exam_id):
    return jsonify(get_catalog().delete_exam(exam_id))


@admin_bp.route('/exams/<int:exam_id>/deletion-impact')
@admin_required
def exam_deletion_impact(exam_id):
    return jsonify(get_catalog().get_exam_deletion_impact(exam_id))


@admin_bp.route('/exams/<int:exam_id>/categories')
@admin_required
def exam_categories(exam_id):
    return jsonify({'categories': get_catalog().get_exam_categories(exam_id)})


@admin_bp.route('/exams/<int:exam_id>/categories/<int:category_id>', methods=['POST'])
@admin_required
def add_exam_category(exam_id, category_id):
    return jsonify(get_catalog().add_exam_category(exam_id, category_id)), 201


@admin_bp.route('/exams/<int:exam_id>/categories/<int:category_id>', methods=['DELETE'])
@admin_required
def remove_exam_category(exam_id, category_id):
    return jsonify(get_catalog().remove_exam_category(exam_id, category_id))


# Categories

@admin_bp.route('/categories', methods=['GET'])
@admin_required
def list_categories():
    return jsonify({'categories': get_catalog().list_categories()})


@admin_bp.route('/categories', methods=['POST'])
@admin_required
def create_category():
    data = json_body()
    category = get_catalog().create_category(data.get('name'), data.get('description'))
    return jsonify({'id': category['id'], 'category': category}), 201


@admin_bp.route('/categories/<int:category_id>', methods=['PUT'])
@admin_required
def update_category(category_id):
    data = json_body()
    category = get_catalog().update_category(category_id, data.get('name'), data.get('description'))
    return jsonify({'category': category})


@admin_bp.route('/categories/<int:category_id>', methods=['DELETE'])
@admin_required
def delete_category(category_id):
    return jsonify(get_catalog().delete_category(category_id))


@admin_bp.route('/categories/<int:category_id>/deletion-impact')
@admin_required
def category_deletion_impact(category_id):
    return jsonify(get_catalog().get_category_deletion_impact(category_id))


# Statistics

@admin_bp.route('/question-library/stats')
@admin_required
def question_library_stats():
    return jsonify(get_catalog().get_question_library_stats())


@admin_bp.route('/stats')
@admin_required
def system_stats():
    return jsonify(get_catalog().get_system_stats())


# Import

@admin_bp.route('/questions/import', methods=['POST'])
@admin_required
def import_questions():
    """Import a JSON list of questions (body list or {"questions": [...]})"""
    data = request.get_json(silent=True)
    if isinstance(data, dict):
        data = data.get('questions')
    if not isinstance(data, list):
        raise InvalidFormatError('Expected a JSON list of questions')

    result = current_app.question_manager.save_questions(data, 'upload')
    current_app.logger.info(
        f"Question import: {result['saved_count']}/{result['total_count']} saved"
    )
    return jsonify(result)
