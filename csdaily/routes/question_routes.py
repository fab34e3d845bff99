"""
Question feed routes: batch generation, answers and per-user statistics
"""
from flask import Blueprint, current_app, g, jsonify

from csdaily.core.auth import token_required
from .helpers import json_body, optional_int

question_bp = Blueprint('questions', __name__, url_prefix='/api')

DEFAULT_COUNT = 2


def get_question_manager():
    return current_app.question_manager


@question_bp.route('/questions/generate', methods=['POST'])
@token_required
def generate_questions():
    """Batch of recent questions for a category ("all" for every category)"""
    data = json_body()
    questions = get_question_manager().generate_questions(
        data.get('category'),
        data.get('count', DEFAULT_COUNT),
        optional_int(data.get('exam_id'), 'exam_id'),
    )
    return jsonify({'questions': questions})


@question_bp.route('/answers', methods=['POST'])
@token_required
def save_answer():
    data = json_body()
    get_question_manager().save_answer(
        g.current_user['id'],
        data.get('question_id'),
        data.get('selected_answer'),
        data.get('is_correct'),
    )
    return jsonify({'success': True})


@question_bp.route('/answers/correct')
@token_required
def correct_answers():
    ids = get_question_manager().list_correct_answers(g.current_user['id'])
    return jsonify({'correctAnswers': ids})


@question_bp.route('/stats')
@token_required
def stats():
    return jsonify(get_question_manager().get_stats(g.current_user['id']))
