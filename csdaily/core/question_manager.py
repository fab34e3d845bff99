"""
Question supply
Random batches per category/exam, answer recording, per-user statistics and
bulk question import
"""
import json
import logging
import os
from datetime import date, datetime

from .errors import InvalidValueError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)

QUESTION_FORMATS = ('multiple_choice', 'statement')
DIFFICULTIES = ('easy', 'medium', 'hard')
OPTION_KEYS = ('a', 'b', 'c', 'd')
ALL_CATEGORIES = 'all'


def serialize_row(row):
    """Make a DB row JSON friendly"""
    item = dict(row)
    for key, value in item.items():
        if isinstance(value, (datetime, date)):
            item[key] = value.isoformat()
    if 'is_correct' in item and item['is_correct'] is not None:
        item['is_correct'] = bool(item['is_correct'])
    return item


class QuestionManager:
    """Question supply service"""

    def __init__(self, db_manager, fetch_multiplier=3, max_count=50):
        self.db_manager = db_manager
        self.fetch_multiplier = fetch_multiplier
        self.max_count = max_count

    def _resolve_category_ids(self, category, exam_id=None):
        """Category ids matching the request, narrowed to the exam's categories"""
        if category == ALL_CATEGORIES:
            rows = self.db_manager.execute_query('SELECT id FROM categories ORDER BY id')
        else:
            rows = self.db_manager.execute_query(
                'SELECT id FROM categories WHERE name = ?', (category,)
            )
            if not rows:
                raise NotFoundError('Category not found')
        category_ids = [row['id'] for row in rows]

        if exam_id is not None:
            exams = self.db_manager.execute_query('SELECT id FROM exams WHERE id = ?', (exam_id,))
            if not exams:
                raise NotFoundError('Exam not found')
            mapped = self.db_manager.execute_query(
                'SELECT category_id FROM exam_categories WHERE exam_id = ?', (exam_id,)
            )
            mapped_ids = {row['category_id'] for row in mapped}
            category_ids = [cid for cid in category_ids if cid in mapped_ids]

        return category_ids

    def generate_questions(self, category, count, exam_id=None):
        """Most recent ``count * multiplier`` questions of each matched category.

        The batch is returned unshuffled; clients shuffle and filter it.
        """
        if not isinstance(category, str) or not category.strip():
            raise ValidationError('category is required')
        if isinstance(count, bool) or not isinstance(count, int) or not 1 <= count <= self.max_count:
            raise InvalidValueError(f'count must be an integer between 1 and {self.max_count}')

        category_ids = self._resolve_category_ids(category.strip(), exam_id)
        limit = count * self.fetch_multiplier

        questions = []
        for category_id in category_ids:
            rows = self.db_manager.execute_query(
                'SELECT * FROM questions WHERE category_id = ? '
                'ORDER BY created_at DESC, id DESC LIMIT ?',
                (category_id, limit)
            )
            questions.extend(serialize_row(row) for row in rows)

        logger.debug(f"generate_questions category={category} exam={exam_id} -> {len(questions)}")
        return questions

    def get_question(self, question_id):
        rows = self.db_manager.execute_query('SELECT * FROM questions WHERE id = ?', (question_id,))
        if not rows:
            raise NotFoundError('Question not found')
        return serialize_row(rows[0])

    def save_answer(self, user_id, question_id, selected_answer, is_correct):
        """Append one answer event; selected_answer is None for a timeout"""
        if isinstance(question_id, bool) or not isinstance(question_id, int):
            raise ValidationError('question_id must be an integer', error_code='VAL_002')
        if not isinstance(is_correct, bool):
            raise ValidationError('is_correct must be a boolean', error_code='VAL_002')
        if selected_answer is not None and not isinstance(selected_answer, str):
            raise ValidationError('selected_answer must be a string or null', error_code='VAL_002')

        self.get_question(question_id)
        self.db_manager.execute_query(
            'INSERT INTO user_answers (user_id, question_id, selected_answer, is_correct) '
            'VALUES (?, ?, ?, ?)',
            (user_id, question_id, selected_answer, is_correct)
        )

    def list_correct_answers(self, user_id):
        """Ids of questions this user has answered correctly at least once"""
        rows = self.db_manager.execute_query(
            'SELECT DISTINCT question_id FROM user_answers '
            'WHERE user_id = ? AND is_correct = ? ORDER BY question_id',
            (user_id, True)
        )
        return [row['question_id'] for row in rows]

    def get_stats(self, user_id):
        rows = self.db_manager.execute_query('''
            SELECT
                COUNT(*) as total,
                SUM(CASE WHEN is_correct THEN 1 ELSE 0 END) as correct
            FROM user_answers
            WHERE user_id = ?
        ''', (user_id,))

        total = rows[0]['total'] if rows else 0
        correct = (rows[0]['correct'] or 0) if rows else 0
        return {
            'totalAnswered': int(total),
            'correctAnswers': int(correct),
            'wrongAnswers': int(total) - int(correct),
        }

    # Import

    def _normalize_question(self, question):
        """Validate one import item; returns a dict ready for insertion"""
        if not isinstance(question, dict):
            raise ValueError('item is not an object')

        for field in ('question_text', 'category', 'correct_answer'):
            if not question.get(field):
                raise ValueError(f'missing required field "{field}"')

        question_format = question.get('question_format', 'multiple_choice')
        if question_format not in QUESTION_FORMATS:
            raise ValueError(f'unknown question_format "{question_format}"')

        difficulty = question.get('difficulty', 'medium')
        if difficulty not in DIFFICULTIES:
            raise ValueError(f'unknown difficulty "{difficulty}"')

        options = question.get('options')
        if options is not None:
            if not isinstance(options, list) or len(options) > len(OPTION_KEYS):
                raise ValueError('options must be a list of at most 4 entries')
            option_values = dict(zip(OPTION_KEYS, options))
        else:
            option_values = {key: question.get(f'option_{key}') for key in OPTION_KEYS}

        correct_answer = str(question['correct_answer']).strip().lower()
        if not option_values.get(correct_answer):
            raise ValueError(f'correct_answer "{correct_answer}" does not name a filled option')

        points = question.get('points', 10)
        if isinstance(points, bool) or not isinstance(points, int) or points < 0:
            raise ValueError('points must be a non-negative integer')

        return {
            'category': str(question['category']).strip(),
            'question_format': question_format,
            'question_text': question['question_text'],
            'option_a': option_values.get('a'),
            'option_b': option_values.get('b'),
            'option_c': option_values.get('c'),
            'option_d': option_values.get('d'),
            'correct_answer': correct_answer,
            'explanation': question.get('explanation', ''),
            'difficulty': difficulty,
            'points': points,
        }

    def _get_or_create_category(self, name, cache):
        if name in cache:
            return cache[name]
        rows = self.db_manager.execute_query('SELECT id FROM categories WHERE name = ?', (name,))
        if rows:
            category_id = rows[0]['id']
        else:
            category_id = self.db_manager.execute_insert(
                'INSERT INTO categories (name, description) VALUES (?, ?)', (name, '')
            )
            logger.info(f"Created category {name!r} during import")
        cache[name] = category_id
        return category_id

    def refresh_question_counts(self, category_ids=None):
        """Recompute the denormalized categories.question_count column"""
        query = (
            'UPDATE categories SET question_count = '
            '(SELECT COUNT(*) FROM questions WHERE questions.category_id = categories.id)'
        )
        if category_ids is None:
            self.db_manager.execute_query(query)
            return
        for category_id in category_ids:
            self.db_manager.execute_query(query + ' WHERE id = ?', (category_id,))

    def save_questions(self, questions, source_file=''):
        """Insert a list of question dicts; invalid items are reported, not fatal"""
        saved_count = 0
        errors = []
        touched = set()
        category_cache = {}

        for i, question in enumerate(questions):
            try:
                item = self._normalize_question(question)
            except ValueError as e:
                errors.append(f"Question {i + 1}: {e}")
                continue

            category_id = self._get_or_create_category(item.pop('category'), category_cache)
            self.db_manager.execute_insert('''
                INSERT INTO questions (category_id, question_format, question_text,
                    option_a, option_b, option_c, option_d, correct_answer,
                    explanation, difficulty, points)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ''', (
                category_id, item['question_format'], item['question_text'],
                item['option_a'], item['option_b'], item['option_c'], item['option_d'],
                item['correct_answer'], item['explanation'], item['difficulty'], item['points']
            ))
            touched.add(category_id)
            saved_count += 1

        if touched:
            self.refresh_question_counts(sorted(touched))
        if errors:
            logger.warning(f"{source_file or 'import'}: {len(errors)} question(s) rejected")

        return {
            'saved_count': saved_count,
            'total_count': len(questions),
            'errors': errors,
        }

    def load_json_folder(self, json_folder):
        """Import every *.json file of a folder"""
        if not os.path.isdir(json_folder):
            return {'total_files': 0, 'total_questions': 0, 'errors': []}

        total_files = 0
        total_questions = 0
        errors = []

        for filename in sorted(os.listdir(json_folder)):
            if not filename.endswith('.json'):
                continue
            filepath = os.path.join(json_folder, filename)
            try:
                with open(filepath, 'r', encoding='utf-8') as f:
                    questions = json.load(f)
            except (OSError, json.JSONDecodeError) as e:
                errors.append(f"{filename}: {e}")
                continue
            if not isinstance(questions, list):
                errors.append(f"{filename}: expected a list of questions")
                continue

            result = self.save_questions(questions, filename)
            total_files += 1
            total_questions += result['saved_count']
            errors.extend(f"{filename}: {err}" for err in result['errors'])

        return {'total_files': total_files, 'total_questions': total_questions, 'errors': errors}
