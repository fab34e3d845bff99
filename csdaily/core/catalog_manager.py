"""
Exam / category catalogue
CRUD, exam-category mappings, deletion impact reports and library statistics.
Deleting an exam or a category only removes association rows; questions and
users are never deleted.
"""
import logging

from .errors import AlreadyExistsError, DatabaseError, NotFoundError, ValidationError
from .question_manager import serialize_row

logger = logging.getLogger(__name__)

MIN_NAME_LENGTH = 2


class CatalogManager:
    """Exams, categories and their many-to-many mapping"""

    def __init__(self, db_manager):
        self.db = db_manager

    def _clean_name(self, name, label):
        if not isinstance(name, str) or len(name.strip()) < MIN_NAME_LENGTH:
            raise ValidationError(f'{label} name must be at least {MIN_NAME_LENGTH} characters')
        return name.strip()

    def _insert_unique(self, query, params, label):
        try:
            return self.db.execute_insert(query, params)
        except DatabaseError as e:
            if self.db.is_integrity_error(e):
                raise AlreadyExistsError(f'{label} already exists')
            raise

    # Exams

    def list_exams(self):
        rows = self.db.execute_query('SELECT * FROM exams ORDER BY name')
        return [serialize_row(row) for row in rows]

    def get_exam(self, exam_id):
        rows = self.db.execute_query('SELECT * FROM exams WHERE id = ?', (exam_id,))
        if not rows:
            raise NotFoundError('Exam not found')
        return serialize_row(rows[0])

    def create_exam(self, name, category=None, description=None):
        name = self._clean_name(name, 'Exam')
        exam_id = self._insert_unique(
            'INSERT INTO exams (name, category, description) VALUES (?, ?, ?)',
            (name, category or '', description or ''),
            'Exam'
        )
        logger.info(f"Created exam {name!r} (id={exam_id})")
        return self.get_exam(exam_id)

    def update_exam(self, exam_id, name=None, category=None, description=None):
        exam = self.get_exam(exam_id)
        name = self._clean_name(name, 'Exam') if name is not None else exam['name']
        try:
            self.db.execute_query(
                'UPDATE exams SET name = ?, category = ?, description = ? WHERE id = ?',
                (
                    name,
                    category if category is not None else exam['category'],
                    description if description is not None else exam['description'],
                    exam_id,
                )
            )
        except DatabaseError as e:
            if self.db.is_integrity_error(e):
                raise AlreadyExistsError('Exam already exists')
            raise
        return self.get_exam(exam_id)

    def delete_exam(self, exam_id):
        exam = self.get_exam(exam_id)
        counts = self.db.execute_transaction([
            ('DELETE FROM exam_categories WHERE exam_id = ?', (exam_id,)),
            ('UPDATE users SET exam_id = NULL WHERE exam_id = ?', (exam_id,)),
            ('DELETE FROM exams WHERE id = ?', (exam_id,)),
        ])
        logger.info(
            f"Deleted exam {exam['name']!r}: {counts[0]} mapping(s) removed, "
            f"{counts[1]} user(s) unassigned"
        )
        return {
            'deleted': True,
            'category_mappings_removed': counts[0],
            'users_unassigned': counts[1],
        }

    def get_exam_deletion_impact(self, exam_id):
        exam = self.get_exam(exam_id)

        mappings = self.db.execute_query(
            'SELECT COUNT(*) as count FROM exam_categories WHERE exam_id = ?', (exam_id,)
        )[0]['count']
        users = self.db.execute_query(
            'SELECT COUNT(*) as count FROM users WHERE exam_id = ?', (exam_id,)
        )[0]['count']
        # Questions reachable through this exam and through no other exam
        questions = self.db.execute_query('''
            SELECT COUNT(*) as count FROM questions q
            WHERE q.category_id IN (SELECT category_id FROM exam_categories WHERE exam_id = ?)
              AND q.category_id NOT IN (SELECT category_id FROM exam_categories WHERE exam_id != ?)
        ''', (exam_id, exam_id))[0]['count']
        orphaned = self.db.execute_query('''
            SELECT c.id, c.name FROM categories c
            JOIN exam_categories ec ON ec.category_id = c.id AND ec.exam_id = ?
            WHERE NOT EXISTS (
                SELECT 1 FROM exam_categories other
                WHERE other.category_id = c.id AND other.exam_id != ?
            )
            ORDER BY c.name
        ''', (exam_id, exam_id))

        return {
            'exam_id': exam['id'],
            'exam_name': exam['name'],
            'category_mappings_to_remove': mappings,
            'users_assigned': users,
            'questions_no_longer_accessible': questions,
            'orphaned_categories_count': len(orphaned),
            'orphaned_categories': orphaned,
        }

    # Categories

    def list_categories(self, exam_id=None):
        """Categories with live question counts, optionally only those of one exam"""
        if exam_id is not None:
            self.get_exam(exam_id)
            rows = self.db.execute_query('''
                SELECT c.id, c.name, c.description,
                       (SELECT COUNT(*) FROM questions q WHERE q.category_id = c.id) as question_count
                FROM categories c
                JOIN exam_categories ec ON ec.category_id = c.id
                WHERE ec.exam_id = ?
                ORDER BY c.name
            ''', (exam_id,))
        else:
            rows = self.db.execute_query('''
                SELECT c.id, c.name, c.description,
                       (SELECT COUNT(*) FROM questions q WHERE q.category_id = c.id) as question_count
                FROM categories c
                ORDER BY c.name
            ''')
        return [serialize_row(row) for row in rows]

    def get_category(self, category_id):
        rows = self.db.execute_query('SELECT * FROM categories WHERE id = ?', (category_id,))
        if not rows:
            raise NotFoundError('Category not found')
        return serialize_row(rows[0])

    def create_category(self, name, description=None):
        name = self._clean_name(name, 'Category')
        category_id = self._insert_unique(
            'INSERT INTO categories (name, description) VALUES (?, ?)',
            (name, description or ''),
            'Category'
        )
        logger.info(f"Created category {name!r} (id={category_id})")
        return self.get_category(category_id)

    def update_category(self, category_id, name=None, description=None):
        category = self.get_category(category_id)
        name = self._clean_name(name, 'Category') if name is not None else category['name']
        try:
            self.db.execute_query(
                'UPDATE categories SET name = ?, description = ? WHERE id = ?',
                (
                    name,
                    description if description is not None else category['description'],
                    category_id,
                )
            )
        except DatabaseError as e:
            if self.db.is_integrity_error(e):
                raise AlreadyExistsError('Category already exists')
            raise
        return self.get_category(category_id)

    def delete_category(self, category_id):
        category = self.get_category(category_id)
        counts = self.db.execute_transaction([
            ('DELETE FROM exam_categories WHERE category_id = ?', (category_id,)),
            ('DELETE FROM categories WHERE id = ?', (category_id,)),
        ])
        logger.info(f"Deleted category {category['name']!r}: {counts[0]} mapping(s) removed")
        return {'deleted': True, 'exam_mappings_removed': counts[0]}

    def get_category_deletion_impact(self, category_id):
        category = self.get_category(category_id)
        exams = self.db.execute_query('''
            SELECT e.id, e.name FROM exams e
            JOIN exam_categories ec ON ec.exam_id = e.id
            WHERE ec.category_id = ?
            ORDER BY e.name
        ''', (category_id,))
        questions = self.db.execute_query(
            'SELECT COUNT(*) as count FROM questions WHERE category_id = ?', (category_id,)
        )[0]['count']
        return {
            'category_id': category['id'],
            'category_name': category['name'],
            'exam_mappings_to_remove': len(exams),
            'exams_using_category': exams,
            'questions_count': questions,
        }

    # Mappings

    def get_exam_categories(self, exam_id):
        return self.list_categories(exam_id=exam_id)

    def add_exam_category(self, exam_id, category_id):
        self.get_exam(exam_id)
        self.get_category(category_id)
        try:
            self.db.execute_query(
                'INSERT INTO exam_categories (exam_id, category_id) VALUES (?, ?)',
                (exam_id, category_id)
            )
        except DatabaseError as e:
            if self.db.is_integrity_error(e):
                raise AlreadyExistsError('Category is already mapped to this exam')
            raise
        return {'exam_id': exam_id, 'category_id': category_id}

    def remove_exam_category(self, exam_id, category_id):
        removed = self.db.execute_query(
            'DELETE FROM exam_categories WHERE exam_id = ? AND category_id = ?',
            (exam_id, category_id)
        )
        if not removed:
            raise NotFoundError('Mapping not found')
        return {'exam_id': exam_id, 'category_id': category_id}

    # Statistics

    def get_orphaned_categories(self):
        return self.db.execute_query('''
            SELECT c.id, c.name,
                   (SELECT COUNT(*) FROM questions q WHERE q.category_id = c.id) as question_count
            FROM categories c
            WHERE NOT EXISTS (SELECT 1 FROM exam_categories ec WHERE ec.category_id = c.id)
            ORDER BY c.name
        ''')

    def get_question_library_stats(self):
        total = self.db.execute_query('SELECT COUNT(*) as count FROM questions')[0]['count']
        by_category = self.db.execute_query('''
            SELECT c.id as category_id, c.name as category_name,
                   (SELECT COUNT(*) FROM questions q WHERE q.category_id = c.id) as question_count
            FROM categories c
            ORDER BY question_count DESC, c.name
        ''')
        by_exam = self.db.execute_query('''
            SELECT e.id as exam_id, e.name as exam_name,
                   (SELECT COUNT(*) FROM questions q
                    WHERE q.category_id IN (
                        SELECT category_id FROM exam_categories WHERE exam_id = e.id
                    )) as question_count
            FROM exams e
            ORDER BY question_count DESC, e.name
        ''')
        orphaned = self.get_orphaned_categories()
        return {
            'total_questions': total,
            'questions_by_category': by_category,
            'questions_by_exam': by_exam,
            'orphaned_categories': orphaned,
            'orphaned_categories_count': len(orphaned),
        }

    def get_system_stats(self):
        def count(query):
            return self.db.execute_query(query)[0]['count']

        if self.db.db_type == 'postgresql':
            today_query = (
                'SELECT COUNT(*) as count FROM user_answers '
                'WHERE answered_at::date = CURRENT_DATE'
            )
        else:
            today_query = (
                "SELECT COUNT(*) as count FROM user_answers "
                "WHERE DATE(answered_at) = DATE('now')"
            )

        return {
            'users_count': count('SELECT COUNT(*) as count FROM users'),
            'questions_count': count('SELECT COUNT(*) as count FROM questions'),
            'answers_count': count('SELECT COUNT(*) as count FROM user_answers'),
            'answers_today': count(today_query),
            'categories_count': count('SELECT COUNT(*) as count FROM categories'),
            'exams_count': count('SELECT COUNT(*) as count FROM exams'),
        }
