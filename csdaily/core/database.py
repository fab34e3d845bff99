"""
Database manager (PostgreSQL/SQLite)
Connection handling, query execution and schema creation
"""
import logging
import sqlite3

import psycopg2
import psycopg2.errors
import psycopg2.extras

from .errors import DatabaseError, StorageError, StorageInitializingError

logger = logging.getLogger(__name__)


class DatabaseManager:
    """Thin wrapper around sqlite3 / psycopg2 connections"""

    def __init__(self, config):
        self.db_type = config['DATABASE_TYPE']
        self.config = config

    def get_connection(self):
        try:
            if self.db_type == 'postgresql':
                conn = psycopg2.connect(
                    host=self.config['DB_HOST'],
                    database=self.config['DB_NAME'],
                    user=self.config['DB_USER'],
                    password=self.config['DB_PASSWORD'],
                    port=self.config['DB_PORT']
                )
                conn.autocommit = False
                return conn
            db_path = self.config.get('DATABASE', 'csdaily.db')
            conn = sqlite3.connect(db_path)
            conn.row_factory = sqlite3.Row
            return conn
        except (sqlite3.OperationalError, psycopg2.OperationalError) as e:
            logger.error(f"Database connection error: {e}")
            raise StorageError() from e

    def _prepare(self, query):
        # Queries are written with sqlite placeholders
        if self.db_type == 'postgresql':
            return query.replace('?', '%s')
        return query

    def _cursor(self, conn):
        if self.db_type == 'postgresql':
            return conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor)
        return conn.cursor()

    def execute_query(self, query, params=None):
        """Run a single statement.

        SELECT/WITH statements return a list of dicts, anything else returns
        the affected row count after committing.
        """
        conn = self.get_connection()
        try:
            cur = self._cursor(conn)
            cur.execute(self._prepare(query), params or ())
            if query.strip().upper().startswith(('SELECT', 'WITH', 'PRAGMA')):
                result = [dict(row) for row in cur.fetchall()]
            else:
                result = cur.rowcount
                conn.commit()
            cur.close()
            return result
        except (sqlite3.Error, psycopg2.Error) as e:
            conn.rollback()
            raise self._translate_error(e) from e
        finally:
            conn.close()

    def execute_insert(self, query, params=None):
        """Run an INSERT and return the new row id"""
        conn = self.get_connection()
        try:
            cur = self._cursor(conn)
            if self.db_type == 'postgresql':
                cur.execute(self._prepare(query) + ' RETURNING id', params or ())
                new_id = cur.fetchone()['id']
            else:
                cur.execute(query, params or ())
                new_id = cur.lastrowid
            conn.commit()
            cur.close()
            return new_id
        except (sqlite3.Error, psycopg2.Error) as e:
            conn.rollback()
            raise self._translate_error(e) from e
        finally:
            conn.close()

    def execute_transaction(self, statements):
        """Run several (query, params) statements atomically; returns row counts"""
        conn = self.get_connection()
        try:
            cur = self._cursor(conn)
            counts = []
            for query, params in statements:
                cur.execute(self._prepare(query), params or ())
                counts.append(cur.rowcount)
            conn.commit()
            cur.close()
            return counts
        except (sqlite3.Error, psycopg2.Error) as e:
            conn.rollback()
            raise self._translate_error(e) from e
        finally:
            conn.close()

    def _translate_error(self, error):
        if isinstance(error, psycopg2.errors.UndefinedTable) or 'no such table' in str(error):
            logger.error(f"Schema missing: {error}")
            return StorageInitializingError()
        if isinstance(error, (sqlite3.OperationalError, psycopg2.OperationalError)):
            logger.error(f"Database unavailable: {error}")
            return StorageError()
        logger.error(f"Database error: {error}")
        return DatabaseError(str(error))

    def is_integrity_error(self, error):
        cause = error.__cause__
        return isinstance(cause, (sqlite3.IntegrityError, psycopg2.IntegrityError))

    def ping(self):
        """Return True when the store answers a trivial query"""
        try:
            self.execute_query('SELECT 1 AS ok')
            return True
        except StorageError:
            return False

    def init_database(self):
        if self.db_type == 'postgresql':
            self._init_postgresql()
        else:
            self._init_sqlite()

    def _init_postgresql(self):
        queries = [
            """CREATE TABLE IF NOT EXISTS exams (
                id SERIAL PRIMARY KEY,
                name VARCHAR(200) UNIQUE NOT NULL,
                category VARCHAR(200),
                description TEXT,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )""",
            """CREATE TABLE IF NOT EXISTS users (
                id SERIAL PRIMARY KEY,
                email VARCHAR(255) UNIQUE NOT NULL,
                password_hash VARCHAR(255) NOT NULL,
                exam_id INTEGER REFERENCES exams(id),
                role VARCHAR(20) DEFAULT 'user',
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )""",
            """CREATE TABLE IF NOT EXISTS categories (
                id SERIAL PRIMARY KEY,
                name VARCHAR(200) UNIQUE NOT NULL,
                description TEXT,
                question_count INTEGER DEFAULT 0,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )""",
            """CREATE TABLE IF NOT EXISTS exam_categories (
                exam_id INTEGER NOT NULL REFERENCES exams(id),
                category_id INTEGER NOT NULL REFERENCES categories(id),
                PRIMARY KEY (exam_id, category_id)
            )""",
            # category_id is not a foreign key: questions outlive their category
            """CREATE TABLE IF NOT EXISTS questions (
                id SERIAL PRIMARY KEY,
                category_id INTEGER NOT NULL,
                question_format VARCHAR(20) NOT NULL DEFAULT 'multiple_choice',
                question_text TEXT NOT NULL,
                option_a TEXT,
                option_b TEXT,
                option_c TEXT,
                option_d TEXT,
                correct_answer VARCHAR(10),
                explanation TEXT DEFAULT '',
                difficulty VARCHAR(10) DEFAULT 'medium',
                points INTEGER DEFAULT 10,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )""",
            """CREATE TABLE IF NOT EXISTS user_answers (
                id SERIAL PRIMARY KEY,
                user_id INTEGER NOT NULL REFERENCES users(id),
                question_id INTEGER NOT NULL REFERENCES questions(id),
                selected_answer VARCHAR(10),
                is_correct BOOLEAN NOT NULL,
                answered_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )""",
            "CREATE INDEX IF NOT EXISTS idx_questions_category ON questions(category_id, created_at)",
            "CREATE INDEX IF NOT EXISTS idx_user_answers_user_id ON user_answers(user_id)",
        ]

        for query in queries:
            self.execute_query(query)
        logger.info("PostgreSQL schema ready")

    def _init_sqlite(self):
        queries = [
            """CREATE TABLE IF NOT EXISTS exams (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                name TEXT UNIQUE NOT NULL,
                category TEXT,
                description TEXT,
                created_at DATETIME DEFAULT CURRENT_TIMESTAMP
            )""",
            """CREATE TABLE IF NOT EXISTS users (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                email TEXT UNIQUE NOT NULL,
                password_hash TEXT NOT NULL,
                exam_id INTEGER,
                role TEXT DEFAULT 'user',
                created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
                FOREIGN KEY (exam_id) REFERENCES exams (id)
            )""",
            """CREATE TABLE IF NOT EXISTS categories (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                name TEXT UNIQUE NOT NULL,
                description TEXT,
                question_count INTEGER DEFAULT 0,
                created_at DATETIME DEFAULT CURRENT_TIMESTAMP
            )""",
            """CREATE TABLE IF NOT EXISTS exam_categories (
                exam_id INTEGER NOT NULL,
                category_id INTEGER NOT NULL,
                PRIMARY KEY (exam_id, category_id),
                FOREIGN KEY (exam_id) REFERENCES exams (id),
                FOREIGN KEY (category_id) REFERENCES categories (id)
            )""",
            """CREATE TABLE IF NOT EXISTS questions (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                category_id INTEGER NOT NULL,
                question_format TEXT NOT NULL DEFAULT 'multiple_choice',
                question_text TEXT NOT NULL,
                option_a TEXT,
                option_b TEXT,
                option_c TEXT,
                option_d TEXT,
                correct_answer TEXT,
                explanation TEXT DEFAULT '',
                difficulty TEXT DEFAULT 'medium',
                points INTEGER DEFAULT 10,
                created_at DATETIME DEFAULT CURRENT_TIMESTAMP
            )""",
            """CREATE TABLE IF NOT EXISTS user_answers (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id INTEGER NOT NULL,
                question_id INTEGER NOT NULL,
                selected_answer TEXT,
                is_correct INTEGER NOT NULL,
                answered_at DATETIME DEFAULT CURRENT_TIMESTAMP,
                FOREIGN KEY (user_id) REFERENCES users (id),
                FOREIGN KEY (question_id) REFERENCES questions (id)
            )""",
            "CREATE INDEX IF NOT EXISTS idx_questions_category ON questions(category_id, created_at)",
            "CREATE INDEX IF NOT EXISTS idx_user_answers_user_id ON user_answers(user_id)",
        ]

        for query in queries:
            self.execute_query(query)
        logger.info("SQLite schema ready")
