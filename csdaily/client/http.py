"""
HTTP client for the Civil Services Daily API

Every request goes through one RetryPolicy: connection failures, timeouts,
5xx and 429 are retried with exponential backoff; everything else surfaces
immediately as an ApiClientError carrying the server's error_code.
"""
import logging
import time

import requests

from .session import Session, is_token_expired

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30


class ApiClientError(Exception):
    """Failed API call"""

    def __init__(self, message, status_code=None, error_code=None, payload=None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.payload = payload or {}

    @property
    def is_auth_error(self):
        return self.status_code == 401 or (self.error_code or '').startswith('AUTH_')

    def __repr__(self):
        return f"ApiClientError({self.status_code}, {self.error_code}, {self.message!r})"


class NetworkError(ApiClientError):
    """Request never got a response"""


class RequestTimeoutError(NetworkError):
    """Request exceeded the client timeout"""


class OfflineError(NetworkError):
    """Server could not be reached"""


def is_retryable(error):
    if isinstance(error, NetworkError):
        return True
    if isinstance(error, ApiClientError) and error.status_code is not None:
        return error.status_code >= 500 or error.status_code == 429
    return False


class RetryPolicy:
    """Retry transient failures with delay = base_delay * 2 ** attempt"""

    def __init__(self, max_attempts=3, base_delay=1.0, retry_predicate=is_retryable, sleep=time.sleep):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.retry_predicate = retry_predicate
        self.sleep = sleep

    def delay_for(self, attempt):
        return self.base_delay * (2 ** attempt)

    def call(self, func):
        for attempt in range(self.max_attempts):
            try:
                return func()
            except ApiClientError as e:
                last_attempt = attempt == self.max_attempts - 1
                if last_attempt or not self.retry_predicate(e):
                    raise
                delay = self.delay_for(attempt)
                logger.warning(f"Retrying after {e!r} (attempt {attempt + 1}/{self.max_attempts}, {delay:.1f}s)")
                self.sleep(delay)


class ApiClient:
    """Thin wrapper over the JSON API; one instance per signed-in user"""

    def __init__(self, base_url, session=None, retry_policy=None, timeout=DEFAULT_TIMEOUT, http=None):
        self.base_url = base_url.rstrip('/')
        self.session = session or Session()
        self.retry_policy = retry_policy or RetryPolicy()
        self.timeout = timeout
        self.http = http or requests.Session()

    # Transport

    def _request(self, method, path, json=None, params=None, auth=True):
        headers = {'Content-Type': 'application/json'}
        if auth:
            token = self.session.token
            if token and is_token_expired(token):
                self.session.clear('token expired')
                raise ApiClientError('Session expired', 401, 'AUTH_003')
            if token:
                headers['Authorization'] = f'Bearer {token}'

        url = f"{self.base_url}{path}"

        def send():
            try:
                response = self.http.request(
                    method, url, json=json, params=params, headers=headers, timeout=self.timeout
                )
            except requests.Timeout as e:
                raise RequestTimeoutError('Request timed out', error_code='SRV_002') from e
            except requests.ConnectionError as e:
                raise OfflineError('Could not reach the server') from e
            except requests.RequestException as e:
                raise NetworkError('Network request failed') from e
            return self._handle_response(response, auth)

        return self.retry_policy.call(send)

    def _handle_response(self, response, auth):
        try:
            data = response.json()
        except ValueError:
            data = {}

        if response.ok:
            return data

        body = data if isinstance(data, dict) else {}
        error = ApiClientError(
            body.get('error') or response.reason or 'Request failed',
            status_code=response.status_code,
            error_code=body.get('error_code'),
            payload=body,
        )
        if auth and response.status_code == 401:
            self.session.clear(error.error_code or 'unauthorized')
        logger.debug(f"{response.request.method} {response.url} -> {error!r}")
        raise error

    # Auth

    def signup(self, email, password):
        data = self._request('POST', '/api/auth/signup', json={'email': email, 'password': password}, auth=False)
        self.session.set_token(data['token'])
        return data['user']

    def login(self, email, password):
        data = self._request('POST', '/api/auth/login', json={'email': email, 'password': password}, auth=False)
        self.session.set_token(data['token'])
        return data['user']

    def logout(self):
        self.session.clear('logout')

    def me(self):
        return self._request('GET', '/api/auth/me')['user']

    def set_exam(self, exam_id):
        return self._request('PUT', '/api/users/me/exam', json={'exam_id': exam_id})['user']

    # Feed

    def generate_questions(self, category, count=2, exam_id=None):
        payload = {'category': category, 'count': count}
        if exam_id is not None:
            payload['exam_id'] = exam_id
        return self._request('POST', '/api/questions/generate', json=payload)['questions']

    def save_answer(self, question_id, selected_answer, is_correct):
        return self._request('POST', '/api/answers', json={
            'question_id': question_id,
            'selected_answer': selected_answer,
            'is_correct': is_correct,
        })

    def get_correct_answers(self):
        return self._request('GET', '/api/answers/correct')['correctAnswers']

    def get_stats(self):
        return self._request('GET', '/api/stats')

    def get_categories(self, exam_id=None):
        params = {'exam_id': exam_id} if exam_id is not None else None
        return self._request('GET', '/api/categories', params=params)['categories']

    def get_exams(self):
        return self._request('GET', '/api/exams')['exams']

    # Admin

    def admin_list_exams(self):
        return self._request('GET', '/api/admin/exams')['exams']

    def admin_create_exam(self, name, category=None, description=None):
        return self._request('POST', '/api/admin/exams', json={
            'name': name, 'category': category, 'description': description,
        })

    def admin_update_exam(self, exam_id, **fields):
        return self._request('PUT', f'/api/admin/exams/{exam_id}', json=fields)

    def admin_delete_exam(self, exam_id):
        return self._request('DELETE', f'/api/admin/exams/{exam_id}')

    def admin_exam_deletion_impact(self, exam_id):
        return self._request('GET', f'/api/admin/exams/{exam_id}/deletion-impact')

    def admin_exam_categories(self, exam_id):
        return self._request('GET', f'/api/admin/exams/{exam_id}/categories')['categories']

    def admin_add_exam_category(self, exam_id, category_id):
        return self._request('POST', f'/api/admin/exams/{exam_id}/categories/{category_id}')

    def admin_remove_exam_category(self, exam_id, category_id):
        return self._request('DELETE', f'/api/admin/exams/{exam_id}/categories/{category_id}')

    def admin_list_categories(self):
        return self._request('GET', '/api/admin/categories')['categories']

    def admin_create_category(self, name, description=None):
        return self._request('POST', '/api/admin/categories', json={'name': name, 'description': description})

    def admin_update_category(self, category_id, **fields):
        return self._request('PUT', f'/api/admin/categories/{category_id}', json=fields)

    def admin_delete_category(self, category_id):
        return self._request('DELETE', f'/api/admin/categories/{category_id}')

    def admin_category_deletion_impact(self, category_id):
        return self._request('GET', f'/api/admin/categories/{category_id}/deletion-impact')

    def admin_question_library_stats(self):
        return self._request('GET', '/api/admin/question-library/stats')

    def admin_stats(self):
        return self._request('GET', '/api/admin/stats')

    def admin_import_questions(self, questions):
        return self._request('POST', '/api/admin/questions/import', json={'questions': questions})
