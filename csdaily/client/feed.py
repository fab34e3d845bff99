"""
Infinite question feed

FeedController owns the list of QuestionState objects a reader scrolls
through. State transitions run under one lock; network calls run on an
executor; the countdown runs on a threading.Timer chain. A view (anything
with ``scroll_to(index)``) may be attached to receive scroll requests.
"""
import logging
import random
import threading
from concurrent.futures import ThreadPoolExecutor

from .http import ApiClientError
from .messages import friendly_message

logger = logging.getLogger(__name__)

COUNTDOWN_SECONDS = 30
PREFETCH_THRESHOLD = 5
INITIAL_BATCH = 5
ESCALATED_BATCH = 10
PREFETCH_BATCH = 5
AUTO_ADVANCE_DELAY = 2.0
ANY_DIFFICULTY = 'all'


class FeedSettings:
    """Reader preferences"""

    def __init__(self, allow_scroll_without_answer=False, statement_questions_only=False,
                 difficulty=ANY_DIFFICULTY, auto_advance_on_incorrect=False,
                 auto_advance_delay=AUTO_ADVANCE_DELAY):
        self.allow_scroll_without_answer = allow_scroll_without_answer
        self.statement_questions_only = statement_questions_only
        self.difficulty = difficulty
        self.auto_advance_on_incorrect = auto_advance_on_incorrect
        self.auto_advance_delay = auto_advance_delay


class QuestionState:
    def __init__(self, question):
        self.question = question
        self.selected_answer = None
        self.is_answered = False
        self.answered_correctly = None
        self.time_left = COUNTDOWN_SECONDS
        self.show_explanation = False

    @property
    def question_id(self):
        return self.question.get('id')

    def __repr__(self):
        status = 'answered' if self.is_answered else f'{self.time_left}s left'
        return f"<QuestionState {self.question_id} {status}>"


def filter_questions(questions, exclude_ids=(), statement_only=False, difficulty=ANY_DIFFICULTY):
    """Drop solved questions, then non-statement ones, then other difficulties"""
    excluded = set(exclude_ids)
    result = [q for q in questions if q.get('id') not in excluded]
    if statement_only:
        result = [q for q in result if q.get('question_format') == 'statement']
    if difficulty and difficulty != ANY_DIFFICULTY:
        result = [q for q in result if q.get('difficulty') == difficulty]
    return result


class TimerScheduler:
    """call_later() on daemon threading.Timer objects"""

    def call_later(self, delay, func):
        timer = threading.Timer(delay, func)
        timer.daemon = True
        timer.start()
        return timer


class FeedController:
    """Question feed state machine for one reader"""

    def __init__(self, api, category='all', exam_id=None, settings=None,
                 executor=None, scheduler=None, rng=None, view=None):
        self.api = api
        self.category = category
        self.exam_id = exam_id
        self.settings = settings or FeedSettings()
        self.view = view
        self._owns_executor = executor is None
        self.executor = executor or ThreadPoolExecutor(max_workers=1, thread_name_prefix='feed')
        self.scheduler = scheduler or TimerScheduler()
        self.rng = rng or random.Random()

        self._lock = threading.RLock()
        self._generation = 0
        self._prefetch_generation = None
        self._countdown = None
        self._countdown_seq = 0
        self._closed = False

        self.states = []
        self.current_index = 0
        self.score = 0
        self.streak = 0
        self.total_answered = 0
        self.loading = False
        self.no_questions = False
        self.error = None
        self.logged_out = False
        self.pending_scroll_to = None
        self.category_bar_autoscroll = True

    # Properties

    @property
    def current(self):
        with self._lock:
            if 0 <= self.current_index < len(self.states):
                return self.states[self.current_index]
            return None

    @property
    def generation(self):
        return self._generation

    @property
    def prefetch_in_flight(self):
        return self._prefetch_generation is not None

    # Loading

    def _fetch_batch(self, count, prefetch=False):
        """Exclusion set, batch, filters, single escalation, shuffle"""
        solved = self.api.get_correct_answers()
        batch = self.api.generate_questions(self.category, count, self.exam_id)
        filtered = filter_questions(
            batch, solved,
            statement_only=self.settings.statement_questions_only,
            difficulty=self.settings.difficulty,
        )
        if not filtered and not prefetch and count < ESCALATED_BATCH:
            logger.info(f"No usable questions in a batch of {count} for {self.category}, retrying with {ESCALATED_BATCH}")
            return self._fetch_batch(ESCALATED_BATCH, prefetch=prefetch)

        self.rng.shuffle(filtered)
        return filtered

    def _record_error(self, error):
        self.error = friendly_message(error)
        if isinstance(error, ApiClientError) and error.is_auth_error:
            self.logged_out = True
        logger.warning(f"Feed request failed: {error!r}")

    def _begin_load(self):
        with self._lock:
            self._generation += 1
            self._prefetch_generation = None
            self.loading = True
            self.error = None
            return self._generation

    def _load(self, generation, scroll_to_top=False):
        try:
            batch = self._fetch_batch(INITIAL_BATCH)
        except ApiClientError as e:
            with self._lock:
                if generation == self._generation:
                    self.loading = False
                    self._record_error(e)
            return False

        with self._lock:
            if generation != self._generation or self._closed:
                logger.debug(f"Discarding stale batch (generation {generation}, current {self._generation})")
                return False
            self._stop_countdown()
            self.states = [QuestionState(q) for q in batch]
            self.loading = False
            self.no_questions = not self.states
            self.current_index = 0
            if self.states:
                if scroll_to_top:
                    self._request_scroll(0)
                self._activate(0)
            return True

    def load(self):
        """Initial load; blocks until the first batch is in place"""
        return self._load(self._begin_load())

    def reload(self):
        """Load a fresh batch in the background, keeping the current list visible"""
        return self.executor.submit(self._load, self._begin_load(), True)

    def switch_category(self, category, exam_id=None):
        with self._lock:
            if category == self.category and exam_id == self.exam_id:
                return None
            self.category = category
            self.exam_id = exam_id
            self.category_bar_autoscroll = False
        return self.reload()

    def update_settings(self, **changes):
        reload_needed = False
        with self._lock:
            for key, value in changes.items():
                if not hasattr(self.settings, key):
                    raise AttributeError(f"Unknown feed setting: {key}")
                if key in ('statement_questions_only', 'difficulty') and getattr(self.settings, key) != value:
                    reload_needed = True
                setattr(self.settings, key, value)
        if reload_needed:
            return self.reload()
        return None

    # Prefetch

    def maybe_prefetch(self):
        """Start a background prefetch near the end of the list; True when started"""
        with self._lock:
            if self._closed or not self.states or self.prefetch_in_flight:
                return False
            if self.current_index < len(self.states) - PREFETCH_THRESHOLD:
                return False
            generation = self._generation
            self._prefetch_generation = generation
        self.executor.submit(self._prefetch, generation)
        return True

    def _prefetch(self, generation):
        appended = 0
        try:
            batch = self._fetch_batch(PREFETCH_BATCH, prefetch=True)
            with self._lock:
                if generation != self._generation:
                    logger.debug(f"Discarding stale prefetch (generation {generation})")
                    return 0
                self.states.extend(QuestionState(q) for q in batch)
                appended = len(batch)
        except ApiClientError as e:
            with self._lock:
                if generation == self._generation:
                    self._record_error(e)
        finally:
            with self._lock:
                if self._prefetch_generation == generation:
                    self._prefetch_generation = None

        if appended:
            self.maybe_prefetch()
        return appended

    # Countdown

    def _start_countdown(self):
        self._stop_countdown()
        self._schedule_tick(self._countdown_seq)

    def _schedule_tick(self, seq):
        self._countdown = self.scheduler.call_later(1.0, lambda: self._on_countdown(seq))

    def _stop_countdown(self):
        # A timer that already fired but waits on the lock sees a newer seq and exits
        self._countdown_seq += 1
        if self._countdown is not None:
            self._countdown.cancel()
            self._countdown = None

    def _on_countdown(self, seq):
        with self._lock:
            if seq != self._countdown_seq:
                return
            self._countdown = None
            state = self.current
            if self._closed or state is None or state.is_answered:
                return
            self.tick()
            if not state.is_answered:
                self._schedule_tick(seq)

    def tick(self):
        """One second of countdown for the active question"""
        with self._lock:
            state = self.current
            if state is None or state.is_answered:
                return None
            state.time_left = max(state.time_left - 1, 0)
            if state.time_left == 0:
                return self._time_out(state)
            return None

    def _time_out(self, state):
        state.is_answered = True
        state.answered_correctly = False
        state.selected_answer = None
        state.show_explanation = True
        self.streak = 0
        self._stop_countdown()
        logger.debug(f"Question {state.question_id} timed out")
        return self.executor.submit(self._persist_answer, state, None, False, False)

    # Answering / navigation

    def answer(self, index, option):
        """Lock in an answer; returns the persistence future or None when already answered"""
        with self._lock:
            if not 0 <= index < len(self.states):
                raise IndexError(f"No question at index {index}")
            state = self.states[index]
            if state.is_answered:
                return None

            correct_answer = state.question.get('correct_answer')
            is_correct = (
                option is not None and correct_answer is not None
                and option.lower() == correct_answer.lower()
            )
            state.selected_answer = option
            state.is_answered = True
            state.answered_correctly = is_correct
            state.show_explanation = True

            if is_correct:
                self.score += state.question.get('points') or 0
                self.streak += 1
            else:
                self.streak = 0
            self.total_answered += 1

            if index == self.current_index:
                self._stop_countdown()

            advance = is_correct or self.settings.auto_advance_on_incorrect
            return self.executor.submit(self._persist_answer, state, option, is_correct, advance)

    def _persist_answer(self, state, option, is_correct, advance):
        try:
            self.api.save_answer(state.question_id, option, is_correct)
        except ApiClientError as e:
            with self._lock:
                self._record_error(e)
            return False

        if advance:
            with self._lock:
                index = self.states.index(state) if state in self.states else None
            if index is not None:
                self.scheduler.call_later(
                    self.settings.auto_advance_delay, lambda: self.next_question(index)
                )
        return True

    def next_question(self, from_index=None):
        """Advance one question; ignored when the reader already moved on"""
        with self._lock:
            if from_index is not None and from_index != self.current_index:
                return False
            target = self.current_index + 1
            if self._closed or target >= len(self.states):
                return False
            self._request_scroll(target)
            self._activate(target)
            return True

    def on_scroll(self, index):
        """Reader scrolled to ``index``; returns the index that is active afterwards"""
        with self._lock:
            if self.pending_scroll_to is not None:
                return self.current_index
            if index == self.current_index or not 0 <= index < len(self.states):
                return self.current_index

            state = self.current
            if (index > self.current_index and not self.settings.allow_scroll_without_answer
                    and state is not None and not state.is_answered):
                self._request_scroll(self.current_index)
                return self.current_index

            self._activate(index)
            return index

    def scroll_settled(self):
        """View finished a requested scroll"""
        with self._lock:
            self.pending_scroll_to = None
            self.category_bar_autoscroll = True

    def _request_scroll(self, index):
        self.pending_scroll_to = index
        if self.view is not None:
            self.view.scroll_to(index)

    def _activate(self, index):
        self.current_index = index
        state = self.states[index]
        if state.is_answered:
            self._stop_countdown()
        else:
            self._start_countdown()
        self.maybe_prefetch()

    def close(self):
        with self._lock:
            self._closed = True
            self._generation += 1
            self._stop_countdown()
        if self._owns_executor:
            self.executor.shutdown(wait=False)
