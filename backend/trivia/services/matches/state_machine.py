"""Match lifecycle and round/question cursor.

    setup --start--> active <--pause/resume--> paused
    active|paused --complete--> completed
    active --advance_question (past the last question)--> completed

Every transition is written as a conditional UPDATE that names the status
and cursor the caller read. If another request moved the match first, the
update matches no row and the caller gets INVALID_STATE instead of
double-applying the step.
"""

import json

from flask import current_app

from trivia.models import Match
from trivia.time_utils import utcnow_naive
from .errors import QUESTION_NOT_FOUND, ErrorCode, Result, invalid_state, not_found, unauthorized, validation_error
from .store import guarded

TITLE_LENGTH = (3, 100)
MAX_ROUNDS_RANGE = (1, 20)
QUESTIONS_PER_ROUND_RANGE = (1, 50)
POINTS_PER_CORRECT_RANGE = (1, 1000)


def _in_range(value, bounds):
    low, high = bounds
    return isinstance(value, int) and not isinstance(value, bool) and low <= value <= high


def next_cursor(match):
    """Decide where advancing goes from the match's current cursor.

    Returns the column changes: next question in the round, first question of
    the next round, or completion after the last question of the last round.
    """
    if match.current_question < match.questions_per_round:
        return {'current_question': match.current_question + 1}
    if match.current_round < match.max_rounds:
        return {'current_round': match.current_round + 1, 'current_question': 1}
    return {'status': 'completed'}


class MatchStateMachine:
    def __init__(self, store, selector, leaderboard, broadcaster, scheduler=None, clock=utcnow_naive):
        self.store = store
        self.selector = selector
        self.leaderboard = leaderboard
        self.broadcaster = broadcaster
        self.scheduler = scheduler
        self.clock = clock

    # ---- helpers ----

    def _load_for_host(self, match_id, actor_id):
        match = self.store.get_match(match_id)
        if not match:
            return None, not_found('Match')
        if actor_id is None or match.host_id != actor_id:
            current_app.logger.warning(f"[unauthorized] match={match_id} actor={actor_id}")
            return None, unauthorized()
        return match, None

    def _transition(self, match, changes, triggered_by='host', expected=None):
        if expected is None:
            expected = {
                'status': match.status,
                'current_round': match.current_round,
                'current_question': match.current_question,
            }
        before = (expected['status'], expected['current_round'], expected['current_question'])
        if not self.store.transition_match(match.id, expected, changes):
            return invalid_state('Match was changed by another request; reload and retry')
        match = self.store.get_match(match.id)
        current_app.logger.info(
            f"[transition] match={match.id} {before} -> "
            f"{(match.status, match.current_round, match.current_question)} by={triggered_by}"
        )
        self._broadcast_state(match, triggered_by)
        return Result.success(match)

    def _broadcast_state(self, match, triggered_by):
        try:
            self.broadcaster.game_state_changed(match, triggered_by)
        except Exception:
            current_app.logger.exception(f"[broadcast-failed] match={match.id} event=game_state_changed")

    # ---- creation and setup ----

    @guarded('create match')
    def create_match(self, host_id, title, max_rounds, questions_per_round, settings=None) -> Result[Match]:
        title = (title or '').strip()
        if not TITLE_LENGTH[0] <= len(title) <= TITLE_LENGTH[1]:
            return validation_error('Title must be 3-100 characters')
        if not _in_range(max_rounds, MAX_ROUNDS_RANGE):
            return validation_error('Rounds must be between 1 and 20')
        if not _in_range(questions_per_round, QUESTIONS_PER_ROUND_RANGE):
            return validation_error('Questions per round must be between 1 and 50')

        if settings is not None and not isinstance(settings, dict):
            return validation_error('Settings must be an object')

        cfg = current_app.config
        merged = {
            'allow_late_joins': bool(cfg.get('DEFAULT_ALLOW_LATE_JOINS', True)),
            'time_per_question': int(cfg.get('DEFAULT_TIME_PER_QUESTION_SEC', 0)),
            'points_per_correct': int(cfg.get('DEFAULT_POINTS_PER_CORRECT', 1000)),
            'categories': [],
            'difficulty': None,
        }
        merged.update(settings or {})
        if not isinstance(merged['allow_late_joins'], bool):
            return validation_error('Allow late joins must be true or false')
        time_per_question = merged['time_per_question']
        if not isinstance(time_per_question, int) or isinstance(time_per_question, bool) or time_per_question < 0:
            return validation_error('Time per question must be a non-negative number of seconds')
        if not _in_range(merged['points_per_correct'], POINTS_PER_CORRECT_RANGE):
            return validation_error('Points per correct answer must be between 1 and 1000')
        if not isinstance(merged['categories'] or [], list):
            return validation_error('Categories must be a list')

        match = Match(
            host_id=host_id,
            title=title,
            status='setup',
            current_round=1,
            current_question=1,
            max_rounds=max_rounds,
            questions_per_round=questions_per_round,
            settings=json.dumps(merged),
        )
        self.store.add(match)
        current_app.logger.info(f"[create] match={match.id} host={host_id} rounds={max_rounds}x{questions_per_round}")
        return Result.success(match)

    @guarded('get match')
    def get_match(self, match_id) -> Result[Match]:
        match = self.store.get_match(match_id)
        if not match:
            return not_found('Match')
        return Result.success(match)

    @guarded('prepare questions')
    def prepare_questions(self, match_id, actor_id) -> Result[list]:
        match, failure = self._load_for_host(match_id, actor_id)
        if failure:
            return failure
        if match.status != 'setup':
            return invalid_state('Questions can only be prepared before the match starts')
        return self.selector.prepare(match)

    @guarded('list questions')
    def list_questions(self, match_id, actor_id) -> Result[list]:
        match, failure = self._load_for_host(match_id, actor_id)
        if failure:
            return failure
        return Result.success(self.store.list_match_questions(match.id))

    # ---- lifecycle ----

    @guarded('start match')
    def start(self, match_id, actor_id) -> Result[Match]:
        match, failure = self._load_for_host(match_id, actor_id)
        if failure:
            return failure
        if match.status != 'setup':
            return invalid_state(f'Cannot start a match that is {match.status}')
        min_teams = max(1, int(current_app.config.get('MIN_TEAMS_TO_START', 1)))
        if self.store.count_teams(match.id) < min_teams:
            return invalid_state(f'At least {min_teams} team(s) required to start')
        if self.store.count_match_questions(match.id) < match.total_questions:
            return invalid_state('Questions have not been prepared for every round')
        return self._transition(match, {
            'status': 'active',
            'current_round': 1,
            'current_question': 1,
            'started_at': self.clock(),
        })

    @guarded('pause match')
    def pause(self, match_id, actor_id) -> Result[Match]:
        match, failure = self._load_for_host(match_id, actor_id)
        if failure:
            return failure
        if match.status != 'active':
            return invalid_state(f'Cannot pause a match that is {match.status}')
        return self._transition(match, {'status': 'paused'})

    @guarded('resume match')
    def resume(self, match_id, actor_id) -> Result[Match]:
        match, failure = self._load_for_host(match_id, actor_id)
        if failure:
            return failure
        if match.status != 'paused':
            return invalid_state(f'Cannot resume a match that is {match.status}')
        return self._transition(match, {'status': 'active'})

    @guarded('complete match')
    def complete(self, match_id, actor_id) -> Result[Match]:
        match, failure = self._load_for_host(match_id, actor_id)
        if failure:
            return failure
        if match.status not in ('active', 'paused'):
            return invalid_state(f'Cannot complete a match that is {match.status}')
        expected = {
            'status': match.status,
            'current_round': match.current_round,
            'current_question': match.current_question,
        }
        # No more scoring once the match ends early
        self._close_current_question(match, match.current_round, match.current_question)
        return self._transition(match, {'status': 'completed', 'ended_at': self.clock()}, expected=expected)

    @guarded('advance question')
    def advance_question(self, match_id, actor_id) -> Result[Match]:
        match, failure = self._load_for_host(match_id, actor_id)
        if failure:
            return failure
        if match.status != 'active':
            return invalid_state(f'Cannot advance a match that is {match.status}')
        return self._advance(match, 'host')

    @guarded('auto-advance question')
    def auto_advance(self, match_id, expected_round, expected_question) -> Result[Match]:
        """System-triggered advance; a no-op if the host already moved on."""
        match = self.store.get_match(match_id)
        if not match:
            return not_found('Match')
        if (match.status, match.current_round, match.current_question) != ('active', expected_round, expected_question):
            return invalid_state('Match has moved on since the timer was set')
        return self._advance(match, 'system')

    def _advance(self, match, triggered_by):
        expected = {
            'status': match.status,
            'current_round': match.current_round,
            'current_question': match.current_question,
        }
        changes = next_cursor(match)
        if changes.get('status') == 'completed':
            changes['ended_at'] = self.clock()
        self._close_current_question(match, expected['current_round'], expected['current_question'])
        return self._transition(match, changes, triggered_by, expected=expected)

    def _close_current_question(self, match, round_number, question_order):
        match_question = self.store.find_match_question(match.id, round_number, question_order)
        if not match_question or not self.store.mark_question_completed(match_question.id, self.clock()):
            return
        match_question = self.store.get_match_question(match_question.id)
        try:
            self.broadcaster.question_completed(
                match, match_question, self.leaderboard.question_results(match_question.id)
            )
        except Exception:
            current_app.logger.exception(f"[broadcast-failed] match={match.id} event=question_completed")

    # ---- questions at the cursor ----

    @guarded('display question')
    def display_question(self, match_id, actor_id) -> Result:
        match, failure = self._load_for_host(match_id, actor_id)
        if failure:
            return failure
        if match.status != 'active':
            return invalid_state(f'Cannot display a question while the match is {match.status}')
        match_question = self.store.find_match_question(match.id, match.current_round, match.current_question)
        if not match_question:
            return Result.failure(ErrorCode.NOT_FOUND, QUESTION_NOT_FOUND)
        if match_question.completed_at is not None:
            return invalid_state('Question is already closed')

        if not self.store.mark_question_displayed(match_question.id, self.clock()):
            # Already revealed; displayed_at never moves once set
            return Result.success(self.store.get_match_question(match_question.id))

        match_question = self.store.get_match_question(match_question.id)
        current_app.logger.info(
            f"[display] match={match.id} round={match_question.round_number} order={match_question.question_order}"
        )
        try:
            self.broadcaster.question_displayed(match, match_question)
        except Exception:
            current_app.logger.exception(f"[broadcast-failed] match={match.id} event=question_displayed")
        if self.scheduler and match.time_limit:
            self.scheduler.schedule(match.id, match_question.round_number, match_question.question_order, match.time_limit)
        return Result.success(self.store.get_match_question(match_question.id))

    @guarded('get current question')
    def current_question(self, match_id) -> Result:
        match = self.store.get_match(match_id)
        if not match:
            return not_found('Match')
        match_question = self.store.find_match_question(match.id, match.current_round, match.current_question)
        if not match_question:
            return Result.failure(ErrorCode.NOT_FOUND, QUESTION_NOT_FOUND)
        return Result.success(match_question)
