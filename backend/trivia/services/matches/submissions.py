from dataclasses import dataclass
from typing import Optional

from flask import current_app
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from trivia.models import Submission
from trivia.time_utils import utcnow_naive
from .errors import (
    ALREADY_ANSWERED,
    MATCH_COMPLETED,
    NOT_YET_DISPLAYED,
    QUESTION_CLOSED,
    QUESTION_NOT_FOUND,
    RESULTS_PENDING,
    TIME_LIMIT_EXCEEDED,
    ErrorCode,
    Result,
    invalid_state,
    not_found,
    unauthorized,
    validation_error,
)
from .randomizer import ANSWER_COUNT
from .scoring import calculate_points, elapsed_seconds, time_remaining
from .store import guarded, is_unique_violation


@dataclass(frozen=True)
class Eligibility:
    can_submit: bool
    reason: Optional[str] = None
    time_remaining: Optional[float] = None

    def to_dict(self):
        payload = {'can_submit': self.can_submit}
        if self.reason is not None:
            payload['reason'] = self.reason
        if self.time_remaining is not None:
            payload['time_remaining'] = round(self.time_remaining, 3)
        return payload


def _valid_slot(value):
    return isinstance(value, int) and not isinstance(value, bool) and 0 <= value < ANSWER_COUNT


class SubmissionGate:
    """Records one answer per team per match question and scores it."""

    def __init__(self, store, randomizer, broadcaster, clock=utcnow_naive):
        self.store = store
        self.randomizer = randomizer
        self.broadcaster = broadcaster
        self.clock = clock

    def _check(self, match, team_id, round_number, question_order, now):
        """Run the submission preconditions in order.

        Returns ``(code, reason, match_question, elapsed)``; ``code`` is None
        when the team may submit.
        """
        match_question = self.store.find_match_question(match.id, round_number, question_order)
        if not match_question:
            return ErrorCode.NOT_FOUND, QUESTION_NOT_FOUND, None, None
        if match_question.displayed_at is None:
            return ErrorCode.TIMING_VIOLATION, NOT_YET_DISPLAYED, match_question, None
        if match_question.completed_at is not None:
            return ErrorCode.TIMING_VIOLATION, QUESTION_CLOSED, match_question, None
        elapsed = elapsed_seconds(match_question.displayed_at, now)
        if match.time_limit and elapsed > match.time_limit:
            return ErrorCode.TIMING_VIOLATION, TIME_LIMIT_EXCEEDED, match_question, elapsed
        if self.store.find_submission(team_id, match_question.id):
            return ErrorCode.DUPLICATE_SUBMISSION, ALREADY_ANSWERED, match_question, elapsed
        return None, None, match_question, elapsed

    def _base_points(self, match):
        return match.points_per_correct or int(current_app.config.get('DEFAULT_POINTS_PER_CORRECT', 1000))

    @guarded('submit answer')
    def submit(self, match_id, team_id, round_number, question_order, selected_slot, submitting_player_id) -> Result[Submission]:
        if not _valid_slot(selected_slot):
            return validation_error('Selected position must be an integer from 0 to 3')
        match = self.store.get_match(match_id)
        if not match:
            return not_found('Match')
        if match.status == 'completed':
            return invalid_state(MATCH_COMPLETED)
        team = self.store.get_team(team_id)
        if not team or team.match_id != match.id:
            return not_found('Team')
        player = self.store.get_player(submitting_player_id)
        if not player or player.team_id != team.id:
            return validation_error('Player is not a member of this team')

        code, reason, match_question, elapsed = self._check(match, team.id, round_number, question_order, self.clock())
        if code:
            current_app.logger.info(
                f"[submit-rejected] match={match.id} team={team.id} round={round_number} order={question_order} reason={reason}"
            )
            return Result.failure(code, reason)

        verified = self.randomizer.verify(match.id, round_number, question_order, selected_slot)
        if not verified.ok:
            return verified
        is_correct = verified.data
        points = calculate_points(is_correct, elapsed, match.time_limit, self._base_points(match))

        submission = Submission(
            match_id=match.id,
            team_id=team.id,
            match_question_id=match_question.id,
            selected_position=selected_slot,
            is_correct=is_correct,
            points_earned=points,
            response_time=round(elapsed, 3),
            submitted_by=player.id,
            submitted_at=self.clock(),
        )
        try:
            self.store.insert_submission(submission)
        except IntegrityError as exc:
            if not is_unique_violation(exc):
                raise
            # Lost the race to a concurrent submit for the same team and question
            current_app.logger.info(
                f"[submit-race-lost] match={match.id} team={team.id} match_question={match_question.id}"
            )
            return Result.failure(ErrorCode.DUPLICATE_SUBMISSION, ALREADY_ANSWERED)

        if points:
            self._apply_score(team.id, points)

        current_app.logger.info(
            f"[submit] match={match.id} team={team.id} match_question={match_question.id} "
            f"slot={selected_slot} correct={is_correct} points={points}"
        )
        self._notify(submission, team)
        return Result.success(submission)

    def _apply_score(self, team_id, delta):
        # The submission is already committed; a failed score update must not undo it.
        try:
            self.store.adjust_team_score(team_id, delta)
        except SQLAlchemyError:
            self.store.rollback()
            current_app.logger.exception(f"[score-failed] team={team_id} delta={delta}")

    def _notify(self, submission, team):
        try:
            self.broadcaster.team_answered(submission, team)
            self.broadcaster.answer_locked(submission)
        except Exception:
            current_app.logger.exception(f"[broadcast-failed] submission={submission.id}")

    @guarded('check submission eligibility')
    def can_submit(self, match_id, team_id, round_number, question_order) -> Result[Eligibility]:
        match = self.store.get_match(match_id)
        if not match:
            return not_found('Match')
        if match.status == 'completed':
            return invalid_state(MATCH_COMPLETED)
        team = self.store.get_team(team_id)
        if not team or team.match_id != match.id:
            return not_found('Team')

        now = self.clock()
        code, reason, match_question, _ = self._check(match, team.id, round_number, question_order, now)
        if code == ErrorCode.TIMING_VIOLATION and reason == TIME_LIMIT_EXCEEDED:
            return Result.success(Eligibility(False, reason, 0.0))
        if code:
            return Result.success(Eligibility(False, reason))
        return Result.success(Eligibility(True, time_remaining=time_remaining(match_question.displayed_at, now, match.time_limit)))

    @guarded('delete answer')
    def unsubmit(self, submission_id, actor_id) -> Result[bool]:
        submission = self.store.get_submission(submission_id)
        if not submission:
            return not_found('Answer')
        match = self.store.get_match(submission.match_id)
        if not match or match.host_id != actor_id:
            return unauthorized()
        team_id, points = submission.team_id, submission.points_earned
        self.store.delete_submission(submission)
        current_app.logger.info(f"[unsubmit] submission={submission_id} team={team_id} points_reversed={points}")
        return Result.success(True)

    # ---- reads ----
    #
    # Rows carry is_correct and the breakdown carries the correct slot, so
    # anyone but the host only sees them once the question has closed.

    def _is_host(self, match_id, actor_id):
        match = self.store.get_match(match_id)
        return match is not None and actor_id is not None and match.host_id == actor_id

    def _revealed(self, match_question, actor_id):
        return match_question.completed_at is not None or self._is_host(match_question.match_id, actor_id)

    def _closed_question(self, match_id, round_number, question_order, actor_id):
        match_question = self.store.find_match_question(match_id, round_number, question_order)
        if not match_question:
            return None, Result.failure(ErrorCode.NOT_FOUND, QUESTION_NOT_FOUND)
        if not self._revealed(match_question, actor_id):
            return None, invalid_state(RESULTS_PENDING)
        return match_question, None

    @guarded('get team answer')
    def team_answer(self, match_id, team_id, round_number, question_order, actor_id=None) -> Result[Submission]:
        match_question, failure = self._closed_question(match_id, round_number, question_order, actor_id)
        if failure:
            return failure
        submission = self.store.find_submission(team_id, match_question.id)
        if not submission:
            return not_found('Answer')
        return Result.success(submission)

    @guarded('get team answers')
    def team_answers(self, team_id, actor_id=None) -> Result[list]:
        team = self.store.get_team(team_id)
        if not team:
            return not_found('Team')
        submissions = self.store.list_team_submissions(team.id)
        if not self._is_host(team.match_id, actor_id):
            submissions = [s for s in submissions if s.match_question.completed_at is not None]
        return Result.success(submissions)

    @guarded('get question answers')
    def question_answers(self, match_id, round_number, question_order, actor_id=None) -> Result[list]:
        match_question, failure = self._closed_question(match_id, round_number, question_order, actor_id)
        if failure:
            return failure
        rows = []
        for submission in self.store.list_question_submissions(match_question.id):
            row = submission.to_dict()
            row['team_name'] = submission.team.name if submission.team else 'Unknown Team'
            rows.append(row)
        return Result.success(rows)

    def fastest_answers(self, match_id, round_number, question_order, limit=5, actor_id=None) -> Result[list]:
        answers = self.question_answers(match_id, round_number, question_order, actor_id)
        if not answers.ok:
            return answers
        correct = [row for row in answers.data if row['is_correct']]
        correct.sort(key=lambda row: (row['response_time'], row['id']))
        return Result.success(correct[:limit])

    @guarded('get answer breakdown')
    def answer_breakdown(self, match_id, round_number, question_order, actor_id=None) -> Result[dict]:
        match_question, failure = self._closed_question(match_id, round_number, question_order, actor_id)
        if failure:
            return failure
        counts = [0] * ANSWER_COUNT
        submissions = self.store.list_question_submissions(match_question.id)
        for submission in submissions:
            counts[submission.selected_position] += 1
        return Result.success({
            'counts': counts,
            'correct_position': match_question.correct_position,
            'total': len(submissions),
        })

    @guarded('get answer statistics')
    def match_answer_stats(self, match_id) -> Result[dict]:
        if not self.store.get_match(match_id):
            return not_found('Match')
        submissions = self.store.list_match_submissions(match_id)
        total = len(submissions)
        return Result.success({
            'total_answers': total,
            'correct_answers': sum(1 for s in submissions if s.is_correct),
            'average_response_time': (sum(s.response_time or 0 for s in submissions) / total) if total else 0,
            'questions_answered': len({s.match_question_id for s in submissions}),
            'teams_participating': len({s.team_id for s in submissions}),
        })
