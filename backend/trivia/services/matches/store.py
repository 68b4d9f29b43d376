"""Store adapter: every read and write the engine makes against the database.

Writes that other callers may race on are expressed as single statements the
database evaluates atomically (conditional UPDATEs, ``score = score + delta``)
or rely on unique constraints; nothing here takes an in-process lock.
"""

from functools import wraps

from flask import current_app
from sqlalchemy import case, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from trivia.models import Match, MatchQuestion, Player, Question, QuestionUsage, Submission, Team
from .errors import ErrorCode, Result, store_error


def guarded(action):
    """Turn store and unexpected failures into typed results after a rollback."""
    def decorator(fn):
        @wraps(fn)
        def wrapper(self, *args, **kwargs):
            try:
                return fn(self, *args, **kwargs)
            except SQLAlchemyError as exc:
                self.store.rollback()
                current_app.logger.exception(f"[store-error] action={action}")
                return store_error(exc)
            except Exception as exc:
                self.store.rollback()
                current_app.logger.exception(f"[unknown-error] action={action}")
                return Result.failure(ErrorCode.UNKNOWN, f'Failed to {action}', details=str(exc))
        return wrapper
    return decorator


def is_unique_violation(exc: IntegrityError) -> bool:
    orig = getattr(exc, 'orig', None)
    if getattr(orig, 'pgcode', None) == '23505':
        return True
    text = str(orig if orig is not None else exc)
    return 'UNIQUE constraint failed' in text or 'duplicate key value' in text


class MatchStore:
    def __init__(self, db):
        self.db = db

    @property
    def session(self):
        return self.db.session

    def add(self, obj, commit=True):
        self.session.add(obj)
        if commit:
            self.session.commit()
        return obj

    def commit(self):
        self.session.commit()

    def rollback(self):
        self.session.rollback()

    # ---- reads ----

    def get_match(self, match_id):
        return self.session.get(Match, match_id)

    def get_team(self, team_id):
        return self.session.get(Team, team_id)

    def get_player(self, player_id):
        return self.session.get(Player, player_id)

    def get_submission(self, submission_id):
        return self.session.get(Submission, submission_id)

    def get_match_question(self, match_question_id):
        return self.session.get(MatchQuestion, match_question_id)

    def find_match_question(self, match_id, round_number, question_order):
        return MatchQuestion.query.filter_by(
            match_id=match_id, round_number=round_number, question_order=question_order
        ).first()

    def list_match_questions(self, match_id):
        return (
            MatchQuestion.query.filter_by(match_id=match_id)
            .order_by(MatchQuestion.round_number, MatchQuestion.question_order)
            .all()
        )

    def count_match_questions(self, match_id):
        return MatchQuestion.query.filter_by(match_id=match_id).count()

    def list_teams(self, match_id):
        return Team.query.filter_by(match_id=match_id).order_by(Team.created_at, Team.id).all()

    def count_teams(self, match_id):
        return Team.query.filter_by(match_id=match_id).count()

    def find_team_by_join_code(self, match_id, join_code):
        return Team.query.filter_by(match_id=match_id, join_code=join_code).first()

    def find_team_by_name(self, match_id, name):
        return Team.query.filter_by(match_id=match_id, name=name).first()

    def list_team_players(self, team_id):
        return Player.query.filter_by(team_id=team_id).order_by(Player.joined_at, Player.id).all()

    def count_team_players(self, team_id):
        return Player.query.filter_by(team_id=team_id).count()

    def find_player_by_name(self, match_id, display_name):
        return Player.query.filter_by(match_id=match_id, display_name=display_name).first()

    def find_submission(self, team_id, match_question_id):
        return Submission.query.filter_by(team_id=team_id, match_question_id=match_question_id).first()

    def list_question_submissions(self, match_question_id):
        return (
            Submission.query.filter_by(match_question_id=match_question_id)
            .order_by(Submission.submitted_at, Submission.id)
            .all()
        )

    def list_team_submissions(self, team_id):
        return (
            Submission.query.join(MatchQuestion, Submission.match_question_id == MatchQuestion.id)
            .filter(Submission.team_id == team_id)
            .order_by(MatchQuestion.round_number, MatchQuestion.question_order)
            .all()
        )

    def list_match_submissions(self, match_id):
        return Submission.query.filter_by(match_id=match_id).all()

    def available_questions(self, host_id, limit=None, categories=None, difficulty=None):
        """Questions this host has not used in an earlier match."""
        used = select(QuestionUsage.question_id).where(QuestionUsage.host_id == host_id)
        query = Question.query.filter(~Question.id.in_(used))
        if categories:
            query = query.filter(Question.category.in_(categories))
        if difficulty:
            query = query.filter(Question.difficulty == difficulty)
        query = query.order_by(Question.id)
        if limit:
            query = query.limit(limit)
        return query.all()

    # ---- atomic writes ----

    def transition_match(self, match_id, expected, changes):
        """Apply ``changes`` only if the row still matches ``expected``.

        Returns True when this caller won; False means another writer moved
        the match first and nothing was changed.
        """
        updated = (
            Match.query.filter_by(id=match_id, **expected)
            .update(changes, synchronize_session=False)
        )
        self.session.commit()
        return updated == 1

    def mark_question_displayed(self, match_question_id, displayed_at):
        """Set displayed_at only if it is still NULL."""
        updated = (
            MatchQuestion.query.filter(MatchQuestion.id == match_question_id, MatchQuestion.displayed_at.is_(None))
            .update({MatchQuestion.displayed_at: displayed_at}, synchronize_session=False)
        )
        self.session.commit()
        return updated == 1

    def mark_question_completed(self, match_question_id, completed_at):
        updated = (
            MatchQuestion.query.filter(MatchQuestion.id == match_question_id, MatchQuestion.completed_at.is_(None))
            .update({MatchQuestion.completed_at: completed_at}, synchronize_session=False)
        )
        self.session.commit()
        return updated == 1

    def insert_submission(self, submission):
        """Insert in its own transaction; IntegrityError propagates after rollback."""
        self.session.add(submission)
        try:
            self.session.commit()
        except IntegrityError:
            self.session.rollback()
            raise
        return submission

    def _score_delta_statement(self, team_id, delta):
        new_score = Team.score + delta
        return (
            Team.query.filter_by(id=team_id)
            .update({Team.score: case((new_score < 0, 0), else_=new_score)}, synchronize_session=False)
        )

    def adjust_team_score(self, team_id, delta):
        """``score = max(0, score + delta)`` evaluated by the database."""
        updated = self._score_delta_statement(team_id, delta)
        self.session.commit()
        return updated == 1

    def delete_submission(self, submission):
        """Delete a submission and reverse its points in one transaction."""
        team_id = submission.team_id
        points = int(submission.points_earned or 0)
        self.session.delete(submission)
        if points:
            self._score_delta_statement(team_id, -points)
        self.session.commit()

    def record_question_usage(self, host_id, question_ids, match_id, used_at):
        for question_id in question_ids:
            self.session.add(QuestionUsage(host_id=host_id, question_id=question_id, match_id=match_id, used_at=used_at))

    def claim_captain(self, team_id, player_id):
        """Make ``player_id`` captain only if the team has none yet."""
        claimed = (
            Team.query.filter(Team.id == team_id, Team.captain_id.is_(None))
            .update({Team.captain_id: player_id}, synchronize_session=False)
        )
        self.session.commit()
        return claimed == 1
