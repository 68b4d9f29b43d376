from trivia import db, bcrypt
from trivia.time_utils import utcnow_naive, isoformat
from flask_login import UserMixin
import json

MATCH_STATUSES = ('setup', 'active', 'paused', 'completed')


class User(UserMixin, db.Model):
    __tablename__ = 'user'
    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(64), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(256), nullable=False)

    def set_password(self, password):
        self.password_hash = bcrypt.generate_password_hash(password).decode('utf-8')

    def check_password(self, password):
        return bcrypt.check_password_hash(self.password_hash, password)

    def to_dict(self):
        return {
            'id': self.id,
            'username': self.username,
        }


class Match(db.Model):
    __tablename__ = 'match'
    __table_args__ = (
        db.CheckConstraint("status IN ('setup', 'active', 'paused', 'completed')", name='ck_match_status'),
        db.CheckConstraint('current_round >= 1 AND current_round <= max_rounds', name='ck_match_round'),
        db.CheckConstraint('current_question >= 1 AND current_question <= questions_per_round', name='ck_match_question'),
    )
    id = db.Column(db.Integer, primary_key=True)
    host_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, index=True)
    title = db.Column(db.String(100), nullable=False)
    status = db.Column(db.String(16), nullable=False, default='setup')
    current_round = db.Column(db.Integer, nullable=False, default=1)
    current_question = db.Column(db.Integer, nullable=False, default=1)
    max_rounds = db.Column(db.Integer, nullable=False)
    questions_per_round = db.Column(db.Integer, nullable=False)
    settings = db.Column(db.Text, nullable=True)  # JSON-encoded match configuration
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow_naive)
    started_at = db.Column(db.DateTime, nullable=True)
    ended_at = db.Column(db.DateTime, nullable=True)

    teams = db.relationship('Team', back_populates='match', order_by='Team.created_at')
    match_questions = db.relationship('MatchQuestion', back_populates='match', lazy='dynamic')

    @property
    def settings_dict(self):
        try:
            return json.loads(self.settings) if self.settings else {}
        except (TypeError, ValueError):
            return {}

    @property
    def time_limit(self):
        """Seconds allowed per question; 0 means unlimited."""
        return int(self.settings_dict.get('time_per_question') or 0)

    @property
    def points_per_correct(self):
        return int(self.settings_dict.get('points_per_correct') or 0)

    @property
    def allow_late_joins(self):
        return bool(self.settings_dict.get('allow_late_joins', True))

    @property
    def total_questions(self):
        return self.max_rounds * self.questions_per_round

    def to_dict(self):
        return {
            'id': self.id,
            'host_id': self.host_id,
            'title': self.title,
            'status': self.status,
            'current_round': self.current_round,
            'current_question': self.current_question,
            'max_rounds': self.max_rounds,
            'questions_per_round': self.questions_per_round,
            'settings': self.settings_dict,
            'created_at': isoformat(self.created_at),
            'started_at': isoformat(self.started_at),
            'ended_at': isoformat(self.ended_at),
        }


class Question(db.Model):
    __tablename__ = 'question'
    id = db.Column(db.Integer, primary_key=True)
    category = db.Column(db.String(64), nullable=False, index=True)
    subcategory = db.Column(db.String(64), nullable=True)
    difficulty = db.Column(db.String(16), nullable=True)
    text = db.Column(db.Text, nullable=False)
    # `a` is always the correct answer; the others are distractors
    a = db.Column(db.Text, nullable=False)
    b = db.Column(db.Text, nullable=True)
    c = db.Column(db.Text, nullable=True)
    d = db.Column(db.Text, nullable=True)

    @property
    def raw_answers(self):
        return [self.a, self.b, self.c, self.d]


class QuestionUsage(db.Model):
    __tablename__ = 'question_usage'
    __table_args__ = (
        db.UniqueConstraint('host_id', 'question_id', name='uq_question_usage_host_question'),
    )
    id = db.Column(db.Integer, primary_key=True)
    host_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False)
    question_id = db.Column(db.Integer, db.ForeignKey('question.id'), nullable=False)
    match_id = db.Column(db.Integer, db.ForeignKey('match.id'), nullable=False, index=True)
    used_at = db.Column(db.DateTime, nullable=False, default=utcnow_naive)


class MatchQuestion(db.Model):
    __tablename__ = 'match_question'
    __table_args__ = (
        db.UniqueConstraint('match_id', 'round_number', 'question_order', name='uq_match_question_slot'),
        db.UniqueConstraint('match_id', 'question_id', name='uq_match_question_question'),
        db.CheckConstraint('correct_position >= 0 AND correct_position <= 3', name='ck_match_question_correct'),
    )
    id = db.Column(db.Integer, primary_key=True)
    match_id = db.Column(db.Integer, db.ForeignKey('match.id'), nullable=False)
    question_id = db.Column(db.Integer, db.ForeignKey('question.id'), nullable=False)
    round_number = db.Column(db.Integer, nullable=False)
    question_order = db.Column(db.Integer, nullable=False)
    shuffled_answers = db.Column(db.Text, nullable=False)  # JSON list of exactly 4 strings
    correct_position = db.Column(db.Integer, nullable=False)
    displayed_at = db.Column(db.DateTime, nullable=True)
    completed_at = db.Column(db.DateTime, nullable=True)

    match = db.relationship('Match', back_populates='match_questions')
    question = db.relationship('Question')

    @property
    def answers(self):
        return json.loads(self.shuffled_answers)

    def to_dict(self, include_correct=False):
        question = self.question
        payload = {
            'id': self.id,
            'match_id': self.match_id,
            'question_id': self.question_id,
            'round_number': self.round_number,
            'question_order': self.question_order,
            'text': question.text if question else None,
            'category': question.category if question else None,
            'difficulty': question.difficulty if question else None,
            'answers': self.answers,
            'displayed_at': isoformat(self.displayed_at),
            'completed_at': isoformat(self.completed_at),
        }
        if include_correct:
            payload['correct_position'] = self.correct_position
        return payload


class Team(db.Model):
    __tablename__ = 'team'
    __table_args__ = (
        db.UniqueConstraint('match_id', 'name', name='uq_team_match_name'),
        db.UniqueConstraint('match_id', 'join_code', name='uq_team_match_join_code'),
        db.CheckConstraint('score >= 0', name='ck_team_score'),
    )
    id = db.Column(db.Integer, primary_key=True)
    match_id = db.Column(db.Integer, db.ForeignKey('match.id'), nullable=False, index=True)
    name = db.Column(db.String(30), nullable=False)
    join_code = db.Column(db.String(6), nullable=False, index=True)
    captain_id = db.Column(db.Integer, db.ForeignKey('player.id', name='fk_team_captain_id', use_alter=True), nullable=True)
    score = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow_naive)

    match = db.relationship('Match', back_populates='teams')
    players = db.relationship('Player', back_populates='team', foreign_keys='Player.team_id')

    def to_dict(self):
        return {
            'id': self.id,
            'match_id': self.match_id,
            'name': self.name,
            'join_code': self.join_code,
            'captain_id': self.captain_id,
            'score': self.score,
            'created_at': isoformat(self.created_at),
        }


class Player(db.Model):
    __tablename__ = 'player'
    __table_args__ = (
        db.UniqueConstraint('match_id', 'display_name', name='uq_player_match_name'),
    )
    id = db.Column(db.Integer, primary_key=True)
    match_id = db.Column(db.Integer, db.ForeignKey('match.id'), nullable=False, index=True)
    team_id = db.Column(db.Integer, db.ForeignKey('team.id'), nullable=True, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=True)
    display_name = db.Column(db.String(20), nullable=False)
    joined_at = db.Column(db.DateTime, nullable=False, default=utcnow_naive)

    team = db.relationship('Team', back_populates='players', foreign_keys=[team_id])

    def to_dict(self):
        return {
            'id': self.id,
            'match_id': self.match_id,
            'team_id': self.team_id,
            'user_id': self.user_id,
            'display_name': self.display_name,
            'joined_at': isoformat(self.joined_at),
        }


class Submission(db.Model):
    __tablename__ = 'submission'
    __table_args__ = (
        # One answer per team per question; this is what settles concurrent submits
        db.UniqueConstraint('team_id', 'match_question_id', name='uq_submission_team_question'),
        db.CheckConstraint('selected_position >= 0 AND selected_position <= 3', name='ck_submission_position'),
        db.CheckConstraint('points_earned >= 0', name='ck_submission_points'),
    )
    id = db.Column(db.Integer, primary_key=True)
    match_id = db.Column(db.Integer, db.ForeignKey('match.id'), nullable=False, index=True)
    team_id = db.Column(db.Integer, db.ForeignKey('team.id'), nullable=False)
    match_question_id = db.Column(db.Integer, db.ForeignKey('match_question.id'), nullable=False, index=True)
    selected_position = db.Column(db.Integer, nullable=False)
    is_correct = db.Column(db.Boolean, nullable=False)
    points_earned = db.Column(db.Integer, nullable=False, default=0)
    response_time = db.Column(db.Float, nullable=False, default=0.0)
    submitted_by = db.Column(db.Integer, db.ForeignKey('player.id'), nullable=False)
    submitted_at = db.Column(db.DateTime, nullable=False, default=utcnow_naive)

    team = db.relationship('Team')
    match_question = db.relationship('MatchQuestion')

    def to_dict(self):
        return {
            'id': self.id,
            'match_id': self.match_id,
            'team_id': self.team_id,
            'match_question_id': self.match_question_id,
            'selected_position': self.selected_position,
            'is_correct': self.is_correct,
            'points_earned': self.points_earned,
            'response_time': self.response_time,
            'submitted_by': self.submitted_by,
            'submitted_at': isoformat(self.submitted_at),
        }
