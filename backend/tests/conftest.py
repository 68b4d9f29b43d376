import os
import sys
from datetime import datetime, timedelta

import pytest
from flask import g

# Ensure the backend root (containing the `trivia` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from trivia import create_app, db, socketio


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    BCRYPT_LOG_ROUNDS = 4
    DEFAULT_TIME_PER_QUESTION_SEC = 0
    DEFAULT_POINTS_PER_CORRECT = 1000
    DEFAULT_ALLOW_LATE_JOINS = True
    MIN_TEAMS_TO_START = 1
    JOIN_CODE_MAX_ATTEMPTS = 10
    AUTO_ADVANCE_ENABLED = False
    AUTO_ADVANCE_GRACE_SEC = 0


class FrozenClock:
    """Stand-in for utcnow_naive that only moves when told to."""

    def __init__(self, start=None):
        self.now = start or datetime(2026, 1, 1, 12, 0, 0)

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now = self.now + timedelta(seconds=seconds)


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)

    # The app context below stays open for the whole test, so every request
    # reuses its `g`. Drop Flask-Login's cached user so each request resolves
    # its own, as it would with a fresh per-request context.
    @application.before_request
    def _reset_cached_login_user():
        g.pop('_login_user', None)

    with application.app_context():
        # Ensure models are imported so tables are created
        import trivia.models  # noqa: F401
        db.create_all()
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def sio_client(flask_app):
    test_client = socketio.test_client(
        flask_app,
        flask_test_client=flask_app.test_client(),
        namespace='/ws'
    )
    yield test_client
    if test_client.is_connected('/ws'):
        test_client.disconnect(namespace='/ws')


@pytest.fixture()
def engine(flask_app):
    return flask_app.extensions['match_engine']


@pytest.fixture()
def clock(engine):
    frozen = FrozenClock()
    engine.state_machine.clock = frozen
    engine.submissions.clock = frozen
    return frozen


@pytest.fixture()
def make_host(flask_app):
    from trivia.models import User

    def _make(username='host'):
        user = User(username=username)
        user.set_password('password')
        db.session.add(user)
        db.session.commit()
        return user
    return _make


@pytest.fixture()
def seed_questions(flask_app):
    from trivia.models import Question

    def _seed(count, category='General', difficulty=None):
        questions = []
        for idx in range(count):
            question = Question(
                category=category,
                difficulty=difficulty,
                text=f'{category} question {idx + 1}?',
                a=f'Right {idx + 1}',
                b=f'Wrong {idx + 1}b',
                c=f'Wrong {idx + 1}c',
                d=f'Wrong {idx + 1}d',
            )
            db.session.add(question)
            questions.append(question)
        db.session.commit()
        return questions
    return _seed


@pytest.fixture()
def setup_match(engine, make_host, seed_questions):
    """Host, questions, match, teams (one player each); optionally started."""

    def _setup(rounds=2, per_round=2, settings=None, team_names=('Quizzards', 'Brainiacs'), start=True,
               host_name='host'):
        host = make_host(host_name)
        seed_questions(rounds * per_round)
        match = engine.state_machine.create_match(host.id, 'Quiz Night', rounds, per_round, settings).data
        teams, players = [], []
        for idx, name in enumerate(team_names):
            team = engine.teams.create_team(match.id, name).data
            player = engine.teams.join_team(match.id, f'Player {idx + 1}', team.join_code).data
            teams.append(team)
            players.append(player)
        if start:
            assert engine.state_machine.prepare_questions(match.id, host.id).ok
            assert engine.state_machine.start(match.id, host.id).ok
        return host, match, teams, players
    return _setup
