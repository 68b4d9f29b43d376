from trivia.time_utils import utcnow_naive
from .broadcast import Broadcaster
from .leaderboard import LeaderboardAggregator
from .questions import QuestionSelector
from .randomizer import QuestionRandomizer
from .scheduler import AutoAdvanceScheduler
from .state_machine import MatchStateMachine
from .store import MatchStore
from .submissions import SubmissionGate
from .teams import TeamRegistry


class MatchEngine:
    """The match components, wired once around a shared store and broadcaster."""

    def __init__(self, store, broadcaster, scheduler=None, clock=utcnow_naive):
        self.store = store
        self.broadcaster = broadcaster
        self.randomizer = QuestionRandomizer(store)
        self.submissions = SubmissionGate(store, self.randomizer, broadcaster, clock)
        self.leaderboard = LeaderboardAggregator(store)
        self.selector = QuestionSelector(store, self.randomizer)
        self.teams = TeamRegistry(store)
        self.state_machine = MatchStateMachine(
            store, self.selector, self.leaderboard, broadcaster, scheduler, clock
        )

    @classmethod
    def from_app(cls, app):
        from trivia import db, socketio
        return cls(MatchStore(db), Broadcaster(socketio), AutoAdvanceScheduler(app, socketio))
