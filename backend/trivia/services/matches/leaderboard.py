from dataclasses import dataclass

from sqlalchemy import case, func

from trivia.models import Player, Submission, Team
from .errors import Result, not_found
from .store import guarded


@dataclass(frozen=True)
class LeaderboardEntry:
    team: Team
    score: int
    correct_count: int
    total_count: int
    player_count: int
    rank: int

    def to_dict(self):
        return {
            'team': self.team.to_dict(),
            'rank': self.rank,
            'score': self.score,
            'correct_count': self.correct_count,
            'total_count': self.total_count,
            'player_count': self.player_count,
        }


def standing_key(team):
    """Score descending, then earlier-created team first, then lower id."""
    return (-(team.score or 0), team.created_at, team.id)


class LeaderboardAggregator:
    def __init__(self, store):
        self.store = store

    def _submission_counts(self, match_id):
        rows = (
            self.store.session.query(
                Submission.team_id,
                func.count(Submission.id),
                func.sum(case((Submission.is_correct.is_(True), 1), else_=0)),
            )
            .filter(Submission.match_id == match_id)
            .group_by(Submission.team_id)
            .all()
        )
        return {team_id: (int(correct or 0), int(total or 0)) for team_id, total, correct in rows}

    def _player_counts(self, match_id):
        rows = (
            self.store.session.query(Player.team_id, func.count(Player.id))
            .filter(Player.match_id == match_id, Player.team_id.isnot(None))
            .group_by(Player.team_id)
            .all()
        )
        return {team_id: int(count) for team_id, count in rows}

    @guarded('get leaderboard')
    def rank(self, match_id) -> Result[list]:
        """Ranked standings; teams without answers still appear with zero counts.

        Reads are read-committed: an answer committed after the read began may
        be missing from this snapshot.
        """
        if not self.store.get_match(match_id):
            return not_found('Match')
        teams = sorted(self.store.list_teams(match_id), key=standing_key)
        counts = self._submission_counts(match_id)
        players = self._player_counts(match_id)
        entries = []
        for position, team in enumerate(teams, start=1):
            correct, total = counts.get(team.id, (0, 0))
            entries.append(LeaderboardEntry(
                team=team,
                score=team.score or 0,
                correct_count=correct,
                total_count=total,
                player_count=players.get(team.id, 0),
                rank=position,
            ))
        return Result.success(entries)

    @guarded('get team statistics')
    def team_stats(self, team_id) -> Result[dict]:
        team = self.store.get_team(team_id)
        if not team:
            return not_found('Team')
        submissions = self.store.list_team_submissions(team.id)
        total = len(submissions)
        correct = sum(1 for s in submissions if s.is_correct)
        return Result.success({
            'team_id': team.id,
            'correct_answers': correct,
            'total_answers': total,
            'accuracy_percentage': round(100.0 * correct / total, 1) if total else 0.0,
            'average_response_time': (sum(s.response_time or 0 for s in submissions) / total) if total else 0,
            'total_points': sum(s.points_earned or 0 for s in submissions),
        })

    def question_results(self, match_question_id):
        """Per-team outcome rows for one question, in submission order."""
        results = []
        for submission in self.store.list_question_submissions(match_question_id):
            results.append({
                'team_id': submission.team_id,
                'team_name': submission.team.name if submission.team else 'Unknown Team',
                'selected_position': submission.selected_position,
                'is_correct': submission.is_correct,
                'points_earned': submission.points_earned,
                'response_time': submission.response_time,
            })
        return results
