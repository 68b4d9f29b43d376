import random
import string
import time

from flask import current_app
from sqlalchemy.exc import IntegrityError

from trivia.models import Player, Team
from .errors import Result, invalid_state, not_found, unauthorized, validation_error
from .store import guarded, is_unique_violation

JOIN_CODE_LENGTH = 6
JOIN_CODE_ALPHABET = string.ascii_uppercase + string.digits
TEAM_NAME_LENGTH = (2, 30)
DISPLAY_NAME_LENGTH = (2, 20)


def generate_join_code(rng=random):
    return ''.join(rng.choices(JOIN_CODE_ALPHABET, k=JOIN_CODE_LENGTH))


def valid_join_code(code):
    return bool(code) and len(code) == JOIN_CODE_LENGTH and all(ch in JOIN_CODE_ALPHABET for ch in code)


def _clean_name(value, bounds):
    name = (value or '').strip()
    low, high = bounds
    if not low <= len(name) <= high:
        return None
    return name


def can_join(match):
    if match.status == 'setup':
        return True
    return match.status == 'active' and match.allow_late_joins


class TeamRegistry:
    """Team creation, join codes and membership."""

    def __init__(self, store, rng=None):
        self.store = store
        self.rng = rng or random.Random()

    def unique_join_code(self, match_id):
        attempts = int(current_app.config.get('JOIN_CODE_MAX_ATTEMPTS', 10))
        for _ in range(attempts):
            code = generate_join_code(self.rng)
            if not self.store.find_team_by_join_code(match_id, code):
                return code
        # Fall back to a timestamp suffix after repeated collisions
        suffix = str(int(time.time() * 1000))[-4:]
        code = generate_join_code(self.rng)[:2] + suffix
        current_app.logger.warning(f"[join-code-fallback] match={match_id} code={code}")
        return code

    @guarded('create team')
    def create_team(self, match_id, name) -> Result[Team]:
        team_name = _clean_name(name, TEAM_NAME_LENGTH)
        if not team_name:
            return validation_error('Team name must be 2-30 characters')
        match = self.store.get_match(match_id)
        if not match:
            return not_found('Match')
        if match.status == 'completed':
            return invalid_state('Match is already completed')
        if self.store.find_team_by_name(match.id, team_name):
            return validation_error('Team name already taken')

        team = Team(match_id=match.id, name=team_name, join_code=self.unique_join_code(match.id))
        try:
            self.store.add(team)
        except IntegrityError as exc:
            self.store.rollback()
            if not is_unique_violation(exc):
                raise
            return validation_error('Team name or join code already in use')
        current_app.logger.info(f"[team-created] match={match.id} team={team.id} code={team.join_code}")
        return Result.success(team)

    @guarded('find team')
    def team_by_join_code(self, match_id, join_code) -> Result[Team]:
        team = self.store.find_team_by_join_code(match_id, (join_code or '').strip().upper())
        if not team:
            return not_found('Team')
        return Result.success(team)

    @guarded('list teams')
    def list_teams(self, match_id) -> Result[list]:
        if not self.store.get_match(match_id):
            return not_found('Match')
        return Result.success(self.store.list_teams(match_id))

    def is_team_name_available(self, match_id, name):
        return self.store.find_team_by_name(match_id, (name or '').strip()) is None

    @guarded('join team')
    def join_team(self, match_id, display_name, join_code, user_id=None) -> Result[Player]:
        player_name = _clean_name(display_name, DISPLAY_NAME_LENGTH)
        if not player_name:
            return validation_error('Display name must be 2-20 characters')
        code = (join_code or '').strip().upper()
        if not valid_join_code(code):
            return validation_error('Join code must be 6 letters or digits')
        match = self.store.get_match(match_id)
        if not match:
            return not_found('Match')
        if not can_join(match):
            return invalid_state('Match is not accepting new players')
        team = self.store.find_team_by_join_code(match.id, code)
        if not team:
            return not_found('Team')
        if self.store.find_player_by_name(match.id, player_name):
            return validation_error('Display name already taken')

        player = Player(match_id=match.id, team_id=team.id, user_id=user_id, display_name=player_name)
        try:
            self.store.add(player)
        except IntegrityError as exc:
            self.store.rollback()
            if not is_unique_violation(exc):
                raise
            return validation_error('Display name already taken')

        # First member becomes captain
        claimed = self.store.claim_captain(team.id, player.id)
        current_app.logger.info(
            f"[join] match={match.id} team={team.id} player={player.id} captain={claimed}"
        )
        return Result.success(player)

    @guarded('leave team')
    def leave_team(self, player_id) -> Result[bool]:
        player = self.store.get_player(player_id)
        if not player:
            return not_found('Player')
        if player.team_id is None:
            return Result.success(True)
        team = self.store.get_team(player.team_id)
        if team and team.captain_id == player.id:
            team.captain_id = None
        player.team_id = None
        self.store.commit()
        return Result.success(True)

    def _may_manage(self, team, actor_id):
        if actor_id is None:
            return False
        match = self.store.get_match(team.match_id)
        if match and match.host_id == actor_id:
            return True
        captain = self.store.get_player(team.captain_id) if team.captain_id else None
        return captain is not None and captain.user_id == actor_id

    @guarded('set captain')
    def set_captain(self, team_id, player_id, actor_id) -> Result[Team]:
        """Hand the captaincy to a team member; the match host or the current captain may do this."""
        team = self.store.get_team(team_id)
        if not team:
            return not_found('Team')
        if not self._may_manage(team, actor_id):
            current_app.logger.warning(f"[unauthorized] team={team.id} actor={actor_id} action=set-captain")
            return unauthorized('Only the host or the team captain may change the captain')
        player = self.store.get_player(player_id)
        if not player or player.team_id != team.id:
            return validation_error('Captain must be a member of the team')
        team.captain_id = player.id
        self.store.commit()
        return Result.success(team)

    @guarded('delete team')
    def delete_team(self, team_id, actor_id) -> Result[bool]:
        team = self.store.get_team(team_id)
        if not team:
            return not_found('Team')
        match = self.store.get_match(team.match_id)
        if not match or match.host_id != actor_id:
            return unauthorized()
        if self.store.count_team_players(team.id):
            return invalid_state('Cannot delete team with players')
        if self.store.list_team_submissions(team.id):
            return invalid_state('Cannot delete team with recorded answers')
        self.store.session.delete(team)
        self.store.commit()
        current_app.logger.info(f"[team-deleted] match={match.id} team={team_id}")
        return Result.success(True)
