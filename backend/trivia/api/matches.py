from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required

from trivia.services.matches import get_engine

matches = Blueprint('matches', __name__)


def _actor_id():
    return current_user.id if current_user.is_authenticated else None


def _int_arg(name):
    try:
        return int(request.args.get(name))
    except (TypeError, ValueError):
        return None


def _render(result, serialize=lambda data: data, status=200):
    if not result.ok:
        return jsonify(result.error.to_dict()), result.error.http_status
    return jsonify(serialize(result.data)), status


def _match_dict(match):
    return match.to_dict()


def _team_dict(team):
    return team.to_dict()


def _question_list(include_correct):
    return lambda rows: [mq.to_dict(include_correct=include_correct) for mq in rows]


# ---- lifecycle (host) ----

@matches.route('', methods=['POST'])
@login_required
def create_match():
    data = request.get_json(silent=True) or {}
    result = get_engine().state_machine.create_match(
        current_user.id,
        data.get('title'),
        data.get('max_rounds'),
        data.get('questions_per_round'),
        data.get('settings') or {},
    )
    return _render(result, _match_dict, 201)


@matches.route('/<int:match_id>', methods=['GET'])
def get_match_state(match_id):
    return _render(get_engine().state_machine.get_match(match_id), _match_dict)


@matches.route('/<int:match_id>/questions', methods=['GET'])
def list_match_questions(match_id):
    result = get_engine().state_machine.list_questions(match_id, _actor_id())
    return _render(result, _question_list(include_correct=True))


@matches.route('/<int:match_id>/questions/prepare', methods=['POST'])
def prepare_questions(match_id):
    result = get_engine().state_machine.prepare_questions(match_id, _actor_id())
    return _render(result, _question_list(include_correct=True))


@matches.route('/<int:match_id>/start', methods=['POST'])
def start_match(match_id):
    engine = get_engine()
    match = engine.store.get_match(match_id)
    # Fill any empty question slots first so a host can start in one step
    if match and match.status == 'setup' and match.host_id == _actor_id():
        prepared = engine.state_machine.prepare_questions(match_id, _actor_id())
        if not prepared.ok:
            return _render(prepared)
    return _render(engine.state_machine.start(match_id, _actor_id()), _match_dict)


@matches.route('/<int:match_id>/pause', methods=['POST'])
def pause_match(match_id):
    return _render(get_engine().state_machine.pause(match_id, _actor_id()), _match_dict)


@matches.route('/<int:match_id>/resume', methods=['POST'])
def resume_match(match_id):
    return _render(get_engine().state_machine.resume(match_id, _actor_id()), _match_dict)


@matches.route('/<int:match_id>/advance', methods=['POST'])
def advance_question(match_id):
    return _render(get_engine().state_machine.advance_question(match_id, _actor_id()), _match_dict)


@matches.route('/<int:match_id>/complete', methods=['POST'])
def complete_match(match_id):
    return _render(get_engine().state_machine.complete(match_id, _actor_id()), _match_dict)


@matches.route('/<int:match_id>/display', methods=['POST'])
def display_question(match_id):
    result = get_engine().state_machine.display_question(match_id, _actor_id())
    return _render(result, lambda mq: mq.to_dict())


@matches.route('/<int:match_id>/current-question', methods=['GET'])
def current_question(match_id):
    return _render(get_engine().state_machine.current_question(match_id), lambda mq: mq.to_dict())


# ---- teams and players ----

@matches.route('/<int:match_id>/teams', methods=['POST'])
def create_team(match_id):
    data = request.get_json(silent=True) or {}
    return _render(get_engine().teams.create_team(match_id, data.get('name')), _team_dict, 201)


@matches.route('/<int:match_id>/teams', methods=['GET'])
def list_teams(match_id):
    return _render(get_engine().teams.list_teams(match_id), lambda teams: [t.to_dict() for t in teams])


@matches.route('/<int:match_id>/teams/available', methods=['GET'])
def team_name_available(match_id):
    name = request.args.get('name', '')
    return jsonify({'name': name, 'available': get_engine().teams.is_team_name_available(match_id, name)})


@matches.route('/<int:match_id>/join', methods=['POST'])
def join_team(match_id):
    data = request.get_json(silent=True) or {}
    result = get_engine().teams.join_team(match_id, data.get('display_name'), data.get('join_code'), _actor_id())
    return _render(result, lambda player: player.to_dict(), 201)


@matches.route('/teams/<int:team_id>/captain', methods=['POST'])
def set_captain(team_id):
    data = request.get_json(silent=True) or {}
    return _render(get_engine().teams.set_captain(team_id, data.get('player_id'), _actor_id()), _team_dict)


@matches.route('/teams/<int:team_id>', methods=['DELETE'])
def delete_team(team_id):
    return _render(get_engine().teams.delete_team(team_id, _actor_id()), lambda ok: {'deleted': ok})


@matches.route('/players/<int:player_id>/leave', methods=['POST'])
def leave_team(player_id):
    return _render(get_engine().teams.leave_team(player_id), lambda ok: {'left': ok})


# ---- answers ----

@matches.route('/<int:match_id>/answers', methods=['POST'])
def submit_answer(match_id):
    data = request.get_json(silent=True) or {}
    result = get_engine().submissions.submit(
        match_id,
        data.get('team_id'),
        data.get('round_number'),
        data.get('question_order'),
        data.get('selected_position'),
        data.get('player_id'),
    )
    return _render(result, lambda submission: submission.to_dict(), 201)


@matches.route('/<int:match_id>/can-submit', methods=['GET'])
def can_submit(match_id):
    result = get_engine().submissions.can_submit(
        match_id, _int_arg('team_id'), _int_arg('round_number'), _int_arg('question_order')
    )
    return _render(result, lambda eligibility: eligibility.to_dict())


@matches.route('/answers/<int:submission_id>', methods=['DELETE'])
def delete_answer(submission_id):
    return _render(get_engine().submissions.unsubmit(submission_id, _actor_id()), lambda ok: {'deleted': ok})


@matches.route('/<int:match_id>/questions/<int:round_number>/<int:question_order>/answers', methods=['GET'])
def question_answers(match_id, round_number, question_order):
    return _render(get_engine().submissions.question_answers(match_id, round_number, question_order, _actor_id()))


@matches.route('/<int:match_id>/questions/<int:round_number>/<int:question_order>/fastest', methods=['GET'])
def fastest_answers(match_id, round_number, question_order):
    limit = _int_arg('limit') or 5
    return _render(get_engine().submissions.fastest_answers(
        match_id, round_number, question_order, limit, _actor_id()
    ))


@matches.route('/<int:match_id>/questions/<int:round_number>/<int:question_order>/breakdown', methods=['GET'])
def answer_breakdown(match_id, round_number, question_order):
    return _render(get_engine().submissions.answer_breakdown(match_id, round_number, question_order, _actor_id()))


@matches.route('/teams/<int:team_id>/answers', methods=['GET'])
def team_answers(team_id):
    result = get_engine().submissions.team_answers(team_id, _actor_id())
    return _render(result, lambda rows: [s.to_dict() for s in rows])


# ---- standings ----

@matches.route('/<int:match_id>/leaderboard', methods=['GET'])
def leaderboard(match_id):
    return _render(get_engine().leaderboard.rank(match_id), lambda entries: [e.to_dict() for e in entries])


@matches.route('/<int:match_id>/stats', methods=['GET'])
def match_stats(match_id):
    return _render(get_engine().submissions.match_answer_stats(match_id))


@matches.route('/teams/<int:team_id>/stats', methods=['GET'])
def team_stats(team_id):
    return _render(get_engine().leaderboard.team_stats(team_id))
