from flask_socketio import join_room, leave_room, emit
from trivia import socketio
from trivia.services.matches.broadcast import NAMESPACE, match_room, team_room


def _positive_int(value):
    try:
        number = int(value)
    except (TypeError, ValueError):
        return None
    return number if number > 0 else None


def handle_connect():
    emit('connected', {'message': f'Connected to {NAMESPACE}'})


def handle_join_game(data):
    game_id = _positive_int((data or {}).get('game_id'))
    if not game_id:
        emit('error', {'message': 'game_id is required'})
        return
    room = match_room(game_id)
    join_room(room)
    emit('joined', {'room': room})


def handle_join_team(data):
    # answer_locked carries the selected slot, so it only goes to the team's room
    team_id = _positive_int((data or {}).get('team_id'))
    if not team_id:
        emit('error', {'message': 'team_id is required'})
        return
    room = team_room(team_id)
    join_room(room)
    emit('joined', {'room': room})


def handle_leave_game(data):
    game_id = _positive_int((data or {}).get('game_id'))
    if not game_id:
        emit('error', {'message': 'game_id is required'})
        return
    room = match_room(game_id)
    leave_room(room)
    team_id = _positive_int((data or {}).get('team_id'))
    if team_id:
        leave_room(team_room(team_id))
    emit('left', {'room': room})


def handle_ping(data):
    emit('pong', data or {})


_HANDLERS = (
    ('connect', handle_connect),
    ('join_game', handle_join_game),
    ('join_team', handle_join_team),
    ('leave_game', handle_leave_game),
    ('ping', handle_ping),
)


def register_socketio_handlers(testing: bool = False) -> None:
    """Register Socket.IO event handlers.

    Always register on namespace '/ws'. When testing is True, also mirror
    handlers on the default namespace '/' to accommodate the test harness.
    """
    for event, handler in _HANDLERS:
        socketio.on_event(event, handler, namespace=NAMESPACE)

    if testing:
        for event, handler in _HANDLERS:
            socketio.on_event(event, handler, namespace='/')
