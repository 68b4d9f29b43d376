"""Send-only fan-out of match events over Socket.IO rooms.

Match-wide events go to ``game:{match_id}``; answer_locked goes to the team's
own room ``team:{team_id}`` because it carries the selected slot.
"""

from trivia.time_utils import isoformat, utcnow_naive

NAMESPACE = '/ws'


def match_room(match_id):
    return f"game:{match_id}"


def team_room(team_id):
    return f"team:{team_id}"


class Broadcaster:
    def __init__(self, socketio, namespace=NAMESPACE):
        self.socketio = socketio
        self.namespace = namespace

    def emit(self, event, payload, room):
        self.socketio.emit(event, payload, to=room, namespace=self.namespace)

    def game_state_changed(self, match, triggered_by='host'):
        self.emit('game_state_changed', {
            'game_id': match.id,
            'status': match.status,
            'current_round': match.current_round,
            'current_question': match.current_question,
            'timestamp': isoformat(utcnow_naive()),
            'triggered_by': triggered_by,
        }, match_room(match.id))

    def question_displayed(self, match, match_question):
        question = match_question.question
        self.emit('question_displayed', {
            'game_id': match.id,
            'game_question_id': match_question.id,
            'round_number': match_question.round_number,
            'question_order': match_question.question_order,
            'question': {
                'text': question.text if question else None,
                'category': question.category if question else None,
                'difficulty': question.difficulty if question else None,
                'answers': match_question.answers,
            },
            'time_limit': match.time_limit,
            'timestamp': isoformat(match_question.displayed_at or utcnow_naive()),
        }, match_room(match.id))

    def question_completed(self, match, match_question, team_results):
        self.emit('question_completed', {
            'game_id': match.id,
            'game_question_id': match_question.id,
            'correct_position': match_question.correct_position,
            'correct_answer': match_question.answers[match_question.correct_position],
            'team_results': team_results,
            'timestamp': isoformat(match_question.completed_at or utcnow_naive()),
        }, match_room(match.id))

    def team_answered(self, submission, team):
        self.emit('team_answered', {
            'game_id': submission.match_id,
            'team_id': team.id,
            'team_name': team.name,
            'game_question_id': submission.match_question_id,
            'submitted_by': submission.submitted_by,
            'timestamp': isoformat(submission.submitted_at),
        }, match_room(submission.match_id))

    def answer_locked(self, submission):
        self.emit('answer_locked', {
            'team_id': submission.team_id,
            'game_question_id': submission.match_question_id,
            'selected_position': submission.selected_position,
            'submitted_by': submission.submitted_by,
            'timestamp': isoformat(submission.submitted_at),
        }, team_room(submission.team_id))
