import pytest
from sqlalchemy.exc import SQLAlchemyError

from trivia import db
from trivia.models import Submission, Team
from trivia.services.matches.errors import ErrorCode
from trivia.services.matches.scoring import calculate_points


def _slots(engine, match, round_number=1, order=1):
    match_question = engine.store.find_match_question(match.id, round_number, order)
    correct = match_question.correct_position
    return correct, (correct + 1) % 4


def _score(team_id):
    db.session.expire_all()
    return db.session.get(Team, team_id).score


@pytest.mark.parametrize('elapsed, expected', [
    (0, 1000),
    (5, 750),
    (10, 500),
    (2.5, 875),
])
def test_calculate_points_decays_to_half(elapsed, expected):
    assert calculate_points(True, elapsed, 10, 1000) == expected


def test_calculate_points_edges():
    assert calculate_points(False, 0, 10, 1000) == 0
    assert calculate_points(True, 999, 0, 1000) == 1000
    # never below half even if called past the limit
    assert calculate_points(True, 30, 10, 1000) == 500
    # half-up rounding: 1 * 0.75 = 0.75 -> 1, 3 * 0.5 = 1.5 -> 2
    assert calculate_points(True, 5, 10, 1) == 1
    assert calculate_points(True, 10, 10, 3) == 2


def test_submit_requires_display(engine, setup_match, clock):
    _, match, teams, players = setup_match()
    correct, _ = _slots(engine, match)

    result = engine.submissions.submit(match.id, teams[0].id, 1, 1, correct, players[0].id)

    assert result.error.code == ErrorCode.TIMING_VIOLATION
    assert result.error.message == 'Question not yet displayed'


def test_unknown_question_is_not_found(engine, setup_match, clock):
    _, match, teams, players = setup_match()
    result = engine.submissions.submit(match.id, teams[0].id, 5, 1, 0, players[0].id)
    assert result.error.code == ErrorCode.NOT_FOUND
    assert result.error.message == 'Question not found'


@pytest.mark.parametrize('elapsed, expected', [(0, 1000), (5, 750), (10, 500)])
def test_timed_scoring(engine, setup_match, clock, elapsed, expected):
    host, match, teams, players = setup_match(settings={'time_per_question': 10})
    engine.state_machine.display_question(match.id, host.id)
    correct, _ = _slots(engine, match)
    clock.advance(elapsed)

    result = engine.submissions.submit(match.id, teams[0].id, 1, 1, correct, players[0].id)

    assert result.ok
    assert result.data.is_correct is True
    assert result.data.points_earned == expected
    assert result.data.response_time == pytest.approx(elapsed)
    assert _score(teams[0].id) == expected


def test_late_submission_is_rejected(engine, setup_match, clock):
    host, match, teams, players = setup_match(settings={'time_per_question': 10})
    engine.state_machine.display_question(match.id, host.id)
    correct, _ = _slots(engine, match)
    clock.advance(10.5)

    result = engine.submissions.submit(match.id, teams[0].id, 1, 1, correct, players[0].id)

    assert result.error.code == ErrorCode.TIMING_VIOLATION
    assert result.error.message == 'Time limit exceeded'
    assert Submission.query.count() == 0


def test_incorrect_answer_scores_zero(engine, setup_match, clock):
    host, match, teams, players = setup_match()
    engine.state_machine.display_question(match.id, host.id)
    _, wrong = _slots(engine, match)

    result = engine.submissions.submit(match.id, teams[0].id, 1, 1, wrong, players[0].id)

    assert result.ok
    assert result.data.is_correct is False
    assert result.data.points_earned == 0
    assert _score(teams[0].id) == 0


def test_second_submission_is_duplicate(engine, setup_match, clock):
    host, match, teams, players = setup_match()
    engine.state_machine.display_question(match.id, host.id)
    correct, wrong = _slots(engine, match)

    assert engine.submissions.submit(match.id, teams[0].id, 1, 1, correct, players[0].id).ok
    again = engine.submissions.submit(match.id, teams[0].id, 1, 1, wrong, players[0].id)

    assert again.error.code == ErrorCode.DUPLICATE_SUBMISSION
    assert again.error.message == 'Already answered'
    assert _score(teams[0].id) == 1000


def test_race_lost_at_the_constraint_reads_as_duplicate(engine, setup_match, clock, monkeypatch):
    host, match, teams, players = setup_match()
    engine.state_machine.display_question(match.id, host.id)
    correct, _ = _slots(engine, match)
    assert engine.submissions.submit(match.id, teams[0].id, 1, 1, correct, players[0].id).ok

    # Simulate a concurrent submit that passed the pre-check before the first commit landed
    monkeypatch.setattr(engine.store, 'find_submission', lambda team_id, match_question_id: None)
    racer = engine.submissions.submit(match.id, teams[0].id, 1, 1, correct, players[0].id)

    assert racer.error.code == ErrorCode.DUPLICATE_SUBMISSION
    assert racer.error.message == 'Already answered'
    assert Submission.query.filter_by(team_id=teams[0].id).count() == 1
    assert _score(teams[0].id) == 1000


def test_score_failure_keeps_the_submission(engine, setup_match, clock, monkeypatch):
    host, match, teams, players = setup_match()
    engine.state_machine.display_question(match.id, host.id)
    correct, _ = _slots(engine, match)

    def broken_delta(team_id, delta):
        raise SQLAlchemyError('score update failed')

    monkeypatch.setattr(engine.store, 'adjust_team_score', broken_delta)
    result = engine.submissions.submit(match.id, teams[0].id, 1, 1, correct, players[0].id)

    assert result.ok
    assert result.data.points_earned == 1000
    assert Submission.query.filter_by(team_id=teams[0].id).count() == 1
    assert _score(teams[0].id) == 0


def test_closed_question_rejects_answers(engine, setup_match, clock):
    host, match, teams, players = setup_match()
    engine.state_machine.display_question(match.id, host.id)
    engine.state_machine.advance_question(match.id, host.id)
    correct, _ = _slots(engine, match)

    result = engine.submissions.submit(match.id, teams[0].id, 1, 1, correct, players[0].id)

    assert result.error.code == ErrorCode.TIMING_VIOLATION
    assert result.error.message == 'Question closed'


def test_completed_match_rejects_answers(engine, setup_match, clock):
    host, match, teams, players = setup_match()
    engine.state_machine.display_question(match.id, host.id)
    correct, _ = _slots(engine, match)

    assert engine.state_machine.complete(match.id, host.id).ok
    result = engine.submissions.submit(match.id, teams[0].id, 1, 1, correct, players[0].id)

    assert result.error.code == ErrorCode.INVALID_STATE
    assert result.error.message == 'Match is already completed'
    assert Submission.query.count() == 0
    assert _score(teams[0].id) == 0
    assert engine.store.find_match_question(match.id, 1, 1).completed_at is not None
    assert engine.submissions.can_submit(match.id, teams[0].id, 1, 1).error.code == ErrorCode.INVALID_STATE


def test_input_validation(engine, setup_match, clock):
    host, match, teams, players = setup_match()
    engine.state_machine.display_question(match.id, host.id)

    bad_slot = engine.submissions.submit(match.id, teams[0].id, 1, 1, 4, players[0].id)
    assert bad_slot.error.code == ErrorCode.VALIDATION_ERROR

    wrong_team = engine.submissions.submit(match.id, teams[0].id, 1, 1, 0, players[1].id)
    assert wrong_team.error.code == ErrorCode.VALIDATION_ERROR

    missing_team = engine.submissions.submit(match.id, 9999, 1, 1, 0, players[0].id)
    assert missing_team.error.code == ErrorCode.NOT_FOUND


def test_teams_answer_independently(engine, setup_match, clock):
    host, match, teams, players = setup_match()
    engine.state_machine.display_question(match.id, host.id)
    correct, wrong = _slots(engine, match)

    assert engine.submissions.submit(match.id, teams[0].id, 1, 1, correct, players[0].id).ok
    assert engine.submissions.submit(match.id, teams[1].id, 1, 1, wrong, players[1].id).ok

    assert _score(teams[0].id) == 1000
    assert _score(teams[1].id) == 0


def test_can_submit_reasons(engine, setup_match, clock):
    host, match, teams, players = setup_match(settings={'time_per_question': 30})
    team_id = teams[0].id

    before = engine.submissions.can_submit(match.id, team_id, 1, 1).data
    assert before.can_submit is False
    assert before.reason == 'Question not yet displayed'

    missing = engine.submissions.can_submit(match.id, team_id, 7, 1).data
    assert missing.reason == 'Question not found'

    engine.state_machine.display_question(match.id, host.id)
    clock.advance(10)
    open_now = engine.submissions.can_submit(match.id, team_id, 1, 1).data
    assert open_now.can_submit is True
    assert open_now.time_remaining == pytest.approx(20.0)

    correct, _ = _slots(engine, match)
    engine.submissions.submit(match.id, team_id, 1, 1, correct, players[0].id)
    answered = engine.submissions.can_submit(match.id, team_id, 1, 1).data
    assert answered.can_submit is False
    assert answered.reason == 'Already answered'

    clock.advance(25)
    expired = engine.submissions.can_submit(match.id, teams[1].id, 1, 1).data
    assert expired.can_submit is False
    assert expired.reason == 'Time limit exceeded'
    assert expired.time_remaining == 0.0


def test_can_submit_without_time_limit(engine, setup_match, clock):
    host, match, teams, _ = setup_match()
    engine.state_machine.display_question(match.id, host.id)
    eligibility = engine.submissions.can_submit(match.id, teams[0].id, 1, 1).data
    assert eligibility.can_submit is True
    assert eligibility.time_remaining is None
    assert eligibility.to_dict() == {'can_submit': True}


def test_unsubmit_reverses_points(engine, setup_match, clock):
    host, match, teams, players = setup_match(settings={'points_per_correct': 100})
    engine.state_machine.display_question(match.id, host.id)
    correct, _ = _slots(engine, match)
    submission = engine.submissions.submit(match.id, teams[0].id, 1, 1, correct, players[0].id).data
    assert engine.submissions.submit(match.id, teams[1].id, 1, 1, correct, players[1].id).ok
    assert _score(teams[0].id) == 100

    result = engine.submissions.unsubmit(submission.id, host.id)

    assert result.ok
    assert _score(teams[0].id) == 0
    assert _score(teams[1].id) == 100
    assert Submission.query.filter_by(team_id=teams[0].id).count() == 0
    assert Submission.query.filter_by(team_id=teams[1].id).count() == 1


def test_unsubmit_never_drives_score_negative(engine, setup_match, clock):
    host, match, teams, players = setup_match(settings={'points_per_correct': 100})
    engine.state_machine.display_question(match.id, host.id)
    correct, _ = _slots(engine, match)
    submission = engine.submissions.submit(match.id, teams[0].id, 1, 1, correct, players[0].id).data
    team = db.session.get(Team, teams[0].id)
    team.score = 40
    db.session.commit()

    assert engine.submissions.unsubmit(submission.id, host.id).ok
    assert _score(teams[0].id) == 0


def test_unsubmit_is_host_only(engine, setup_match, make_host, clock):
    host, match, teams, players = setup_match()
    engine.state_machine.display_question(match.id, host.id)
    correct, _ = _slots(engine, match)
    submission = engine.submissions.submit(match.id, teams[0].id, 1, 1, correct, players[0].id).data
    stranger = make_host('stranger')

    result = engine.submissions.unsubmit(submission.id, stranger.id)

    assert result.error.code == ErrorCode.UNAUTHORIZED
    assert Submission.query.count() == 1


def test_answer_reads(engine, setup_match, clock):
    host, match, teams, players = setup_match()
    engine.state_machine.display_question(match.id, host.id)
    correct, wrong = _slots(engine, match)
    clock.advance(3)
    engine.submissions.submit(match.id, teams[1].id, 1, 1, correct, players[1].id)
    clock.advance(2)
    engine.submissions.submit(match.id, teams[0].id, 1, 1, wrong, players[0].id)

    rows = engine.submissions.question_answers(match.id, 1, 1, host.id).data
    assert [row['team_name'] for row in rows] == ['Brainiacs', 'Quizzards']

    fastest = engine.submissions.fastest_answers(match.id, 1, 1, actor_id=host.id).data
    assert [row['team_id'] for row in fastest] == [teams[1].id]

    breakdown = engine.submissions.answer_breakdown(match.id, 1, 1, host.id).data
    assert breakdown['total'] == 2
    assert breakdown['correct_position'] == correct
    assert breakdown['counts'][correct] == 1
    assert breakdown['counts'][wrong] == 1

    own = engine.submissions.team_answer(match.id, teams[0].id, 1, 1, host.id).data
    assert own.selected_position == wrong
    assert len(engine.submissions.team_answers(teams[0].id, host.id).data) == 1

    stats = engine.submissions.match_answer_stats(match.id).data
    assert stats['total_answers'] == 2
    assert stats['correct_answers'] == 1
    assert stats['teams_participating'] == 2
    assert stats['average_response_time'] == pytest.approx(4.0)


def test_answers_hidden_until_question_closes(engine, setup_match, make_host, clock):
    host, match, teams, players = setup_match()
    stranger = make_host('stranger')
    engine.state_machine.display_question(match.id, host.id)
    correct, _ = _slots(engine, match)
    engine.submissions.submit(match.id, teams[0].id, 1, 1, correct, players[0].id)

    for actor_id in (None, stranger.id):
        assert engine.submissions.answer_breakdown(match.id, 1, 1, actor_id).error.code == ErrorCode.INVALID_STATE
        assert engine.submissions.question_answers(match.id, 1, 1, actor_id).error.code == ErrorCode.INVALID_STATE
        assert engine.submissions.fastest_answers(match.id, 1, 1, actor_id=actor_id).error.code == ErrorCode.INVALID_STATE
        assert engine.submissions.team_answer(match.id, teams[0].id, 1, 1, actor_id).error.code == ErrorCode.INVALID_STATE
        assert engine.submissions.team_answers(teams[0].id, actor_id).data == []

    engine.state_machine.advance_question(match.id, host.id)

    breakdown = engine.submissions.answer_breakdown(match.id, 1, 1).data
    assert breakdown['correct_position'] == correct
    assert breakdown['total'] == 1
    assert [row['team_id'] for row in engine.submissions.fastest_answers(match.id, 1, 1).data] == [teams[0].id]
    assert len(engine.submissions.team_answers(teams[0].id).data) == 1
