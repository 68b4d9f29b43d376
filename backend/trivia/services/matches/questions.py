import random

from flask import current_app

from trivia.time_utils import utcnow_naive
from .errors import Result, invalid_state
from .store import guarded


class QuestionSelector:
    """Fills every (round, order) slot of a match from the question bank.

    Questions a host has used in an earlier match are skipped, and the ones
    picked here are recorded so they are skipped next time.
    """

    def __init__(self, store, randomizer, rng=None):
        self.store = store
        self.randomizer = randomizer
        self.rng = rng or random.Random()

    def missing_slots(self, match):
        filled = {(mq.round_number, mq.question_order) for mq in self.store.list_match_questions(match.id)}
        return [
            (round_number, order)
            for round_number in range(1, match.max_rounds + 1)
            for order in range(1, match.questions_per_round + 1)
            if (round_number, order) not in filled
        ]

    @guarded('prepare questions')
    def prepare(self, match) -> Result[list]:
        slots = self.missing_slots(match)
        if not slots:
            return Result.success(self.store.list_match_questions(match.id))

        settings = match.settings_dict
        in_match = {mq.question_id for mq in self.store.list_match_questions(match.id)}
        candidates = [
            q for q in self.store.available_questions(
                match.host_id,
                categories=settings.get('categories') or None,
                difficulty=settings.get('difficulty') or None,
            )
            if q.id not in in_match
        ]
        if len(candidates) < len(slots):
            return invalid_state(
                f'Not enough available questions. Need {len(slots)}, found {len(candidates)}'
            )

        picked = self.rng.sample(candidates, len(slots))
        for (round_number, order), question in zip(slots, picked):
            self.randomizer.prepare_match_question(match, question, round_number, order, commit=False)
        self.store.record_question_usage(match.host_id, [q.id for q in picked], match.id, utcnow_naive())
        self.store.commit()
        current_app.logger.info(f"[prepare] match={match.id} filled={len(slots)} slots")
        return Result.success(self.store.list_match_questions(match.id))
