"""Deterministic answer shuffling for match questions.

Every client looking at the same match question must see the same option
order, and the server must be able to tell which slot is correct without
trusting anything the client sends. The shuffle is therefore driven by a
seed derived from the question's identity in the match:

    seed = FNV-1a-32("{match_id}-{question_id}-{round}-{order}")

The seed feeds a 32-bit linear congruential generator (Numerical Recipes
constants), which drives a Fisher-Yates shuffle over the four options. The
first raw answer is the correct one; wherever it lands is the correct slot.
"""

import json
from dataclasses import dataclass
from typing import List, Optional, Sequence

from trivia.models import MatchQuestion
from .errors import QUESTION_NOT_FOUND, ErrorCode, Result
from .store import guarded

ANSWER_COUNT = 4

FNV_OFFSET_BASIS = 0x811C9DC5
FNV_PRIME = 0x01000193
LCG_MULTIPLIER = 1664525
LCG_INCREMENT = 1013904223
UINT32 = 0xFFFFFFFF


def fnv1a_32(text: str) -> int:
    value = FNV_OFFSET_BASIS
    for byte in text.encode('utf-8'):
        value ^= byte
        value = (value * FNV_PRIME) & UINT32
    return value


def shuffle_seed(match_id, question_id, round_number, order_number) -> int:
    return fnv1a_32(f"{match_id}-{question_id}-{round_number}-{order_number}")


class SeededGenerator:
    """32-bit LCG; ``below(n)`` maps the state onto [0, n)."""

    def __init__(self, seed: int):
        self.state = seed & UINT32

    def next(self) -> int:
        self.state = (LCG_MULTIPLIER * self.state + LCG_INCREMENT) & UINT32
        return self.state

    def below(self, bound: int) -> int:
        return (self.next() * bound) >> 32


def normalize_answers(raw_answers: Optional[Sequence[Optional[str]]]) -> List[str]:
    """Exactly four non-empty strings; gaps become ``Option N`` placeholders."""
    answers = list(raw_answers or [])[:ANSWER_COUNT]
    answers += [None] * (ANSWER_COUNT - len(answers))
    normalized = []
    for idx, answer in enumerate(answers):
        text = str(answer).strip() if answer is not None else ''
        normalized.append(text or f'Option {idx + 1}')
    return normalized


@dataclass(frozen=True)
class PreparedQuestion:
    shuffled_answers: List[str]
    correct_slot: int
    seed: int


class QuestionRandomizer:
    def __init__(self, store):
        self.store = store

    def prepare(self, match_id, question_id, round_number, order_number, raw_answers) -> PreparedQuestion:
        answers = normalize_answers(raw_answers)
        seed = shuffle_seed(match_id, question_id, round_number, order_number)
        generator = SeededGenerator(seed)
        # (text, is_correct) pairs so duplicate answer texts can't confuse the lookup
        entries = [(text, idx == 0) for idx, text in enumerate(answers)]
        for i in range(len(entries) - 1, 0, -1):
            j = generator.below(i + 1)
            entries[i], entries[j] = entries[j], entries[i]
        correct_slot = next(idx for idx, (_, is_correct) in enumerate(entries) if is_correct)
        return PreparedQuestion([text for text, _ in entries], correct_slot, seed)

    def build_match_question(self, match_id, question, round_number, order_number) -> MatchQuestion:
        prepared = self.prepare(match_id, question.id, round_number, order_number, question.raw_answers)
        return MatchQuestion(
            match_id=match_id,
            question_id=question.id,
            round_number=round_number,
            question_order=order_number,
            shuffled_answers=json.dumps(prepared.shuffled_answers),
            correct_position=prepared.correct_slot,
        )

    def prepare_match_question(self, match, question, round_number, order_number, commit=True) -> MatchQuestion:
        """Build the shuffled MatchQuestion for one slot and add it to the session."""
        return self.store.add(
            self.build_match_question(match.id, question, round_number, order_number), commit=commit
        )

    @guarded('verify answer')
    def verify(self, match_id, round_number, order_number, selected_slot) -> Result[bool]:
        """Compare against the stored correct slot; never re-shuffles client input."""
        match_question = self.store.find_match_question(match_id, round_number, order_number)
        if not match_question:
            return Result.failure(ErrorCode.NOT_FOUND, QUESTION_NOT_FOUND)
        return Result.success(selected_slot == match_question.correct_position)
