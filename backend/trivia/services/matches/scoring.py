import math

MIN_SPEED_FACTOR = 0.5


def calculate_points(is_correct: bool, elapsed: float, time_limit: int, base_points: int) -> int:
    """Points for one answer.

    Incorrect answers earn nothing. Without a time limit a correct answer earns
    ``base_points``. With one, the award decays linearly from 100% of base at
    display time to 50% at the limit and never goes lower.
    """
    if not is_correct:
        return 0
    if not time_limit:
        return int(base_points)
    speed_factor = max(MIN_SPEED_FACTOR, 1 - (max(0.0, elapsed) / time_limit) * 0.5)
    # half-up rounding, not banker's
    return int(math.floor(base_points * speed_factor + 0.5))


def elapsed_seconds(displayed_at, now) -> float:
    return max(0.0, (now - displayed_at).total_seconds())


def time_remaining(displayed_at, now, time_limit):
    if not time_limit:
        return None
    return max(0.0, time_limit - elapsed_seconds(displayed_at, now))
