import time
from typing import Set, Tuple

from flask import has_app_context


class AutoAdvanceScheduler:
    """Optional server-side timer that advances a timed question once it expires.

    - Disabled unless AUTO_ADVANCE_ENABLED is set
    - No-ops in TESTING mode unless ENABLE_SCHEDULER_IN_TESTS is set; when it
      is, the worker runs inline so tests stay deterministic
    - One timer per (match_id, round, order)
    - Fires after the question's time limit plus AUTO_ADVANCE_GRACE_SEC and
      only advances if the match is still active on that same question
    """

    def __init__(self, app, socketio):
        self.app = app
        self.socketio = socketio
        self.sleep = time.sleep
        self._scheduled: Set[Tuple[int, int, int]] = set()

    def enabled(self):
        cfg = self.app.config
        if not cfg.get('AUTO_ADVANCE_ENABLED'):
            return False
        if cfg.get('TESTING') and not cfg.get('ENABLE_SCHEDULER_IN_TESTS'):
            return False
        return True

    def schedule(self, match_id, round_number, question_order, time_limit):
        if not time_limit or not self.enabled():
            return False
        key = (match_id, round_number, question_order)
        if key in self._scheduled:
            self.app.logger.info(f"[timer-skip] match={match_id} round={round_number} order={question_order} already scheduled")
            return False
        self._scheduled.add(key)
        delay = int(time_limit) + int(self.app.config.get('AUTO_ADVANCE_GRACE_SEC', 0))
        self.app.logger.info(f"[timer-set] match={match_id} round={round_number} order={question_order} delay={delay}s")

        if self.app.config.get('TESTING'):
            self._worker(key, delay)
        else:
            self.socketio.start_background_task(self._worker, key, delay)
        return True

    def _worker(self, key, delay):
        self.sleep(delay)
        if has_app_context():
            self._fire(key)
            return
        with self.app.app_context():
            self._fire(key)

    def _fire(self, key):
        self._scheduled.discard(key)
        match_id, round_number, question_order = key
        engine = self.app.extensions['match_engine']
        result = engine.state_machine.auto_advance(match_id, round_number, question_order)
        if result.ok:
            self.app.logger.info(f"[timer-fire] match={match_id} advanced from round={round_number} order={question_order}")
        else:
            self.app.logger.info(f"[timer-abort] match={match_id} round={round_number} order={question_order} reason={result.error.message}")
