"""Match session engine: lifecycle, answer randomization, submissions, standings.

This package contains the domain logic that HTTP routes and socket handlers
call into, keeping transport concerns separated from match mechanics.
"""

from flask import current_app


def get_engine():
    return current_app.extensions['match_engine']
