from __future__ import annotations

import pytest

from triage_core.attempts import Attempt, run_attempts
from triage_core.errors import CollaboratorUnavailable, StateError, UnsupportedSpeechModel


def _fail(error: Exception):
    def run():
        raise error

    return run


def test_first_success_wins():
    outcome = run_attempts([Attempt("primary", lambda: "a"), Attempt("secondary", lambda: "b")])
    assert outcome.value == "a"
    assert outcome.attempt == "primary"
    assert outcome.fell_back is False


def test_falls_through_to_next_attempt():
    outcome = run_attempts(
        [
            Attempt("primary", _fail(CollaboratorUnavailable("down", service="tts"))),
            Attempt("secondary", lambda: "b"),
        ]
    )
    assert outcome.value == "b"
    assert outcome.index == 1
    assert outcome.fell_back is True


def test_condition_gates_the_fallback():
    ran: list[str] = []

    def fallback():
        ran.append("fallback")
        return "b"

    plan = [
        Attempt("primary", _fail(CollaboratorUnavailable("quota exceeded", service="stt"))),
        Attempt("telephony", fallback, condition=lambda error: isinstance(error, UnsupportedSpeechModel)),
    ]
    with pytest.raises(CollaboratorUnavailable, match="quota exceeded"):
        run_attempts(plan)
    assert ran == []


def test_last_error_is_raised_when_every_attempt_fails():
    plan = [
        Attempt("primary", _fail(CollaboratorUnavailable("first", service="tts"))),
        Attempt("secondary", _fail(CollaboratorUnavailable("second", service="tts"))),
    ]
    with pytest.raises(CollaboratorUnavailable, match="second"):
        run_attempts(plan)


def test_non_collaborator_errors_are_not_swallowed():
    plan = [Attempt("primary", _fail(ValueError("bug"))), Attempt("secondary", lambda: "b")]
    with pytest.raises(ValueError):
        run_attempts(plan)


def test_empty_plan_is_a_state_error():
    with pytest.raises(StateError):
        run_attempts([])
