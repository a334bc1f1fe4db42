from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Generic, TypeVar

from .errors import CollaboratorUnavailable, StateError

logger = logging.getLogger(__name__)

T = TypeVar("T")

Condition = Callable[[CollaboratorUnavailable], bool]


def always(_error: CollaboratorUnavailable) -> bool:
    return True


@dataclass(frozen=True)
class Attempt(Generic[T]):
    """One entry of a fallback plan.

    ``condition`` is evaluated against the error of the previous attempt; the first
    attempt of a plan always runs.
    """

    name: str
    run: Callable[[], T]
    condition: Condition = always


@dataclass(frozen=True)
class AttemptOutcome(Generic[T]):
    value: T
    attempt: str
    index: int

    @property
    def fell_back(self) -> bool:
        return self.index > 0


def run_attempts(attempts: list[Attempt[T]] | tuple[Attempt[T], ...]) -> AttemptOutcome[T]:
    if not attempts:
        raise StateError("An attempt plan needs at least one attempt.")
    last_error: CollaboratorUnavailable | None = None
    for index, attempt in enumerate(attempts):
        if last_error is not None and not attempt.condition(last_error):
            break
        try:
            value = attempt.run()
        except CollaboratorUnavailable as exc:
            logger.warning("Attempt '%s' failed: %s", attempt.name, exc)
            last_error = exc
            continue
        return AttemptOutcome(value=value, attempt=attempt.name, index=index)
    if last_error is None:
        raise StateError("Attempt plan ended without a result or an error.")
    raise last_error
