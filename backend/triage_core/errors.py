from __future__ import annotations


class TriageError(Exception):
    pass


class InputError(TriageError):
    """Inbound payload is empty or unusable. Shown to the user, never retried."""


class CollaboratorUnavailable(TriageError):
    def __init__(self, message: str, *, service: str = "unknown", status_code: int | None = None) -> None:
        super().__init__(message)
        self.service = service
        self.status_code = status_code


class ModelUnavailable(CollaboratorUnavailable):
    pass


class ModelTimeout(CollaboratorUnavailable):
    pass


class UnsupportedSpeechModel(CollaboratorUnavailable):
    """The speech provider rejected the requested model or voice."""


class ParseRecovered(TriageError):
    """Model output did not match the output contract and was replaced by a degraded result."""


class StateError(TriageError):
    """An internal invariant was violated while handling one request."""
