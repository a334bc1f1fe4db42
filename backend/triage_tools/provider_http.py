from __future__ import annotations

from typing import Any, Type

import httpx

from triage_core.errors import CollaboratorUnavailable, ModelTimeout


def provider_error_message(response: httpx.Response) -> str:
    message = response.text.strip()
    try:
        payload = response.json()
    except ValueError:
        payload = None
    if isinstance(payload, dict):
        err = payload.get("error")
        if isinstance(err, dict):
            msg = err.get("message")
            if isinstance(msg, str) and msg.strip():
                return msg.strip()
        if isinstance(err, str) and err.strip():
            return err.strip()
        errors = payload.get("errors")
        if isinstance(errors, list) and errors and isinstance(errors[0], dict):
            msg = errors[0].get("message")
            if isinstance(msg, str) and msg.strip():
                return msg.strip()
        for key in ("message", "errorMessage"):
            msg = payload.get(key)
            if isinstance(msg, str) and msg.strip():
                return msg.strip()
    return message or f"HTTP {response.status_code}"


def send(
    method: str,
    url: str,
    *,
    service: str,
    timeout_seconds: float,
    connect_seconds: float = 8.0,
    transport: httpx.BaseTransport | None = None,
    unavailable: Type[CollaboratorUnavailable] = CollaboratorUnavailable,
    **request_kwargs: Any,
) -> httpx.Response:
    """Issue one request and translate transport failures into collaborator errors.

    Non-2xx responses are returned untouched so callers can inspect provider messages.
    """
    try:
        with httpx.Client(
            timeout=httpx.Timeout(timeout_seconds, connect=connect_seconds),
            transport=transport,
        ) as client:
            return client.request(method, url, **request_kwargs)
    except httpx.TimeoutException as exc:
        raise ModelTimeout(f"{service} provider timed out.", service=service) from exc
    except httpx.HTTPError as exc:
        raise unavailable(f"Failed to reach {service} provider.", service=service) from exc


def json_body(response: httpx.Response, *, service: str, unavailable: Type[CollaboratorUnavailable] = CollaboratorUnavailable) -> dict[str, Any]:
    try:
        payload = response.json()
    except ValueError as exc:
        raise unavailable(f"{service} provider returned invalid JSON.", service=service) from exc
    if not isinstance(payload, dict):
        raise unavailable(f"{service} provider returned an unexpected payload.", service=service)
    return payload
