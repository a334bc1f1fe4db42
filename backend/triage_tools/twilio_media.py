from __future__ import annotations

import httpx

from triage_core.errors import CollaboratorUnavailable

from .provider_http import provider_error_message, send

DEFAULT_MEDIA_TYPE = "audio/ogg"


class TwilioMediaFetcher:
    """Downloads WhatsApp voice notes; Twilio media URLs need account basic auth."""

    def __init__(
        self,
        *,
        account_sid: str | None,
        auth_token: str | None,
        timeout_seconds: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.account_sid = account_sid
        self.auth_token = auth_token
        self.timeout_seconds = timeout_seconds
        self.transport = transport

    def fetch(self, url: str) -> tuple[bytes, str]:
        if not self.account_sid or not self.auth_token:
            raise CollaboratorUnavailable("Twilio credentials required to download media.", service="twilio")
        response = send(
            "GET",
            url,
            service="twilio",
            timeout_seconds=self.timeout_seconds,
            transport=self.transport,
            auth=(self.account_sid, self.auth_token),
            follow_redirects=True,
        )
        if response.status_code >= 400:
            raise CollaboratorUnavailable(
                f"Failed to download audio: {provider_error_message(response)}",
                service="twilio",
                status_code=response.status_code,
            )
        content_type = response.headers.get("content-type", DEFAULT_MEDIA_TYPE).split(";")[0].strip()
        return response.content, content_type or DEFAULT_MEDIA_TYPE
